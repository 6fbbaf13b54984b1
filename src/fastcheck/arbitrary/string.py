"""String arbitraries: `string` and `mixed_case`."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fastcheck.arbitrary.array import array
from fastcheck.arbitrary.character import char
from fastcheck.arbitrary.integer import IntegerArbitrary
from fastcheck.arbitrary.size import SizeForArbitrary
from fastcheck.core.arbitrary import Arbitrary
from fastcheck.core.stream import Stream, lazy
from fastcheck.core.value import Value

if TYPE_CHECKING:
    from fastcheck.core.rng import Random


def string(
    *,
    min_length: int = 0,
    max_length: int | None = None,
    size: SizeForArbitrary = None,
    unit: Arbitrary[str] | None = None,
) -> Arbitrary[str]:
    """Strings made of `unit` characters (printable ASCII by default).

    Lengths count units, not code points, when units are longer than one
    character.
    """
    unit_arb = unit if unit is not None else char()

    def unmapper(value: Any) -> list[str]:
        if not isinstance(value, str):
            msg = f"Unsupported type for string: {type(value).__name__}"
            raise TypeError(msg)
        chars = list(value)
        if not all(unit_arb.can_shrink_without_context(c) for c in chars):
            msg = f"{value!r} cannot be split into units"
            raise ValueError(msg)
        return chars

    return array(unit_arb, min_length=min_length, max_length=max_length, size=size).map(
        "".join, unmapper
    )


def compute_toggle_positions(chars: list[str], toggle_case: Callable[[str], str]) -> list[int]:
    return [index for index, c in enumerate(chars) if toggle_case(c) != c]


def compute_flags_from_chars(untoggled: list[str], toggled: list[str], positions: list[int]) -> int:
    flags = 0
    for index, position in enumerate(positions):
        if untoggled[position] != toggled[position]:
            flags |= 1 << index
    return flags


def apply_flags_on_chars(
    chars: list[str], flags: int, positions: list[int], toggle_case: Callable[[str], str]
) -> None:
    for index, position in enumerate(positions):
        if flags & (1 << index):
            chars[position] = toggle_case(chars[position])


def compute_next_flags(flags: int, next_size: int) -> int:
    """Keep as many toggled flags as possible within `next_size` bits."""
    allowed_mask = (1 << next_size) - 1
    preserved = flags & allowed_mask
    missing = (flags - preserved).bit_count()
    next_flags = preserved
    mask = 1
    while mask <= allowed_mask and missing != 0:
        if not next_flags & mask:
            next_flags |= mask
            missing -= 1
        mask <<= 1
    return next_flags


@dataclass(frozen=True)
class _MixedCaseContext:
    raw_string: str
    raw_string_context: Any
    flags: int
    flags_context: Any


def _toggle_case(c: str) -> str:
    upper = c.upper()
    return upper if upper != c else c.lower()


class MixedCaseArbitrary(Arbitrary[str]):
    """Strings of `string_arb` with some of their characters case-toggled."""

    def __init__(
        self,
        string_arb: Arbitrary[str],
        toggle_case: Callable[[str], str],
        untoggle_all: Callable[[str], str] | None,
    ) -> None:
        self.string_arb = string_arb
        self.toggle_case = toggle_case
        self.untoggle_all = untoggle_all

    @staticmethod
    def _flags_arb(num_positions: int) -> IntegerArbitrary:
        return IntegerArbitrary(0, (1 << num_positions) - 1)

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[str]:
        raw = self.string_arb.generate(mrng, bias_factor)
        chars = list(raw.value)
        positions = compute_toggle_positions(chars, self.toggle_case)
        flags = self._flags_arb(len(positions)).generate(mrng, None)
        apply_flags_on_chars(chars, flags.value, positions, self.toggle_case)
        context = _MixedCaseContext(raw.value, raw.context, flags.value, flags.context)
        return Value("".join(chars), context)

    def can_shrink_without_context(self, value: Any) -> bool:
        if not isinstance(value, str):
            return False
        if self.untoggle_all is not None:
            return self.string_arb.can_shrink_without_context(self.untoggle_all(value))
        return self.string_arb.can_shrink_without_context(value)

    def shrink(self, value: str, context: Any) -> Stream[Value[str]]:
        if isinstance(context, _MixedCaseContext):
            ctx = context
        elif self.untoggle_all is not None:
            untoggled = self.untoggle_all(value)
            untoggled_chars = list(untoggled)
            positions = compute_toggle_positions(untoggled_chars, self.toggle_case)
            flags = compute_flags_from_chars(untoggled_chars, list(value), positions)
            ctx = _MixedCaseContext(untoggled, None, flags, None)
        else:
            ctx = _MixedCaseContext(value, None, 0, None)

        def from_raw(raw: Value[str]) -> Value[str]:
            chars = list(raw.value)
            positions = compute_toggle_positions(chars, self.toggle_case)
            flags = compute_next_flags(ctx.flags, len(positions))
            apply_flags_on_chars(chars, flags, positions, self.toggle_case)
            return Value("".join(chars), _MixedCaseContext(raw.value, raw.context, flags, None))

        def flag_shrinks() -> Iterator[Value[str]]:
            chars = list(ctx.raw_string)
            positions = compute_toggle_positions(chars, self.toggle_case)
            for flags in self._flags_arb(len(positions)).shrink(ctx.flags, ctx.flags_context):
                next_chars = list(chars)
                apply_flags_on_chars(next_chars, flags.value, positions, self.toggle_case)
                yield Value(
                    "".join(next_chars),
                    _MixedCaseContext(ctx.raw_string, ctx.raw_string_context, flags.value, flags.context),
                )

        return (
            self.string_arb.shrink(ctx.raw_string, ctx.raw_string_context)
            .map(from_raw)
            .join(lazy(flag_shrinks))
        )


def mixed_case(
    string_arb: Arbitrary[str],
    *,
    toggle_case: Callable[[str], str] | None = None,
    untoggle_all: Callable[[str], str] | None = None,
) -> Arbitrary[str]:
    """Randomly switch the case of the characters of `string_arb`.

    Args:
        string_arb: Source of the strings
        toggle_case: Switch the case of one character (upper/lower swap by default)
        untoggle_all: Revert a toggled string to its source form, used to
            shrink values that were not generated

    Returns:
        The mixed case arbitrary
    """
    return MixedCaseArbitrary(
        string_arb, toggle_case if toggle_case is not None else _toggle_case, untoggle_all
    )
