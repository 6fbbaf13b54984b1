"""Integer arbitraries: `integer`, `nat` and `big_int`."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastcheck.arbitrary.shrink import NumericRange, bias_numeric_range, shrink_integer
from fastcheck.core.arbitrary import Arbitrary
from fastcheck.core.stream import Stream
from fastcheck.core.value import Value
from fastcheck.error import FastCheckError

if TYPE_CHECKING:
    from fastcheck.core.rng import Random

MIN_INT32 = -0x80000000
MAX_INT32 = 0x7FFFFFFF


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class IntegerArbitrary(Arbitrary[int]):
    """Integers in [min_value, max_value], shrinking towards zero.

    When zero is out of range, values shrink towards the bound closest to
    zero. The shrink context of a value is the closest candidate known to
    pass, which lets the next shrink pass bisect from it.
    """

    def __init__(self, min_value: int, max_value: int) -> None:
        self.min = min_value
        self.max = max_value

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[int]:
        generate_range = self._compute_generate_range(mrng, bias_factor)
        return Value(mrng.next_big_int(generate_range.min, generate_range.max), None)

    def can_shrink_without_context(self, value: Any) -> bool:
        return _is_int(value) and self.min <= value <= self.max

    def shrink(self, value: int, context: Any) -> Stream[Value[int]]:
        if not _is_int(context):
            target = self._default_target()
            return shrink_integer(value, target, True)
        if self._is_last_chance_try(value, context):
            return Stream.of(Value(context, None))
        return shrink_integer(value, context, False)

    def _default_target(self) -> int:
        if self.min <= 0 <= self.max:
            return 0
        return self.min if self.min > 0 else self.max

    def _compute_generate_range(self, mrng: Random, bias_factor: int | None) -> NumericRange:
        if bias_factor is None or mrng.next_int(1, bias_factor) != 1:
            return NumericRange(self.min, self.max)
        ranges = bias_numeric_range(self.min, self.max)
        if len(ranges) == 1:
            return ranges[0]
        # Negative ids all select the first range: it gets the highest weight
        range_id = mrng.next_int(-2 * (len(ranges) - 1), len(ranges) - 2)
        return ranges[0] if range_id < 0 else ranges[range_id + 1]

    def _is_last_chance_try(self, current: int, context: int) -> bool:
        # `context` passed and `current` is the only value left between them
        if current > 0:
            return current == context + 1 and current > self.min
        if current < 0:
            return current == context - 1 and current < self.max
        return False

    def __repr__(self) -> str:
        return f"integer(min={self.min}, max={self.max})"


def integer(min: int = MIN_INT32, max: int = MAX_INT32) -> Arbitrary[int]:  # noqa: A002
    """Integers between `min` and `max`, both included (32-bit range by default)."""
    if not _is_int(min):
        msg = f"integer expects min to be an integer, got {min!r}"
        raise FastCheckError.invalid_configuration(msg)
    if not _is_int(max):
        msg = f"integer expects max to be an integer, got {max!r}"
        raise FastCheckError.invalid_configuration(msg)
    if min > max:
        msg = f"integer expects max to be greater than or equal to min, got min={min} max={max}"
        raise FastCheckError.invalid_configuration(msg)
    return IntegerArbitrary(min, max)


def nat(max: int = MAX_INT32) -> Arbitrary[int]:  # noqa: A002
    """Non-negative integers up to `max`."""
    if not _is_int(max) or max < 0:
        msg = f"nat expects max to be a non-negative integer, got {max!r}"
        raise FastCheckError.invalid_configuration(msg)
    return IntegerArbitrary(0, max)


def big_int(min: int | None = None, max: int | None = None) -> Arbitrary[int]:  # noqa: A002
    """Integers of any size; unbounded sides default to 256-bit limits."""
    lower = min if min is not None else -(1 << 255)
    upper = max if max is not None else (1 << 255) - 1
    if lower > upper:
        msg = f"big_int expects max to be greater than or equal to min, got min={lower} max={upper}"
        raise FastCheckError.invalid_configuration(msg)
    return IntegerArbitrary(lower, upper)
