"""Numeric shrinking and bias helpers shared by integer-like arbitraries."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from fastcheck.core.stream import Stream
from fastcheck.core.value import Value


@dataclass(frozen=True)
class NumericRange:
    min: int
    max: int


def _halve_towards_zero(n: int) -> int:
    return n // 2 if n >= 0 else -((-n) // 2)


def shrink_integer(current: int, target: int, try_target_asap: bool) -> Stream[Value[int]]:
    """Bisect from `current` towards `target`.

    Yields `target` first when `try_target_asap` is set, then values closer
    and closer to `current`. The context of every produced Value is the
    previous candidate: the closest value to `target` already tried, which
    lets the next shrink restart from there instead of from `target`.
    """
    real_gap = current - target

    def shrink_gen() -> Iterator[Value[int]]:
        previous: int | None = None if try_target_asap else target
        gap = real_gap if try_target_asap else _halve_towards_zero(real_gap)
        to_remove = gap
        while to_remove != 0:
            next_value = target if to_remove == real_gap else current - to_remove
            yield Value(next_value, previous)
            previous = next_value
            to_remove = _halve_towards_zero(to_remove)

    return Stream(shrink_gen())


def integer_log_like(v: int) -> int:
    """floor(log2(v)) for v >= 1."""
    return v.bit_length() - 1


def bias_numeric_range(min_value: int, max_value: int) -> list[NumericRange]:
    """Sub-ranges holding the edge values of [min_value, max_value].

    The first range is the one closest to zero and gets the highest weight.
    """
    if min_value == max_value:
        return [NumericRange(min_value, max_value)]
    if min_value < 0 < max_value:
        log_min = integer_log_like(-min_value)
        log_max = integer_log_like(max_value)
        return [
            NumericRange(-log_min, log_max),
            NumericRange(max_value - log_max, max_value),
            NumericRange(min_value, min_value + log_min),
        ]
    log_gap = integer_log_like(max_value - min_value)
    close_to_min = NumericRange(min_value, min_value + log_gap)
    close_to_max = NumericRange(max_value - log_gap, max_value)
    if min_value < 0:
        return [close_to_max, close_to_min]
    return [close_to_min, close_to_max]
