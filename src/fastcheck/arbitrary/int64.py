"""Arbitrary over Int64 values, used to walk the index space of floats."""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from fastcheck.core import int64
from fastcheck.core.arbitrary import Arbitrary
from fastcheck.core.int64 import UNIT, ZERO, Int64
from fastcheck.core.stream import Stream
from fastcheck.core.value import Value
from fastcheck.error import FastCheckError

if TYPE_CHECKING:
    from fastcheck.core.rng import Random


def _in_range(value: Int64, min_value: Int64, max_value: Int64) -> bool:
    return not int64.is_strictly_smaller(value, min_value) and not int64.is_strictly_smaller(
        max_value, value
    )


class Int64Arbitrary(Arbitrary[Int64]):
    """Same generation and shrinking strategy as IntegerArbitrary on Int64."""

    def __init__(self, min_value: Int64, max_value: Int64) -> None:
        self.min = min_value
        self.max = max_value
        self._biased_ranges: list[tuple[Int64, Int64]] | None = None

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[Int64]:
        low, high = self._compute_generate_range(mrng, bias_factor)
        drawn = mrng.next_big_int(low.to_int(), high.to_int())
        return Value(Int64.from_int(drawn), None)

    def can_shrink_without_context(self, value: Any) -> bool:
        return isinstance(value, Int64) and _in_range(value, self.min, self.max)

    def shrink(self, value: Int64, context: Any) -> Stream[Value[Int64]]:
        if context is None:
            return self._shrink_int64(value, self._default_target(), True)
        if not isinstance(context, Int64):
            msg = f"Invalid context type passed to Int64Arbitrary: {type(context).__name__}"
            raise FastCheckError.contract_violation(msg)
        if self._is_last_chance_try(value, context):
            return Stream.of(Value(context, None))
        return self._shrink_int64(value, context, False)

    @staticmethod
    def _shrink_int64(value: Int64, target: Int64, try_target_asap: bool) -> Stream[Value[Int64]]:
        real_gap = int64.subtract(value, target)

        def shrink_gen() -> Iterator[Value[Int64]]:
            previous: Int64 | None = None if try_target_asap else target
            to_remove = real_gap if try_target_asap else int64.halve(real_gap)
            while not int64.is_zero(to_remove):
                next_value = int64.subtract(value, to_remove)
                yield Value(next_value, previous)
                previous = next_value
                to_remove = int64.halve(to_remove)

        return Stream(shrink_gen())

    def _default_target(self) -> Int64:
        if not int64.is_strictly_positive(self.min) and not int64.is_strictly_negative(self.max):
            return ZERO
        return self.max if int64.is_strictly_negative(self.min) else self.min

    def _is_last_chance_try(self, current: Int64, context: Int64) -> bool:
        if int64.is_zero(current):
            return False
        if current.sign == 1:
            return int64.is_equal(current, int64.add(context, UNIT)) and int64.is_strictly_positive(
                int64.subtract(current, self.min)
            )
        return int64.is_equal(
            current, int64.subtract(context, UNIT)
        ) and int64.is_strictly_negative(int64.subtract(current, self.max))

    def _compute_generate_range(
        self, mrng: Random, bias_factor: int | None
    ) -> tuple[Int64, Int64]:
        if bias_factor is None or mrng.next_int(1, bias_factor) != 1:
            return self.min, self.max
        ranges = self._retrieve_biased_ranges()
        if len(ranges) == 1:
            return ranges[0]
        range_id = mrng.next_int(-2 * (len(ranges) - 1), len(ranges) - 2)
        return ranges[0] if range_id < 0 else ranges[range_id + 1]

    def _retrieve_biased_ranges(self) -> list[tuple[Int64, Int64]]:
        if self._biased_ranges is not None:
            return self._biased_ranges
        if int64.is_equal(self.min, self.max):
            self._biased_ranges = [(self.min, self.max)]
            return self._biased_ranges
        min_below_zero = int64.is_strictly_negative(self.min)
        max_above_zero = int64.is_strictly_positive(self.max)
        if min_below_zero and max_above_zero:
            log_min = int64.log_like(self.min)
            log_max = int64.log_like(self.max)
            self._biased_ranges = [
                (log_min, log_max),
                (int64.subtract(self.max, log_max), self.max),
                (self.min, int64.subtract(self.min, log_min)),
            ]
        else:
            log_gap = int64.log_like(int64.subtract(self.max, self.min))
            close_to_min = (self.min, int64.add(self.min, log_gap))
            close_to_max = (int64.subtract(self.max, log_gap), self.max)
            self._biased_ranges = (
                [close_to_max, close_to_min] if min_below_zero else [close_to_min, close_to_max]
            )
        return self._biased_ranges


def int64_arbitrary(min_value: Int64, max_value: Int64) -> Arbitrary[Int64]:
    if int64.is_strictly_smaller(max_value, min_value):
        msg = f"Int64 range is empty: min={min_value!r} max={max_value!r}"
        raise FastCheckError.invalid_configuration(msg)
    return Int64Arbitrary(min_value, max_value)
