"""Arbitraries picking among a fixed set of values."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from fastcheck.arbitrary.integer import integer
from fastcheck.core.arbitrary import Arbitrary
from fastcheck.core.stream import Stream
from fastcheck.core.value import Value
from fastcheck.error import FastCheckError

if TYPE_CHECKING:
    from fastcheck.core.rng import Random

T = TypeVar("T")


def _same(a: Any, b: Any) -> bool:
    # Strict identity semantics: NaN matches NaN, -0.0 does not match 0.0
    if type(a) is not type(b):
        return False
    if isinstance(a, float):
        if math.isnan(a) and math.isnan(b):
            return True
        return a == b and math.copysign(1.0, a) == math.copysign(1.0, b)
    try:
        return bool(a == b)
    except Exception:  # noqa: BLE001
        return a is b


class ConstantArbitrary(Arbitrary[T]):
    """Pick one of `values`, shrinking towards the first one.

    The context of a generated value is the index it was picked at.
    """

    def __init__(self, values: Sequence[T]) -> None:
        self.values = list(values)

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[T]:
        index = 0 if len(self.values) == 1 else mrng.next_int(0, len(self.values) - 1)
        return Value(self.values[index], index)

    def can_shrink_without_context(self, value: Any) -> bool:
        return any(_same(v, value) for v in self.values)

    def shrink(self, value: T, context: Any) -> Stream[Value[T]]:
        if context == 0 or _same(value, self.values[0]):
            return Stream.nil()
        return Stream.of(Value(self.values[0], 0))


def constant(value: T) -> Arbitrary[T]:
    """Always produce `value`; objects with a clone hook are cloned per run."""
    return ConstantArbitrary([value])


def constant_from(*values: T) -> Arbitrary[T]:
    """One of `values`, shrinking towards the first one."""
    if not values:
        msg = "constant_from expects at least one value"
        raise FastCheckError.invalid_configuration(msg)
    return ConstantArbitrary(values)


def _boolean_unmapper(value: Any) -> int:
    if not isinstance(value, bool):
        msg = f"Unsupported input type: {type(value).__name__}"
        raise TypeError(msg)
    return 1 if value else 0


def boolean() -> Arbitrary[bool]:
    """True or False, shrinking towards False."""
    return integer(0, 1).map(lambda v: v == 1, _boolean_unmapper).no_bias()
