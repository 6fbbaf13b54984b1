"""Property-based tests for integer and floating point arbitraries.

Shrinkers are exercised the way the runner uses them: keep the first
candidate that is still a counterexample, stop when none is.
"""

from __future__ import annotations

import math
import struct
from collections.abc import Callable
from typing import Any

import pytest
from hypothesis import given
from hypothesis import strategies as st

from fastcheck.arbitrary.floating import double, double_to_index, float32, index_to_double
from fastcheck.arbitrary.integer import big_int, integer, nat
from fastcheck.core.arbitrary import Arbitrary
from fastcheck.core.rng import Random, mersenne
from fastcheck.core.value import Value
from fastcheck.error import ConfigurationError, ContractViolationError, GenerationExhaustedError


def generate(arb: Arbitrary[Any], seed: int, bias_factor: int | None = None) -> Value[Any]:
    return arb.generate(Random(mersenne(seed)), bias_factor)


def minimize(arb: Arbitrary[Any], value: Value[Any], is_counterexample: Callable[[Any], bool]) -> Any:
    current = value
    while True:
        for candidate in arb.shrink(current.value_, current.context):
            if is_counterexample(candidate.value):
                current = candidate
                break
        else:
            return current.value


class TestIntegerArbitrary:
    """Tests for integer, nat and big_int."""

    @given(st.integers(min_value=0, max_value=2**31), st.integers(min_value=-100, max_value=100))
    def test_generate_within_bounds(self, seed: int, low: int) -> None:
        """Generated values stay within [min, max], with or without bias."""
        arb = integer(low, low + 50)
        for bias in (None, 2, 10):
            assert low <= generate(arb, seed, bias).value <= low + 50

    @given(st.integers(min_value=-10_000, max_value=10_000))
    def test_shrinks_get_closer_to_zero(self, value: int) -> None:
        """Every shrink candidate is strictly closer to zero."""
        arb = integer(-10_000, 10_000)
        for candidate in arb.shrink(value, None):
            assert abs(candidate.value) < abs(value)
            assert -10_000 <= candidate.value <= 10_000

    def test_zero_does_not_shrink(self) -> None:
        """Zero is the smallest integer."""
        assert list(integer().shrink(0, None)) == []

    @given(st.integers(min_value=10, max_value=10**6))
    def test_minimal_counterexample(self, start: int) -> None:
        """Shrinking `n >= 10` always ends on 10."""
        arb = integer(0, 10**6)
        assert minimize(arb, Value(start, None), lambda v: v >= 10) == 10

    @given(st.integers(min_value=-(10**6), max_value=-10))
    def test_minimal_negative_counterexample(self, start: int) -> None:
        """Negative values shrink up to the boundary."""
        arb = integer(-(10**6), 0)
        assert minimize(arb, Value(start, None), lambda v: v <= -10) == -10

    def test_shrinks_towards_closest_bound_when_zero_excluded(self) -> None:
        """Without zero in range, the target is the bound closest to zero."""
        assert minimize(integer(5, 100), Value(80, None), lambda v: True) == 5
        assert minimize(integer(-100, -5), Value(-80, None), lambda v: True) == -5

    def test_nat_and_big_int(self) -> None:
        """Test nat and big_int bounds."""
        assert generate(nat(3), 1).value in range(4)
        value = generate(big_int(), 7).value
        assert -(1 << 255) <= value < (1 << 255)

    def test_invalid_bounds(self) -> None:
        """Invalid bounds are configuration errors."""
        with pytest.raises(ConfigurationError):
            integer(5, 1)
        with pytest.raises(ConfigurationError):
            integer(0.5, 1)  # type: ignore[arg-type]
        with pytest.raises(ConfigurationError):
            nat(-1)
        with pytest.raises(ConfigurationError):
            big_int(10, 0)

    def test_can_shrink_without_context(self) -> None:
        """Only integers within bounds are recognised."""
        arb = integer(0, 10)
        assert arb.can_shrink_without_context(3)
        assert not arb.can_shrink_without_context(11)
        assert not arb.can_shrink_without_context(True)
        assert not arb.can_shrink_without_context("3")


class TestCombinators:
    """Tests for map, filter and chain."""

    def test_map_shrinks_through_source(self) -> None:
        """Mapped values shrink as their source does."""
        arb = integer(0, 1000).map(lambda v: v * 2)
        value = generate(arb, 3)
        assert value.value % 2 == 0
        for candidate in arb.shrink(value.value_, value.context):
            assert candidate.value % 2 == 0

    def test_map_with_unmapper_shrinks_examples(self) -> None:
        """An unmapper lets values without context shrink."""
        arb = integer(0, 1000).map(lambda v: v * 2, lambda v: v // 2)
        assert arb.can_shrink_without_context(40)
        assert [c.value for c in arb.shrink(40, None)][0] == 0

    def test_map_unmapper_contract_violation(self) -> None:
        """An unmapper that does not revert the mapper is reported."""
        arb = integer(0, 1000).map(lambda v: v * 2, lambda v: v)
        with pytest.raises(ContractViolationError):
            arb.shrink(4, None)

    def test_filter(self) -> None:
        """Filtered values and their shrinks satisfy the predicate."""
        arb = integer(0, 1000).filter(lambda v: v % 2 == 1)
        value = generate(arb, 11)
        assert value.value % 2 == 1
        assert all(c.value % 2 == 1 for c in arb.shrink(value.value_, value.context))

    def test_filter_exhaustion(self) -> None:
        """A filter rejecting everything gives up."""
        arb = integer(0, 10).filter(lambda v: False)
        with pytest.raises(GenerationExhaustedError):
            generate(arb, 0)

    def test_chain(self) -> None:
        """Chained arbitraries depend on the first value."""
        arb = nat(10).chain(lambda n: integer(n, n + 5))
        for seed in range(20):
            assert 0 <= generate(arb, seed).value <= 15

    def test_no_shrink(self) -> None:
        """no_shrink removes shrink candidates."""
        arb = integer(0, 100).no_shrink()
        assert list(arb.shrink(50, None)) == []


class TestFloatingArbitraries:
    """Tests for double and float32."""

    @given(st.floats(allow_nan=False))
    def test_index_round_trip(self, d: float) -> None:
        """Doubles map to ordered indexes and back."""
        assert index_to_double(double_to_index(d)) == d

    @given(st.floats(allow_nan=False), st.floats(allow_nan=False))
    def test_index_is_monotonic(self, a: float, b: float) -> None:
        """Index order follows float order."""
        if a < b:
            assert double_to_index(a).to_int() < double_to_index(b).to_int()

    def test_bounds_respected(self) -> None:
        """Generated doubles stay within bounds."""
        arb = double(min=-1.0, max=1.0, no_nan=True)
        for seed in range(50):
            assert -1.0 <= generate(arb, seed, 2).value <= 1.0

    def test_no_nan(self) -> None:
        """NaN is never produced when excluded."""
        arb = double(no_nan=True)
        for seed in range(100):
            assert not math.isnan(generate(arb, seed, 2).value)

    def test_float32_values_are_representable(self) -> None:
        """float32 only produces 32-bit floats."""
        arb = float32(no_nan=True)
        for seed in range(50):
            value = generate(arb, seed).value
            assert math.isinf(value) or struct.unpack("<f", struct.pack("<f", value))[0] == value

    def test_invalid_bounds(self) -> None:
        """min greater than max is rejected."""
        with pytest.raises(ConfigurationError):
            double(min=1.0, max=0.0)
