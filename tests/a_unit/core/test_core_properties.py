"""Property-based tests for core components.

Int64 arithmetic is checked against Python integers, random streams
against their cloning guarantees.
"""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from fastcheck.core import int64
from fastcheck.core.int64 import Int64
from fastcheck.core.rng import Random, mersenne, run_randoms

# Values whose sums and differences stay within the representable range
half_range = st.integers(min_value=-(2**62), max_value=2**62)


class TestInt64Properties:
    """Int64 helpers agree with Python integers."""

    @given(half_range)
    def test_round_trip(self, value: int) -> None:
        """from_int then to_int is the identity."""
        assert Int64.from_int(value).to_int() == value

    @given(half_range, half_range)
    def test_add(self, a: int, b: int) -> None:
        """add matches integer addition."""
        assert int64.add(Int64.from_int(a), Int64.from_int(b)).to_int() == a + b

    @given(half_range, half_range)
    def test_subtract(self, a: int, b: int) -> None:
        """subtract matches integer subtraction."""
        assert int64.subtract(Int64.from_int(a), Int64.from_int(b)).to_int() == a - b

    @given(half_range, half_range)
    def test_comparisons(self, a: int, b: int) -> None:
        """is_strictly_smaller and is_equal match integer comparisons."""
        ia, ib = Int64.from_int(a), Int64.from_int(b)
        assert int64.is_strictly_smaller(ia, ib) == (a < b)
        assert int64.is_equal(ia, ib) == (a == b)

    @given(half_range)
    def test_halve_rounds_towards_zero(self, value: int) -> None:
        """halve divides the magnitude by two."""
        expected = abs(value) // 2 * (1 if value >= 0 else -1)
        assert int64.halve(Int64.from_int(value)).to_int() == expected

    @given(st.integers(min_value=1, max_value=2**63 - 1), st.booleans())
    def test_log_like(self, magnitude: int, negative: bool) -> None:
        """log_like is floor(log2(|a|)) with the sign of a."""
        value = -magnitude if negative else magnitude
        expected = magnitude.bit_length() - 1
        assert int64.log_like(Int64.from_int(value)).to_int() == (-expected if negative else expected)

    def test_zero_is_positive(self) -> None:
        """Negative zero is normalised."""
        zero = Int64(-1, 0, 0)
        assert zero.sign == 1
        assert int64.is_zero(zero)
        assert not int64.is_strictly_negative(zero)
        assert not int64.is_strictly_positive(zero)


class TestRandomProperties:
    """Random streams are reproducible and clones are independent."""

    @given(st.integers())
    def test_same_seed_same_draws(self, seed: int) -> None:
        """Two generators built from the same seed draw the same values."""
        a = Random(mersenne(seed))
        b = Random(mersenne(seed))
        assert [a.next_int(0, 1000) for _ in range(10)] == [b.next_int(0, 1000) for _ in range(10)]

    @given(st.integers())
    def test_clone_is_independent(self, seed: int) -> None:
        """Drawing from a clone does not change what the original produces."""
        reference = Random(mersenne(seed))
        expected = [reference.next_int(0, 1000) for _ in range(5)]

        original = Random(mersenne(seed))
        clone = original.clone()
        for _ in range(20):
            clone.next_double()
        assert [original.next_int(0, 1000) for _ in range(5)] == expected

    @given(st.integers(), st.integers(min_value=0, max_value=50), st.integers(min_value=0, max_value=50))
    def test_split_consumes_one_draw(self, seed: int, draws_a: int, draws_b: int) -> None:
        """The parent stream moves the same way whatever is drawn from its splits."""
        a = Random(mersenne(seed))
        b = Random(mersenne(seed))
        split_a, split_b = a.split(), b.split()
        for _ in range(draws_a):
            split_a.next_double()
        for _ in range(draws_b):
            split_b.next_int(0, 10**6)
        assert a.next_int(0, 10**9) == b.next_int(0, 10**9)
        assert a.split().next_int(0, 10**9) == b.split().next_int(0, 10**9)

    @given(st.integers(min_value=-100, max_value=100), st.integers(min_value=0, max_value=100))
    def test_next_int_within_bounds(self, low: int, span: int) -> None:
        """next_int stays within its bounds, both included."""
        mrng = Random(mersenne(low * 1000 + span))
        for _ in range(20):
            assert low <= mrng.next_int(low, low + span) <= low + span

    def test_run_randoms_depend_on_seed_and_index_only(self) -> None:
        """The n-th random of a run ignores what was drawn from the previous ones."""
        first = run_randoms(42, mersenne)
        second = run_randoms(42, mersenne)
        a0, b0 = next(first), next(second)
        for _ in range(50):
            a0.next_double()
        b0.next_double()
        assert next(first).next_int(0, 10**9) == next(second).next_int(0, 10**9)
