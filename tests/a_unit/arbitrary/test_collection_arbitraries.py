"""Tests for collection, product and choice arbitraries."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from fastcheck.arbitrary.array import array, shuffled_subarray, subarray, unique_array
from fastcheck.arbitrary.character import ascii_char, char, unicode_char
from fastcheck.arbitrary.constant import boolean, constant, constant_from
from fastcheck.arbitrary.integer import integer, nat
from fastcheck.arbitrary.letrec import letrec
from fastcheck.arbitrary.oneof import WeightedArbitrary, frequency, oneof, option
from fastcheck.arbitrary.string import mixed_case, string
from fastcheck.arbitrary.tuple import dictionary, record, tuple_
from fastcheck.check.parameters import configure_global
from fastcheck.core.arbitrary import Arbitrary
from fastcheck.core.rng import Random, mersenne
from fastcheck.core.value import Value
from fastcheck.error import ConfigurationError

seeds = st.integers(min_value=0, max_value=2**32)


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


class TestArray:
    """Tests for array and its variants."""

    @given(seeds)
    def test_lengths_within_bounds(self, seed: int) -> None:
        """Generated lists respect min_length and max_length."""
        arb = array(nat(), min_length=2, max_length=6)
        for bias in (None, 2):
            value = generate(arb, seed, bias).value
            assert 2 <= len(value) <= 6

    def test_default_size_bounds_generated_length(self) -> None:
        """Without max_length, the small size caps lengths at 10."""
        arb = array(nat())
        assert all(len(generate(arb, seed).value) <= 10 for seed in range(100))

    def test_base_size_is_read_globally(self) -> None:
        """base_size changes the default maximal length."""
        configure_global(base_size="xsmall")
        arb = array(nat())
        assert all(len(generate(arb, seed).value) <= 1 for seed in range(50))

    @given(seeds)
    def test_shrinks_respect_min_length(self, seed: int) -> None:
        """Shrink candidates never go below min_length."""
        arb = array(nat(100), min_length=3, max_length=8)
        value = generate(arb, seed)
        for candidate in arb.shrink(value.value_, value.context):
            assert len(candidate.value) >= 3

    def test_minimal_length_counterexample(self) -> None:
        """A list failing once it holds 5 items shrinks to five zeros."""
        arb = array(nat(100), max_length=50)
        start = Value([7, 42, 3, 99, 18, 5, 61, 24, 80, 11], None)
        assert minimize(arb, start, lambda v: len(v) >= 5) == [0, 0, 0, 0, 0]

    def test_empty_list_does_not_shrink(self) -> None:
        """The empty list is minimal."""
        assert list(array(nat()).shrink([], None)) == []

    def test_invalid_lengths(self) -> None:
        """Inconsistent lengths are rejected."""
        with pytest.raises(ConfigurationError):
            array(nat(), min_length=5, max_length=2)
        with pytest.raises(ConfigurationError):
            array(nat(), min_length=-1)

    @given(seeds)
    def test_unique_array_has_no_duplicates(self, seed: int) -> None:
        """unique_array never produces duplicates, shrinks included."""
        arb = unique_array(integer(0, 5), max_length=6)
        value = generate(arb, seed)
        assert len(set(value.value)) == len(value.value)
        for candidate in arb.shrink(value.value_, value.context):
            assert len(set(candidate.value)) == len(candidate.value)

    @given(seeds)
    def test_unique_array_with_selector(self, seed: int) -> None:
        """Uniqueness applies to the selected part of the items."""
        arb = unique_array(tuple_(integer(0, 3), nat()), selector=lambda t: t[0])
        keys = [t[0] for t in generate(arb, seed).value]
        assert len(set(keys)) == len(keys)

    def test_unique_array_rejects_duplicated_examples(self) -> None:
        """Lists holding duplicates cannot come from unique_array."""
        arb = unique_array(nat())
        assert arb.can_shrink_without_context([1, 2])
        assert not arb.can_shrink_without_context([1, 1])

    @given(seeds)
    def test_subarray_keeps_order(self, seed: int) -> None:
        """subarray keeps the relative order of the original items."""
        original = [1, 2, 3, 4, 5, 6]
        value = generate(subarray(original), seed).value
        positions = [original.index(v) for v in value]
        assert positions == sorted(positions)

    @given(seeds)
    def test_shuffled_subarray_items_come_from_original(self, seed: int) -> None:
        """shuffled_subarray picks distinct items of the original."""
        original = ["a", "b", "c", "d"]
        value = generate(shuffled_subarray(original, min_length=1), seed).value
        assert 1 <= len(value) <= 4
        assert len(set(value)) == len(value)
        assert set(value) <= set(original)


class TestProducts:
    """Tests for tuple_, record and dictionary."""

    def test_tuple_shrinks_one_component_at_a_time(self) -> None:
        """Each candidate changes a single component."""
        arb = tuple_(nat(), nat())
        for candidate in arb.shrink((10, 20), None):
            a, b = candidate.value
            assert (a == 10) != (b == 20)

    def test_tuple_minimal_pair(self) -> None:
        """A pair failing when a + b > 10 shrinks to a sum of 11."""
        arb = tuple_(nat(100), nat(100))
        a, b = minimize(arb, Value((60, 70), None), lambda t: t[0] + t[1] > 10)
        assert a + b == 11

    @given(seeds, st.sampled_from([None, 2]))
    def test_components_draw_from_separate_streams(self, seed: int, bias_factor: int | None) -> None:
        """A component does not depend on how much the previous ones drew."""
        flat = generate(tuple_(integer(0, 10), integer(0, 10**6)), seed, bias_factor).value
        nested_arb = tuple_(tuple_(integer(0, 10), integer(0, 10)), integer(0, 10**6))
        nested = generate(nested_arb, seed, bias_factor).value
        assert flat[1] == nested[1]

    @given(seeds)
    def test_record_fields_draw_from_separate_streams(self, seed: int) -> None:
        """Growing one field of a record leaves the other fields unchanged."""
        small = generate(record({"a": nat(), "b": nat(10**6)}), seed).value
        large = generate(record({"a": array(nat()), "b": nat(10**6)}), seed).value
        assert small["b"] == large["b"]

    def test_record_keys(self) -> None:
        """Records hold every key unless required_keys is given."""
        full = generate(record({"a": nat(), "b": boolean()}), 1).value
        assert set(full) == {"a", "b"}
        for seed in range(30):
            partial = generate(record({"a": nat(), "b": nat()}, required_keys=["a"]), seed).value
            assert "a" in partial
            assert set(partial) <= {"a", "b"}

    def test_record_unknown_required_key(self) -> None:
        """required_keys must exist in the model."""
        with pytest.raises(ConfigurationError):
            record({"a": nat()}, required_keys=["b"])

    @given(seeds)
    def test_dictionary(self, seed: int) -> None:
        """Dictionaries respect their key bounds."""
        value = generate(dictionary(string(max_length=3), nat(), max_keys=4), seed).value
        assert isinstance(value, dict)
        assert len(value) <= 4


class TestChoices:
    """Tests for constant, oneof, frequency and option."""

    def test_constant(self) -> None:
        """constant always produces its value and never shrinks."""
        value = generate(constant("x"), 3)
        assert value.value == "x"
        assert list(constant("x").shrink("x", value.context)) == []

    def test_constant_from_shrinks_to_first(self) -> None:
        """constant_from shrinks towards its first value."""
        arb = constant_from("a", "b", "c")
        assert [v.value for v in arb.shrink("c", None)] == ["a"]
        with pytest.raises(ConfigurationError):
            constant_from()

    def test_boolean_shrinks_to_false(self) -> None:
        """True shrinks to False."""
        assert [v.value for v in boolean().shrink(True, None)] == [False]

    @given(seeds)
    def test_oneof_picks_from_branches(self, seed: int) -> None:
        """oneof values come from one of the branches."""
        value = generate(oneof(constant("a"), integer(10, 20)), seed).value
        assert value == "a" or 10 <= value <= 20

    def test_frequency_ignores_zero_weights(self) -> None:
        """Branches with a zero weight are never picked."""
        arb = frequency((constant("never"), 0), WeightedArbitrary(constant("always"), 3))
        assert {generate(arb, seed).value for seed in range(50)} == {"always"}

    def test_frequency_validation(self) -> None:
        """Invalid weights are rejected."""
        with pytest.raises(ConfigurationError):
            frequency((constant(1), -1))
        with pytest.raises(ConfigurationError):
            frequency((constant(1), 0))
        with pytest.raises(ConfigurationError):
            oneof()

    def test_option_shrinks_to_nil_first(self) -> None:
        """Non nil values try nil as their first shrink."""
        arb = option(integer(1, 100))
        value = next(v for v in (generate(arb, seed) for seed in range(100)) if v.value is not None)
        first = next(iter(arb.shrink(value.value_, value.context)))
        assert first.value is None

    @settings(max_examples=30)
    @given(seeds)
    def test_recursive_structures_end(self, seed: int) -> None:
        """Depth bias makes letrec trees finite."""
        tree = letrec(
            lambda tie: {
                "node": tuple_(tie("tree"), tie("tree")),
                "tree": oneof(nat(), tie("node"), depth_size="small"),
            }
        )["tree"]

        def depth(t: Any) -> int:
            return 1 + max(depth(t[0]), depth(t[1])) if isinstance(t, tuple) else 0

        assert depth(generate(tree, seed, 2).value) < 50

    def test_oneof_max_depth(self) -> None:
        """Past max_depth only the first branch is used."""
        arbs = letrec(
            lambda tie: {
                "tree": oneof(nat(), tuple_(tie("tree"), tie("tree")), max_depth=1),
            }
        )
        for seed in range(30):
            value = generate(arbs["tree"], seed).value
            if isinstance(value, tuple):
                assert all(isinstance(v, int) for v in value)


class TestStrings:
    """Tests for characters, string and mixed_case."""

    @given(seeds)
    def test_char_is_printable_ascii(self, seed: int) -> None:
        """char produces printable ASCII characters."""
        c = generate(char(), seed).value
        assert 0x20 <= ord(c) <= 0x7E

    @given(seeds)
    def test_ascii_and_unicode_chars(self, seed: int) -> None:
        """ascii_char stays in ASCII, unicode_char avoids surrogates."""
        assert ord(generate(ascii_char(), seed).value) <= 0x7F
        code = ord(generate(unicode_char(), seed).value)
        assert not 0xD800 <= code <= 0xDFFF

    def test_char_shrinks_to_space(self) -> None:
        """Characters shrink towards the smallest printable one."""
        assert minimize(char(), Value("z", None), lambda c: True) == " "

    @given(seeds)
    def test_string_lengths(self, seed: int) -> None:
        """Strings respect their length bounds."""
        s = generate(string(min_length=1, max_length=4), seed).value
        assert 1 <= len(s) <= 4

    def test_string_example_shrinks(self) -> None:
        """Strings that were not generated can be shrunk."""
        arb = string()
        assert arb.can_shrink_without_context("abc")
        assert minimize(arb, Value("abc", None), lambda s: len(s) >= 2) == "  "

    @given(seeds)
    def test_mixed_case_only_toggles_case(self, seed: int) -> None:
        """mixed_case values only differ from the source by case."""
        value = generate(mixed_case(constant("hello world")), seed).value
        assert value.lower() == "hello world"

    def test_mixed_case_shrinks_towards_source(self) -> None:
        """Shrinking untoggles characters."""
        arb = mixed_case(constant("abcd"))
        value = next(v for v in (generate(arb, seed) for seed in range(50)) if v.value != "abcd")
        assert minimize(arb, value, lambda s: True) == "abcd"


def first_candidate_walk(arb: Arbitrary[Any], value: Value[Any], max_steps: int = 1000) -> int:
    """Follow the first shrink candidate until there is none, return the number of steps."""
    current = value
    for step in range(max_steps):
        candidate = next(iter(arb.shrink(current.value_, current.context)), None)
        if candidate is None:
            return step
        current = candidate
    msg = f"still shrinking after {max_steps} steps"
    raise AssertionError(msg)


class TestShrinkLaws:
    """Shrink candidates never grow and shrinking always comes to an end."""

    @given(seeds, st.sampled_from([None, 2]))
    def test_array_candidates_are_smaller(self, seed: int, bias_factor: int | None) -> None:
        """Candidates are shorter, or as long with smaller items."""
        arb = array(nat(100))
        value = generate(arb, seed, bias_factor)
        measure = (len(value.value), sum(value.value))
        for candidate in arb.shrink(value.value_, value.context):
            assert (len(candidate.value), sum(candidate.value)) < measure
        first_candidate_walk(arb, value)

    @given(seeds, st.sampled_from([None, 2]))
    def test_string_candidates_are_not_longer(self, seed: int, bias_factor: int | None) -> None:
        """String candidates never gain characters."""
        arb = string()
        value = generate(arb, seed, bias_factor)
        for candidate in arb.shrink(value.value_, value.context):
            assert len(candidate.value) <= len(value.value)
        first_candidate_walk(arb, value)

    @given(seeds, st.sampled_from([None, 2]))
    def test_tuple_candidates_move_towards_zero(self, seed: int, bias_factor: int | None) -> None:
        """No component of a candidate gets further from its target."""
        arb = tuple_(nat(1000), integer(-1000, 1000))
        value = generate(arb, seed, bias_factor)
        a, b = value.value
        for candidate in arb.shrink(value.value_, value.context):
            ca, cb = candidate.value
            assert ca <= a
            assert abs(cb) <= abs(b)
            assert (ca, cb) != (a, b)
        first_candidate_walk(arb, value)

    @given(seeds, st.sampled_from([None, 2]))
    def test_oneof_candidates_move_towards_zero(self, seed: int, bias_factor: int | None) -> None:
        """Candidates stay in the selected branch and get closer to zero."""
        arb = oneof(nat(100), integer(-100, -1))
        value = generate(arb, seed, bias_factor)
        for candidate in arb.shrink(value.value_, value.context):
            assert (candidate.value < 0) == (value.value < 0)
            assert abs(candidate.value) < abs(value.value)
        first_candidate_walk(arb, value)

    @given(seeds, st.sampled_from([None, 2]))
    def test_frequency_candidates_move_towards_zero(self, seed: int, bias_factor: int | None) -> None:
        """Weighted branches shrink like oneof ones."""
        arb = frequency((integer(-50, 50), 1), (nat(1000), 3))
        value = generate(arb, seed, bias_factor)
        for candidate in arb.shrink(value.value_, value.context):
            assert abs(candidate.value) < abs(value.value)
        first_candidate_walk(arb, value)
