"""Tests for Stream and Value."""

from __future__ import annotations

from fastcheck.core.stream import Stream, lazy
from fastcheck.core.value import Value, clone_if_needed


class Counter:
    """Stateful object exposing the clone hook."""

    def __init__(self) -> None:
        self.count = 0

    def fc_clone(self) -> Counter:
        return Counter()


class TestStream:
    """Tests for Stream helpers."""

    def test_chaining(self) -> None:
        """Test map, filter, drop and take."""
        values = list(Stream(range(20)).map(lambda v: v * 2).filter(lambda v: v % 3 == 0).drop(1).take(3))
        assert values == [6, 12, 18]

    def test_join_is_lazy(self) -> None:
        """Joined producers only run once reached."""
        produced = []

        def producer() -> list[int]:
            produced.append(True)
            return [3, 4]

        s = Stream.of(1, 2).join(lazy(producer))
        assert next(s) == 1
        assert produced == []
        assert list(s) == [2, 3, 4]
        assert produced == [True]

    def test_get_nth_or_last(self) -> None:
        """Test nth element or last element."""
        assert Stream.of(1, 2, 3).get_nth_or_last(1) == 2
        assert Stream.of(1, 2, 3).get_nth_or_last(10) == 3
        assert Stream.nil().get_nth_or_last(0) is None

    def test_has_and_every(self) -> None:
        """Test has and every."""
        assert Stream.of(1, 2, 3).has(lambda v: v > 1) == (True, 2)
        assert Stream.of(1, 2, 3).has(lambda v: v > 5) == (False, None)
        assert Stream.of(2, 4).every(lambda v: v % 2 == 0)

    def test_flat_map_and_while(self) -> None:
        """Test flat_map, take_while and drop_while."""
        assert list(Stream.of(1, 2).flat_map(lambda v: [v, v])) == [1, 1, 2, 2]
        assert list(Stream(range(10)).take_while(lambda v: v < 3)) == [0, 1, 2]
        assert list(Stream(range(5)).drop_while(lambda v: v < 3)) == [3, 4]


class TestValue:
    """Tests for Value."""

    def test_plain_value(self) -> None:
        """Values without clone hook are returned as is."""
        v = Value(5, "ctx")
        assert v.value == 5
        assert v.value == 5
        assert v.context == "ctx"
        assert not v.has_to_be_cloned

    def test_cloneable_value(self) -> None:
        """First access returns the payload, later ones fresh clones."""
        counter = Counter()
        v = Value(counter, None)
        assert v.has_to_be_cloned
        assert v.value is counter
        second = v.value
        assert second is not counter
        assert isinstance(second, Counter)
        assert v.value_ is counter

    def test_custom_get_value(self) -> None:
        """A custom getter replaces the clone hook."""
        v = Value([1], None, lambda: [1])
        first = v.value
        assert v.value is not first

    def test_clone_if_needed(self) -> None:
        """Test clone_if_needed."""
        counter = Counter()
        assert clone_if_needed(counter) is not counter
        assert clone_if_needed(3) == 3
