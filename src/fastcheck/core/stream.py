"""Lazy sequences used to describe shrink trees."""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterable, Iterator
from typing import Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")


class Stream(Generic[T]):
    """Single-pass wrapper around an iterator with chainable helpers.

    Every helper consumes the current stream: once `map`, `join`, ... have
    been called, the original stream must not be iterated anymore.
    """

    __slots__ = ("_source",)

    def __init__(self, source: Iterable[T]) -> None:
        self._source: Iterator[T] = iter(source)

    @staticmethod
    def nil() -> Stream[T]:
        return Stream(())

    @staticmethod
    def of(*elements: T) -> Stream[T]:
        return Stream(elements)

    def __iter__(self) -> Iterator[T]:
        return self._source

    def __next__(self) -> T:
        return next(self._source)

    def map(self, f: Callable[[T], U]) -> Stream[U]:
        return Stream(map(f, self._source))

    def flat_map(self, f: Callable[[T], Iterable[U]]) -> Stream[U]:
        return Stream(itertools.chain.from_iterable(map(f, self._source)))

    def filter(self, f: Callable[[T], bool]) -> Stream[T]:
        return Stream(filter(f, self._source))

    def drop(self, n: int) -> Stream[T]:
        return Stream(itertools.islice(self._source, n, None))

    def drop_while(self, f: Callable[[T], bool]) -> Stream[T]:
        return Stream(itertools.dropwhile(f, self._source))

    def take(self, n: int) -> Stream[T]:
        return Stream(itertools.islice(self._source, n))

    def take_while(self, f: Callable[[T], bool]) -> Stream[T]:
        return Stream(itertools.takewhile(f, self._source))

    def join(self, *others: Iterable[T]) -> Stream[T]:
        """Concatenate `others` after the current stream.

        Others are only iterated once the previous ones are exhausted, so
        passing `lazy(...)` streams keeps the construction lazy as well.
        """
        return Stream(itertools.chain(self._source, *others))

    def every(self, f: Callable[[T], bool]) -> bool:
        return all(f(v) for v in self._source)

    def has(self, f: Callable[[T], bool]) -> tuple[bool, T | None]:
        for v in self._source:
            if f(v):
                return True, v
        return False, None

    def get_nth_or_last(self, nth: int) -> T | None:
        """Return the nth element, or the last one if the stream is shorter."""
        last: T | None = None
        for index, v in enumerate(self._source):
            if index == nth:
                return v
            last = v
        return last


def stream(source: Iterable[T]) -> Stream[T]:
    return Stream(source)


def lazy(producer: Callable[[], Iterable[T]]) -> Iterator[T]:
    """Defer the creation of an iterable until its first element is requested."""
    yield from producer()
