"""Seeded random source shared by all arbitraries."""

from __future__ import annotations

import copy
import random
from collections.abc import Callable, Iterator
from typing import Protocol


class RandomGenerator(Protocol):
    """Subset of `random.Random` used by the engine."""

    def randint(self, a: int, b: int) -> int: ...

    def random(self) -> float: ...

    def getrandbits(self, k: int) -> int: ...

    def seed(self, a: int) -> None: ...


RandomFactory = Callable[[int], RandomGenerator]


def mersenne(seed: int) -> RandomGenerator:
    """Default generator: the Mersenne Twister of the standard library."""
    return random.Random(seed)


class Random:
    """Mutable random stream handed to `Arbitrary.generate`.

    Draws mutate the stream in place. `clone` returns an independent copy
    continuing from the current state: drawing from the copy never changes
    what the original will produce next.
    """

    def __init__(self, generator: RandomGenerator) -> None:
        self._generator = generator

    def clone(self) -> Random:
        return Random(copy.deepcopy(self._generator))

    def split(self) -> Random:
        """Independent stream seeded from a single draw of this one.

        The parent advances by exactly one draw, whatever is later drawn
        from the returned stream.
        """
        generator = copy.deepcopy(self._generator)
        generator.seed(self._generator.getrandbits(64))
        return Random(generator)

    def next_int(self, min_value: int, max_value: int) -> int:
        """Uniform integer in [min_value, max_value], bounds included."""
        return self._generator.randint(min_value, max_value)

    def next_big_int(self, min_value: int, max_value: int) -> int:
        """Same as `next_int`; Python integers have no width limit."""
        return self._generator.randint(min_value, max_value)

    def next_double(self) -> float:
        """Uniform float in [0, 1)."""
        return self._generator.random()

    def next_bits(self, num_bits: int) -> int:
        return self._generator.getrandbits(num_bits)


def run_randoms(seed: int, factory: RandomFactory) -> Iterator[Random]:
    """Yield one independent Random per run, derived from `seed`.

    Sub-seeds are drawn eagerly from a root generator so that the n-th
    Random only depends on `seed` and `n`, whatever was drawn from the
    previous ones.
    """
    root = factory(seed)
    while True:
        yield Random(factory(root.getrandbits(64)))
