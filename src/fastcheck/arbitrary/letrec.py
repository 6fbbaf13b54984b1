"""Recursive arbitraries through `letrec`."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from fastcheck.core.arbitrary import Arbitrary
from fastcheck.core.stream import Stream
from fastcheck.core.value import Value
from fastcheck.error import FastCheckError

if TYPE_CHECKING:
    from fastcheck.core.rng import Random

Tie = Callable[[str], Arbitrary[Any]]


class LazyArbitrary(Arbitrary[Any]):
    """Placeholder handed out by `tie`, resolved once the builder returned."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.underlying: Arbitrary[Any] | None = None

    def _resolved(self) -> Arbitrary[Any]:
        if self.underlying is None:
            msg = f"Lazy arbitrary {self.name!r} not correctly initialized"
            raise FastCheckError.invalid_configuration(msg)
        return self.underlying

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[Any]:
        return self._resolved().generate(mrng, bias_factor)

    def can_shrink_without_context(self, value: Any) -> bool:
        return self._resolved().can_shrink_without_context(value)

    def shrink(self, value: Any, context: Any) -> Stream[Value[Any]]:
        return self._resolved().shrink(value, context)


def letrec(builder: Callable[[Tie], dict[str, Arbitrary[Any]]]) -> dict[str, Arbitrary[Any]]:
    """Define mutually recursive arbitraries.

    `builder` receives a `tie` function returning a reference to any of the
    arbitraries it defines, usable before they exist:

        tree = letrec(lambda tie: {
            "node": tuple_(tie("tree"), tie("tree")),
            "tree": oneof(nat(), tie("node"), depth_size="small"),
        })["tree"]
    """
    lazy_arbs: dict[str, LazyArbitrary] = {}

    def tie(key: str) -> Arbitrary[Any]:
        if key not in lazy_arbs:
            lazy_arbs[key] = LazyArbitrary(key)
        return lazy_arbs[key]

    strict_arbs = builder(tie)
    for key, arb in strict_arbs.items():
        lazy_arb = lazy_arbs.get(key)
        if lazy_arb is None:
            lazy_arb = LazyArbitrary(key)
            lazy_arbs[key] = lazy_arb
        lazy_arb.underlying = arb
    return strict_arbs
