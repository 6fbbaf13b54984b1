"""Arbitrary base class and its generic combinators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from fastcheck.core.stream import Stream
from fastcheck.core.value import Value
from fastcheck.error import FastCheckError

if TYPE_CHECKING:
    from fastcheck.core.rng import Random

T = TypeVar("T")
U = TypeVar("U")

# Consecutive rejected draws accepted by `filter` before giving up
MAX_FILTER_ATTEMPTS = 10_000


class Arbitrary(ABC, Generic[T]):
    """Generator of values of type T able to shrink the values it produced.

    Subclasses implement three operations:

    - `generate(mrng, bias_factor)`: draw a Value from the random stream.
      The result only depends on the state of `mrng` and on `bias_factor`.
      `bias_factor` is None for unbiased generation, otherwise edge values
      are preferred about once every `bias_factor` draws.
    - `can_shrink_without_context(value)`: whether `value` could have been
      produced by this arbitrary and can be shrunk without any context.
    - `shrink(value, context)`: lazy stream of strictly smaller candidates.
      `context` is the one attached to the Value by this arbitrary, or None
      for values coming from outside (user examples).
    """

    @abstractmethod
    def generate(self, mrng: Random, bias_factor: int | None) -> Value[T]: ...

    @abstractmethod
    def can_shrink_without_context(self, value: Any) -> bool: ...

    @abstractmethod
    def shrink(self, value: T, context: Any) -> Stream[Value[T]]: ...

    def filter(self, refinement: Callable[[T], bool]) -> Arbitrary[T]:
        """Only keep the values for which `refinement` returns True."""
        return FilterArbitrary(self, refinement)

    def map(
        self,
        mapper: Callable[[T], U],
        unmapper: Callable[[Any], T] | None = None,
    ) -> Arbitrary[U]:
        """Transform produced values with `mapper`.

        `unmapper` is only needed to shrink values that were not generated
        (examples). It must revert `mapper`: `unmapper(mapper(x)) == x`.
        """
        return MapArbitrary(self, mapper, unmapper)

    def chain(self, chainer: Callable[[T], Arbitrary[U]]) -> Arbitrary[U]:
        """Build a new arbitrary out of each produced value."""
        return ChainArbitrary(self, chainer)

    def no_shrink(self) -> Arbitrary[T]:
        return NoShrinkArbitrary(self)

    def no_bias(self) -> Arbitrary[T]:
        return NoBiasArbitrary(self)


@dataclass
class _ChainContext:
    original_bias: int | None
    original_value: Any
    original_context: Any
    stopped_for_original: bool
    chained_arbitrary: Arbitrary[Any]
    chained_context: Any
    cloned_mrng: Random


class ChainArbitrary(Arbitrary[U]):
    def __init__(self, arb: Arbitrary[T], chainer: Callable[[T], Arbitrary[U]]) -> None:
        self.arb = arb
        self.chainer = chainer

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[U]:
        cloned_mrng = mrng.clone()
        src = self.arb.generate(mrng, bias_factor)
        return self._value_chainer(src, mrng, cloned_mrng, bias_factor)

    def can_shrink_without_context(self, value: Any) -> bool:
        return False

    def shrink(self, value: U, context: Any) -> Stream[Value[U]]:
        if not isinstance(context, _ChainContext):
            return Stream.nil()
        ctx = context
        if ctx.stopped_for_original:
            source_shrinks: Stream[Value[U]] = Stream.nil()
        else:
            # Replaying from the random state of the original generation keeps
            # the chained part as close as possible to the failing one
            source_shrinks = self.arb.shrink(ctx.original_value, ctx.original_context).map(
                lambda v: self._value_chainer(
                    v, ctx.cloned_mrng.clone(), ctx.cloned_mrng, ctx.original_bias
                )
            )

        def with_chained(dst: Value[U]) -> Value[U]:
            new_context = _ChainContext(
                ctx.original_bias,
                ctx.original_value,
                ctx.original_context,
                True,
                ctx.chained_arbitrary,
                dst.context,
                ctx.cloned_mrng,
            )
            return Value(dst.value_, new_context)

        return source_shrinks.join(
            ctx.chained_arbitrary.shrink(value, ctx.chained_context).map(with_chained)
        )

    def _value_chainer(
        self,
        v: Value[T],
        generate_mrng: Random,
        cloned_mrng: Random,
        bias_factor: int | None,
    ) -> Value[U]:
        chained_arbitrary = self.chainer(v.value)
        dst = chained_arbitrary.generate(generate_mrng, bias_factor)
        context = _ChainContext(
            bias_factor, v.value_, v.context, False, chained_arbitrary, dst.context, cloned_mrng
        )
        return Value(dst.value_, context)


def _same_value(a: Any, b: Any) -> bool:
    # NaN is the only value not equal to itself
    return a == b or (a != a and b != b)  # noqa: PLR0124


@dataclass(frozen=True)
class _MapContext:
    original_value: Any
    original_context: Any


class MapArbitrary(Arbitrary[U]):
    def __init__(
        self,
        arb: Arbitrary[T],
        mapper: Callable[[T], U],
        unmapper: Callable[[Any], T] | None,
    ) -> None:
        self.arb = arb
        self.mapper = mapper
        self.unmapper = unmapper

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[U]:
        return self._map_value(self.arb.generate(mrng, bias_factor))

    def can_shrink_without_context(self, value: Any) -> bool:
        if self.unmapper is None:
            return False
        try:
            unmapped = self.unmapper(value)
        except Exception:  # noqa: BLE001
            # The unmapper rejects values it cannot revert
            return False
        if not self.arb.can_shrink_without_context(unmapped):
            return False
        self._check_round_trip(value, unmapped)
        return True

    def shrink(self, value: U, context: Any) -> Stream[Value[U]]:
        if isinstance(context, _MapContext):
            return self.arb.shrink(context.original_value, context.original_context).map(
                self._map_value
            )
        if self.unmapper is not None:
            unmapped = self.unmapper(value)
            self._check_round_trip(value, unmapped)
            return self.arb.shrink(unmapped, None).map(self._map_value)
        return Stream.nil()

    def _check_round_trip(self, value: Any, unmapped: Any) -> None:
        remapped = self.mapper(unmapped)
        if not _same_value(remapped, value):
            msg = (
                f"unmapper is not the inverse of mapper: mapper(unmapper({value!r})) "
                f"returned {remapped!r}"
            )
            raise FastCheckError.contract_violation(msg, {"value": value, "remapped": remapped})

    def _map_value(self, v: Value[T]) -> Value[U]:
        mapped = self.mapper(v.value)
        context = _MapContext(v.value_, v.context)
        if v.has_to_be_cloned:
            return Value(mapped, context, lambda: self.mapper(v.value))
        return Value(mapped, context)


class FilterArbitrary(Arbitrary[T]):
    def __init__(self, arb: Arbitrary[T], refinement: Callable[[T], bool]) -> None:
        self.arb = arb
        self.refinement = refinement

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[T]:
        for _ in range(MAX_FILTER_ATTEMPTS):
            g = self.arb.generate(mrng, bias_factor)
            if self._refinement_on_value(g):
                return g
        msg = (
            f"filter rejected {MAX_FILTER_ATTEMPTS} values in a row, "
            "its predicate is probably too strict for the underlying arbitrary"
        )
        raise FastCheckError.generation_exhausted(msg, {"attempts": MAX_FILTER_ATTEMPTS})

    def can_shrink_without_context(self, value: Any) -> bool:
        return self.arb.can_shrink_without_context(value) and bool(self.refinement(value))

    def shrink(self, value: T, context: Any) -> Stream[Value[T]]:
        return self.arb.shrink(value, context).filter(self._refinement_on_value)

    def _refinement_on_value(self, v: Value[T]) -> bool:
        return bool(self.refinement(v.value))


class NoShrinkArbitrary(Arbitrary[T]):
    def __init__(self, arb: Arbitrary[T]) -> None:
        self.arb = arb

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[T]:
        return self.arb.generate(mrng, bias_factor)

    def can_shrink_without_context(self, value: Any) -> bool:
        return self.arb.can_shrink_without_context(value)

    def shrink(self, value: T, context: Any) -> Stream[Value[T]]:
        return Stream.nil()

    def no_shrink(self) -> Arbitrary[T]:
        return self


class NoBiasArbitrary(Arbitrary[T]):
    def __init__(self, arb: Arbitrary[T]) -> None:
        self.arb = arb

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[T]:
        return self.arb.generate(mrng, None)

    def can_shrink_without_context(self, value: Any) -> bool:
        return self.arb.can_shrink_without_context(value)

    def shrink(self, value: T, context: Any) -> Stream[Value[T]]:
        return self.arb.shrink(value, context)

    def no_bias(self) -> Arbitrary[T]:
        return self


def is_arbitrary(instance: Any) -> bool:
    return isinstance(instance, Arbitrary)
