"""Branching arbitraries: `frequency`, `oneof` and `option`."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from fastcheck.arbitrary.constant import constant
from fastcheck.arbitrary.size import (
    DepthContext,
    DepthIdentifier,
    DepthSize,
    depth_bias_from_size_for_arbitrary,
    get_depth_context_for,
)
from fastcheck.core.arbitrary import Arbitrary, is_arbitrary
from fastcheck.core.stream import Stream
from fastcheck.core.value import Value
from fastcheck.error import FastCheckError

if TYPE_CHECKING:
    from fastcheck.core.rng import Random

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NO_FALLBACK: Any = object()


@dataclass(frozen=True)
class WeightedArbitrary(Generic[T]):
    """A branch of `frequency`.

    `fallback_value`, when given on the first branch, is the value shrinks
    jump to when cross shrinking a value that was not generated.
    """

    arbitrary: Arbitrary[T]
    weight: int
    fallback_value: Any = _NO_FALLBACK


@dataclass
class _FrequencyContext:
    selected_index: int
    original_bias: int | None
    original_context: Any
    cloned_mrng_for_fallback_first: Random | None
    cached_generated_for_first: Value[Any] | None = None


class FrequencyArbitrary(Arbitrary[T]):
    """Pick a branch with a probability proportional to its weight.

    As depth increases, the first branch gets an extra weight of
    `total_weight * (floor((1 + depth_bias) ** depth) - 1)` so that recursive
    structures end. Past `max_depth` only the first branch is used.
    """

    def __init__(
        self,
        warbs: Sequence[WeightedArbitrary[T]],
        depth_bias: float,
        max_depth: float,
        with_cross_shrink: bool,
        context: DepthContext,
    ) -> None:
        self.warbs = list(warbs)
        self.depth_bias = depth_bias
        self.max_depth = max_depth
        self.with_cross_shrink = with_cross_shrink
        self.context = context
        self.cumulated_weights: list[int] = []
        current_weight = 0
        for warb in self.warbs:
            current_weight += warb.weight
            self.cumulated_weights.append(current_weight)
        self.total_weight = current_weight

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[T]:
        if self._must_generate_first():
            return self._safe_generate_for_index(mrng, 0, bias_factor)
        selected = mrng.next_int(self._compute_neg_depth_benefit(), self.total_weight - 1)
        for index, cumulated in enumerate(self.cumulated_weights):
            if selected < cumulated:
                return self._safe_generate_for_index(mrng, index, bias_factor)
        msg = "Unable to generate from frequency"
        raise FastCheckError.generation_exhausted(msg)

    def can_shrink_without_context(self, value: Any) -> bool:
        return self._can_shrink_without_context_index(value) != -1

    def shrink(self, value: T, context: Any) -> Stream[Value[T]]:
        if isinstance(context, _FrequencyContext):
            selected_index = context.selected_index
            original_bias = context.original_bias
            original_shrinks = (
                self.warbs[selected_index]
                .arbitrary.shrink(value, context.original_context)
                .map(lambda v: self._map_into_value(selected_index, v, None, original_bias))
            )
            if context.cloned_mrng_for_fallback_first is not None:
                if context.cached_generated_for_first is None:
                    context.cached_generated_for_first = self._safe_generate_for_index(
                        context.cloned_mrng_for_fallback_first.clone(), 0, original_bias
                    )
                return Stream.of(context.cached_generated_for_first).join(original_shrinks)
            return original_shrinks
        potential_index = self._can_shrink_without_context_index(value)
        if potential_index == -1:
            return Stream.nil()
        return self._default_shrink_for_first(potential_index).join(
            self.warbs[potential_index]
            .arbitrary.shrink(value, None)
            .map(lambda v: self._map_into_value(potential_index, v, None, None))
        )

    def _default_shrink_for_first(self, selected_index: int) -> Stream[Value[T]]:
        self.context.depth += 1
        try:
            fallback = self.warbs[0].fallback_value
            if not self._must_fallback_to_first_in_shrink(selected_index) or fallback is _NO_FALLBACK:
                return Stream.nil()
        finally:
            self.context.depth -= 1
        return Stream.of(self._map_into_value(0, Value(fallback, None), None, None))

    def _can_shrink_without_context_index(self, value: Any) -> int:
        if self._must_generate_first():
            return 0 if self.warbs[0].arbitrary.can_shrink_without_context(value) else -1
        self.context.depth += 1
        try:
            for index, warb in enumerate(self.warbs):
                if warb.weight != 0 and warb.arbitrary.can_shrink_without_context(value):
                    return index
            return -1
        finally:
            self.context.depth -= 1

    def _map_into_value(
        self,
        index: int,
        value: Value[T],
        cloned_mrng_for_fallback_first: Random | None,
        bias_factor: int | None,
    ) -> Value[T]:
        context = _FrequencyContext(
            index, bias_factor, value.context, cloned_mrng_for_fallback_first
        )
        if value.has_to_be_cloned:
            return Value(value.value_, context, lambda: value.value)
        return Value(value.value_, context)

    def _safe_generate_for_index(
        self, mrng: Random, index: int, bias_factor: int | None
    ) -> Value[T]:
        self.context.depth += 1
        try:
            value = self.warbs[index].arbitrary.generate(mrng, bias_factor)
            cloned_mrng = mrng.clone() if self._must_fallback_to_first_in_shrink(index) else None
            return self._map_into_value(index, value, cloned_mrng, bias_factor)
        finally:
            self.context.depth -= 1

    def _must_generate_first(self) -> bool:
        return self.max_depth <= self.context.depth

    def _must_fallback_to_first_in_shrink(self, index: int) -> bool:
        return index != 0 and self.with_cross_shrink and self.warbs[0].weight != 0

    def _compute_neg_depth_benefit(self) -> int:
        if self.depth_bias <= 0 or self.warbs[0].weight == 0:
            return 0
        depth_benefit = math.floor((1 + self.depth_bias) ** self.context.depth) - 1
        return -(self.total_weight * depth_benefit)


def _to_weighted(entry: WeightedArbitrary[T] | tuple[Arbitrary[T], int]) -> WeightedArbitrary[T]:
    if isinstance(entry, WeightedArbitrary):
        return entry
    if isinstance(entry, tuple) and len(entry) == 2:
        return WeightedArbitrary(entry[0], entry[1])
    msg = f"frequency expects weighted arbitraries, got {entry!r}"
    raise FastCheckError.invalid_configuration(msg)


def _build_frequency(
    warbs: Sequence[WeightedArbitrary[T]],
    label: str,
    *,
    with_cross_shrink: bool,
    max_depth: int | None,
    depth_size: DepthSize,
    depth_identifier: DepthIdentifier | str | None,
) -> FrequencyArbitrary[T]:
    if not warbs:
        msg = f"{label} expects at least one weighted arbitrary"
        raise FastCheckError.invalid_configuration(msg)
    total_weight = 0
    for index, warb in enumerate(warbs):
        if not is_arbitrary(warb.arbitrary):
            msg = f"{label} expects arbitraries, got {warb.arbitrary!r} at index {index}"
            raise FastCheckError.invalid_configuration(msg)
        if not isinstance(warb.weight, int) or isinstance(warb.weight, bool):
            msg = f"{label} expects weights to be integer values"
            raise FastCheckError.invalid_configuration(msg)
        if warb.weight < 0:
            msg = f"{label} expects weights to be greater than or equal to 0"
            raise FastCheckError.invalid_configuration(msg)
        total_weight += warb.weight
    if total_weight <= 0:
        msg = f"{label} expects the sum of weights to be strictly greater than 0"
        raise FastCheckError.invalid_configuration(msg)
    depth_bias = depth_bias_from_size_for_arbitrary(depth_size, max_depth is not None)
    logger.debug("%s built with %d branches, depth bias %s", label, len(warbs), depth_bias)
    return FrequencyArbitrary(
        warbs,
        depth_bias,
        max_depth if max_depth is not None else math.inf,
        with_cross_shrink,
        get_depth_context_for(depth_identifier),
    )


def frequency(
    *weighted: WeightedArbitrary[Any] | tuple[Arbitrary[Any], int],
    with_cross_shrink: bool = False,
    max_depth: int | None = None,
    depth_size: DepthSize = None,
    depth_identifier: DepthIdentifier | str | None = None,
) -> Arbitrary[Any]:
    """One of the arbitraries, chosen with a probability proportional to its weight.

    Args:
        *weighted: WeightedArbitrary instances or (arbitrary, weight) pairs
        with_cross_shrink: Shrink towards a value of the first branch first
        max_depth: Depth after which only the first branch is used
        depth_size: Speed at which the first branch gets favoured with depth
        depth_identifier: Depth shared with other recursive arbitraries

    Returns:
        The frequency arbitrary
    """
    return _build_frequency(
        [_to_weighted(w) for w in weighted],
        "frequency",
        with_cross_shrink=with_cross_shrink,
        max_depth=max_depth,
        depth_size=depth_size,
        depth_identifier=depth_identifier,
    )


def oneof(
    *arbs: Arbitrary[Any],
    with_cross_shrink: bool = False,
    max_depth: int | None = None,
    depth_size: DepthSize = None,
    depth_identifier: DepthIdentifier | str | None = None,
) -> Arbitrary[Any]:
    """One of the arbitraries, all branches being equally likely."""
    return _build_frequency(
        [WeightedArbitrary(arb, 1) for arb in arbs],
        "oneof",
        with_cross_shrink=with_cross_shrink,
        max_depth=max_depth,
        depth_size=depth_size,
        depth_identifier=depth_identifier,
    )


def option(
    arb: Arbitrary[T],
    *,
    nil: Any = None,
    freq: int = 5,
    max_depth: int | None = None,
    depth_size: DepthSize = None,
    depth_identifier: DepthIdentifier | str | None = None,
) -> Arbitrary[T | Any]:
    """`nil` about once every `freq` draws, a value of `arb` otherwise.

    Values shrink towards `nil` first.
    """
    return _build_frequency(
        [WeightedArbitrary(constant(nil), 1, nil), WeightedArbitrary(arb, freq)],
        "option",
        with_cross_shrink=True,
        max_depth=max_depth,
        depth_size=depth_size,
        depth_identifier=depth_identifier,
    )
