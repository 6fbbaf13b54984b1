"""List arbitraries: `array`, `unique_array`, `subarray` and `shuffled_subarray`."""

from __future__ import annotations

import math
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, TypeVar

from fastcheck.arbitrary.integer import IntegerArbitrary
from fastcheck.arbitrary.size import (
    MAX_LENGTH_UPPER_BOUND,
    DepthIdentifier,
    SizeForArbitrary,
    get_depth_context_for,
    max_generated_length_from_size_for_arbitrary,
)
from fastcheck.core.arbitrary import Arbitrary
from fastcheck.core.stream import Stream, lazy
from fastcheck.core.value import Value, clone_if_needed
from fastcheck.error import FastCheckError

if TYPE_CHECKING:
    from fastcheck.core.rng import Random

T = TypeVar("T")

Comparator = Literal["SameValue", "SameValueZero", "IsStrictlyEqual"] | Callable[[Any, Any], bool]


def biased_max_length(min_length: int, max_length: int) -> int:
    if min_length == max_length:
        return min_length
    return min_length + int(math.floor(math.log2(max_length - min_length)))


def same_value(a: Any, b: Any) -> bool:
    """Equality telling -0.0 from 0.0 and considering NaN equal to itself."""
    if isinstance(a, float) and isinstance(b, float):
        if math.isnan(a) and math.isnan(b):
            return True
        return a == b and math.copysign(1.0, a) == math.copysign(1.0, b)
    return type(a) is type(b) and a == b


def same_value_zero(a: Any, b: Any) -> bool:
    if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
        return True
    return type(a) is type(b) and a == b


def strictly_equal(a: Any, b: Any) -> bool:
    return type(a) is type(b) and a == b


class CustomEqualSet:
    """Insertion ordered collection of Values rejecting equivalent entries."""

    def __init__(self, is_equal: Callable[[Value[Any], Value[Any]], bool]) -> None:
        self._is_equal = is_equal
        self._data: list[Value[Any]] = []

    def try_add(self, value: Value[Any]) -> bool:
        for existing in self._data:
            if self._is_equal(existing, value):
                return False
        self._data.append(value)
        return True

    def size(self) -> int:
        return len(self._data)

    def get_data(self) -> list[Value[Any]]:
        return self._data


SetBuilder = Callable[[], CustomEqualSet]


def build_unique_set_builder(
    selector: Callable[[Any], Any] | None, comparator: Comparator | None
) -> SetBuilder:
    select = selector if selector is not None else (lambda v: v)
    match comparator:
        case None | "SameValue":
            compare: Callable[[Any, Any], bool] = same_value
        case "SameValueZero":
            compare = same_value_zero
        case "IsStrictlyEqual":
            compare = strictly_equal
        case _ if callable(comparator):
            compare = comparator
        case _:
            msg = f"Unknown comparator for unique_array: {comparator!r}"
            raise FastCheckError.invalid_configuration(msg)

    def is_equal(a: Value[Any], b: Value[Any]) -> bool:
        return bool(compare(select(a.value_), select(b.value_)))

    return lambda: CustomEqualSet(is_equal)


class CloneableList(list):
    """List of generated items, some of which are stateful.

    Every clone re-reads the items through their Values so that stateful
    items get cloned as well.
    """

    def __init__(self, items: list[Any], shrinkables: list[Value[Any]]) -> None:
        super().__init__(items)
        self._shrinkables = shrinkables

    def fc_clone(self) -> CloneableList:
        return CloneableList([s.value for s in self._shrinkables], self._shrinkables)


@dataclass
class _ArrayContext:
    shrunk_once: bool
    length_context: Any
    items_contexts: list[Any] = field(default_factory=list)
    start_index: int = 0


class ArrayArbitrary(Arbitrary[list[T]]):
    """Lists of items drawn from `arb`.

    Shrinking first reduces the length by dropping items from the head, then
    shrinks items in place, then recurses on the tail keeping the head.
    """

    def __init__(
        self,
        arb: Arbitrary[T],
        min_length: int,
        max_generated_length: int,
        max_length: int,
        depth_identifier: DepthIdentifier | str | None,
        set_builder: SetBuilder | None,
    ) -> None:
        self.arb = arb
        self.min_length = min_length
        self.max_generated_length = max_generated_length
        self.max_length = max_length
        self.set_builder = set_builder
        self.length_arb = IntegerArbitrary(min_length, max_generated_length)
        self.depth_context = get_depth_context_for(depth_identifier)

    def _pre_filter(self, items: list[Value[T]]) -> list[Value[T]]:
        if self.set_builder is None:
            return items
        s = self.set_builder()
        for item in items:
            s.try_add(item)
        return s.get_data()

    def _generate_n_items_no_duplicates(
        self, set_builder: SetBuilder, n: int, mrng: Random, bias_factor_items: int | None
    ) -> list[Value[T]]:
        s = set_builder()
        # Stop after too many duplicates in a row, the result may be shorter than n
        skipped_in_row = 0
        while s.size() < n and skipped_in_row < self.max_generated_length:
            current = self.arb.generate(mrng, bias_factor_items)
            if s.try_add(current):
                skipped_in_row = 0
            else:
                skipped_in_row += 1
        return s.get_data()

    def _generate_n_items(self, n: int, mrng: Random, bias_factor_items: int | None) -> list[Value[T]]:
        return [self.arb.generate(mrng, bias_factor_items) for _ in range(n)]

    def _safe_generate(self, n: int, mrng: Random, bias_factor_items: int | None) -> list[Value[T]]:
        # Biased lengths have no impact on depth
        depth_impact = max(0, n - biased_max_length(self.min_length, self.max_generated_length))
        self.depth_context.depth += depth_impact
        try:
            if self.set_builder is not None:
                return self._generate_n_items_no_duplicates(
                    self.set_builder, n, mrng, bias_factor_items
                )
            return self._generate_n_items(n, mrng, bias_factor_items)
        finally:
            self.depth_context.depth -= depth_impact

    def _wrapper(
        self,
        items_raw: list[Value[T]],
        shrunk_once: bool,
        items_raw_length_context: Any,
        start_index: int,
    ) -> Value[list[T]]:
        # Shrunk items may hold duplicates, generated ones never do
        items = self._pre_filter(items_raw) if shrunk_once else items_raw
        cloneable = any(s.has_to_be_cloned for s in items)
        values = [s.value for s in items]
        context = _ArrayContext(
            shrunk_once,
            items_raw_length_context if len(items_raw) == len(items) else None,
            [s.context for s in items],
            start_index,
        )
        if cloneable:
            return Value(CloneableList(values, items), context)
        return Value(values, context)

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[list[T]]:
        size, bias_factor_items = self._apply_bias(mrng, bias_factor)
        return self._wrapper(self._safe_generate(size, mrng, bias_factor_items), False, None, 0)

    def _apply_bias(self, mrng: Random, bias_factor: int | None) -> tuple[int, int | None]:
        if bias_factor is None:
            return self.length_arb.generate(mrng, None).value, None
        if self.min_length == self.max_generated_length:
            return self.length_arb.generate(mrng, None).value, bias_factor
        if mrng.next_int(1, bias_factor) != 1:
            return self.length_arb.generate(mrng, None).value, None
        if mrng.next_int(1, bias_factor) != 1:
            return self.length_arb.generate(mrng, None).value, bias_factor
        max_biased = biased_max_length(self.min_length, self.max_generated_length)
        return IntegerArbitrary(self.min_length, max_biased).generate(mrng, None).value, bias_factor

    def can_shrink_without_context(self, value: Any) -> bool:
        if not isinstance(value, list) or not self.min_length <= len(value) <= self.max_length:
            return False
        if not all(self.arb.can_shrink_without_context(item) for item in value):
            return False
        # A value holding duplicates cannot come from a unique array
        return len(self._pre_filter([Value(item, None) for item in value])) == len(value)

    def _shrink_item_by_item(
        self, value: list[T], ctx: _ArrayContext, end_index: int
    ) -> Iterator[tuple[list[Value[T]], Any, int]]:
        def shrink_at(index: int) -> Iterator[tuple[list[Value[T]], Any, int]]:
            for v in self.arb.shrink(value[index], _context_at(ctx, index)):
                before = [
                    Value(clone_if_needed(item), _context_at(ctx, i))
                    for i, item in enumerate(value[:index])
                ]
                after = [
                    Value(clone_if_needed(item), _context_at(ctx, i + index + 1))
                    for i, item in enumerate(value[index + 1 :])
                ]
                # Entries before `index` are not shrunk again by sub-shrinks
                yield [*before, v, *after], None, index

        for index in range(ctx.start_index, end_index):
            yield from shrink_at(index)

    def _shrink_impl(
        self, value: list[T], context: Any
    ) -> Stream[tuple[list[Value[T]], Any, int]]:
        if len(value) == 0:
            return Stream.nil()
        ctx = context if isinstance(context, _ArrayContext) else _ArrayContext(False, None)
        # Without a length context after a first shrink, the first length
        # candidate was already tried; it is kept as a last chance near min_length
        skip_first = ctx.shrunk_once and ctx.length_context is None and len(value) > self.min_length + 1

        def by_length(length_value: Value[int]) -> tuple[list[Value[T]], Any, int]:
            slice_start = len(value) - length_value.value
            kept = [
                Value(clone_if_needed(item), _context_at(ctx, index + slice_start))
                for index, item in enumerate(value[slice_start:])
            ]
            return kept, length_value.context, 0

        def tail_shrinks() -> Iterator[tuple[list[Value[T]], Any, int]]:
            sub_context = _ArrayContext(False, None, ctx.items_contexts[1:], 0)
            head = value[0]
            for items, _, _ in self._shrink_impl(value[1:], sub_context):
                if self.min_length <= len(items) + 1:
                    yield [Value(clone_if_needed(head), _context_at(ctx, 0)), *items], None, 0

        end_index = 1 if len(value) > self.min_length else len(value)
        stream = (
            self.length_arb.shrink(len(value), ctx.length_context)
            .drop(1 if skip_first else 0)
            .map(by_length)
            .join(lazy(lambda: self._shrink_item_by_item(value, ctx, end_index)))
        )
        if len(value) > self.min_length:
            return stream.join(lazy(tail_shrinks))
        return stream

    def shrink(self, value: list[T], context: Any) -> Stream[Value[list[T]]]:
        return self._shrink_impl(value, context).map(
            lambda contextual: self._wrapper(contextual[0], True, contextual[1], contextual[2])
        )


def _context_at(ctx: _ArrayContext, index: int) -> Any:
    return ctx.items_contexts[index] if index < len(ctx.items_contexts) else None


def _check_lengths(name: str, min_length: int, max_length: int) -> None:
    if min_length < 0:
        msg = f"{name} expects min_length to be non-negative, got {min_length}"
        raise FastCheckError.invalid_configuration(msg)
    if max_length < min_length:
        msg = f"{name} expects max_length to be greater than or equal to min_length, got min_length={min_length} max_length={max_length}"
        raise FastCheckError.invalid_configuration(msg)


def array(
    arb: Arbitrary[T],
    *,
    min_length: int = 0,
    max_length: int | None = None,
    size: SizeForArbitrary = None,
    depth_identifier: DepthIdentifier | str | None = None,
) -> Arbitrary[list[T]]:
    """Lists of values produced by `arb`."""
    resolved_max = max_length if max_length is not None else MAX_LENGTH_UPPER_BOUND
    _check_lengths("array", min_length, resolved_max)
    max_generated = max_generated_length_from_size_for_arbitrary(
        size, min_length, resolved_max, max_length is not None
    )
    return ArrayArbitrary(arb, min_length, max_generated, resolved_max, depth_identifier, None)


def unique_array(
    arb: Arbitrary[T],
    *,
    min_length: int = 0,
    max_length: int | None = None,
    size: SizeForArbitrary = None,
    selector: Callable[[T], Any] | None = None,
    comparator: Comparator | None = None,
    depth_identifier: DepthIdentifier | str | None = None,
) -> Arbitrary[list[T]]:
    """Lists without duplicates, duplicates being spotted through `selector` and `comparator`.

    Args:
        arb: Arbitrary producing the items
        min_length: Minimal number of items
        max_length: Maximal number of items
        size: Size used to derive the maximal generated length
        selector: Projection of the items that must be unique (defaults to the item)
        comparator: "SameValue" (default), "SameValueZero", "IsStrictlyEqual"
            or a function telling whether two selected values are equal
        depth_identifier: Depth shared with recursive structures

    Returns:
        The unique array arbitrary
    """
    resolved_max = max_length if max_length is not None else MAX_LENGTH_UPPER_BOUND
    _check_lengths("unique_array", min_length, resolved_max)
    max_generated = max_generated_length_from_size_for_arbitrary(
        size, min_length, resolved_max, max_length is not None
    )
    set_builder = build_unique_set_builder(selector, comparator)
    array_arb = ArrayArbitrary(
        arb, min_length, max_generated, resolved_max, depth_identifier, set_builder
    )
    if min_length == 0:
        return array_arb
    # Too many duplicates in a row may stop the generation below min_length
    return array_arb.filter(lambda tab: len(tab) >= min_length)


def _is_subarray_of(source: Sequence[Any], small: Sequence[Any]) -> bool:
    remaining = list(source)
    for item in small:
        for index, candidate in enumerate(remaining):
            if same_value(candidate, item):
                del remaining[index]
                break
        else:
            return False
    return True


class SubarrayArbitrary(Arbitrary[list[T]]):
    def __init__(
        self, original: Sequence[T], is_ordered: bool, min_length: int, max_length: int
    ) -> None:
        if not 0 <= min_length <= len(original):
            msg = "subarray expects min_length to be between 0 and the size of the original list"
            raise FastCheckError.invalid_configuration(msg)
        if not 0 <= max_length <= len(original):
            msg = "subarray expects max_length to be between 0 and the size of the original list"
            raise FastCheckError.invalid_configuration(msg)
        if min_length > max_length:
            msg = "subarray expects min_length to be lower or equal to max_length"
            raise FastCheckError.invalid_configuration(msg)
        self.original = list(original)
        self.is_ordered = is_ordered
        self.min_length = min_length
        self.length_arb = IntegerArbitrary(min_length, max_length)
        self.biased_length_arb = (
            IntegerArbitrary(min_length, biased_max_length(min_length, max_length))
            if min_length != max_length
            else self.length_arb
        )

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[list[T]]:
        use_bias = bias_factor is not None and mrng.next_int(1, bias_factor) == 1
        size = (self.biased_length_arb if use_bias else self.length_arb).generate(mrng, None)
        remaining = list(range(len(self.original)))
        ids = []
        for _ in range(size.value):
            ids.append(remaining.pop(mrng.next_int(0, len(remaining) - 1)))
        if self.is_ordered:
            ids.sort()
        return Value([self.original[i] for i in ids], size.context)

    def can_shrink_without_context(self, value: Any) -> bool:
        if not isinstance(value, list):
            return False
        if not self.length_arb.can_shrink_without_context(len(value)):
            return False
        return _is_subarray_of(self.original, value)

    def shrink(self, value: list[T], context: Any) -> Stream[Value[list[T]]]:
        if len(value) == 0:
            return Stream.nil()

        def drop_head() -> Iterator[Value[list[T]]]:
            for shrunk in self.shrink(value[1:], None):
                if self.min_length <= len(shrunk.value) + 1:
                    yield Value([value[0], *shrunk.value], None)

        # One item at a time keeps the number of candidates reasonable
        by_length = self.length_arb.shrink(len(value), context).map(
            lambda new_size: Value(value[len(value) - new_size.value :], new_size.context)
        )
        if len(value) > self.min_length:
            return by_length.join(lazy(drop_head))
        return by_length


def subarray(
    original: Sequence[T], *, min_length: int = 0, max_length: int | None = None
) -> Arbitrary[list[T]]:
    """Ordered sub-lists of `original`."""
    return SubarrayArbitrary(
        original, True, min_length, max_length if max_length is not None else len(original)
    )


def shuffled_subarray(
    original: Sequence[T], *, min_length: int = 0, max_length: int | None = None
) -> Arbitrary[list[T]]:
    """Sub-lists of `original` in any order."""
    return SubarrayArbitrary(
        original, False, min_length, max_length if max_length is not None else len(original)
    )
