"""Product arbitraries: `tuple_`, `record` and `dictionary`."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from fastcheck.arbitrary.array import unique_array
from fastcheck.arbitrary.oneof import option
from fastcheck.arbitrary.size import DepthIdentifier, SizeForArbitrary
from fastcheck.core.arbitrary import Arbitrary, is_arbitrary
from fastcheck.core.stream import Stream
from fastcheck.core.value import Value, clone_if_needed
from fastcheck.error import FastCheckError

if TYPE_CHECKING:
    from fastcheck.core.rng import Random


class CloneableTuple(tuple):
    """Tuple holding at least one stateful item."""

    _values: list[Value[Any]]

    def __new__(cls, items: Sequence[Any], values: list[Value[Any]]) -> CloneableTuple:
        instance = super().__new__(cls, items)
        instance._values = values
        return instance

    def fc_clone(self) -> CloneableTuple:
        return CloneableTuple([v.value for v in self._values], self._values)


class TupleArbitrary(Arbitrary[tuple[Any, ...]]):
    """Fixed size tuples, one component per arbitrary.

    Each component is generated from its own stream split from `mrng`, so
    the draws of one component never shift the values of the next ones.
    Shrinking shrinks a single component at a time, first component first.
    The context is the list of the component contexts.
    """

    def __init__(self, arbs: Sequence[Arbitrary[Any]]) -> None:
        for index, arb in enumerate(arbs):
            if not is_arbitrary(arb):
                msg = f"Invalid parameter encountered at index {index}: expecting an Arbitrary"
                raise FastCheckError.invalid_configuration(msg)
        self.arbs = list(arbs)

    @staticmethod
    def _wrapper(values: list[Value[Any]]) -> Value[tuple[Any, ...]]:
        items = [v.value for v in values]
        contexts = [v.context for v in values]
        if any(v.has_to_be_cloned for v in values):
            return Value(CloneableTuple(items, values), contexts)
        return Value(tuple(items), contexts)

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[tuple[Any, ...]]:
        return self._wrapper([arb.generate(mrng.split(), bias_factor) for arb in self.arbs])

    def can_shrink_without_context(self, value: Any) -> bool:
        if not isinstance(value, tuple | list) or len(value) != len(self.arbs):
            return False
        return all(arb.can_shrink_without_context(v) for arb, v in zip(self.arbs, value, strict=True))

    def shrink(self, value: tuple[Any, ...], context: Any) -> Stream[Value[tuple[Any, ...]]]:
        contexts: list[Any] = context if isinstance(context, list) else [None] * len(self.arbs)

        def shrinks_for_index(index: int) -> Iterator[Value[tuple[Any, ...]]]:
            for shrunk in self.arbs[index].shrink(value[index], contexts[index]):
                next_values = [
                    Value(clone_if_needed(v), contexts[i]) for i, v in enumerate(value)
                ]
                next_values[index] = shrunk
                yield self._wrapper(next_values)

        return Stream(shrinks_for_index(index) for index in range(len(self.arbs))).flat_map(
            lambda shrinks: shrinks
        )


def tuple_(*arbs: Arbitrary[Any]) -> Arbitrary[tuple[Any, ...]]:
    """Tuples whose n-th item comes from the n-th arbitrary."""
    return TupleArbitrary(arbs)


_NO_KEY: Any = object()


def record(
    model: Mapping[str, Arbitrary[Any]],
    *,
    required_keys: Sequence[str] | None = None,
) -> Arbitrary[dict[str, Any]]:
    """Dictionaries shaped after `model`.

    Every key is present unless `required_keys` is given, in which case the
    other keys may be missing.
    """
    keys = list(model)
    if required_keys is not None:
        for key in required_keys:
            if key not in model:
                msg = f"required_keys cannot reference keys that have not been defined in model: {key!r}"
                raise FastCheckError.invalid_configuration(msg)
    required = set(keys) if required_keys is None else set(required_keys)
    arbs = [model[k] if k in required else option(model[k], nil=_NO_KEY) for k in keys]

    def to_record(values: tuple[Any, ...]) -> dict[str, Any]:
        return {k: v for k, v in zip(keys, values, strict=True) if v is not _NO_KEY}

    def from_record(value: Any) -> tuple[Any, ...]:
        if not isinstance(value, dict):
            msg = f"Unsupported type for record: {type(value).__name__}"
            raise TypeError(msg)
        if any(k not in model for k in value) or any(k not in value for k in required):
            msg = "Keys do not match the record model"
            raise ValueError(msg)
        return tuple(value.get(k, _NO_KEY) for k in keys)

    return tuple_(*arbs).map(to_record, from_record)


def dictionary(
    key_arb: Arbitrary[Any],
    value_arb: Arbitrary[Any],
    *,
    min_keys: int = 0,
    max_keys: int | None = None,
    size: SizeForArbitrary = None,
    depth_identifier: DepthIdentifier | str | None = None,
) -> Arbitrary[dict[Any, Any]]:
    """Dictionaries with keys from `key_arb` and values from `value_arb`."""

    def to_entries(value: Any) -> list[tuple[Any, Any]]:
        if not isinstance(value, dict):
            msg = f"Unsupported type for dictionary: {type(value).__name__}"
            raise TypeError(msg)
        return list(value.items())

    return unique_array(
        tuple_(key_arb, value_arb),
        min_length=min_keys,
        max_length=max_keys,
        size=size,
        selector=lambda entry: entry[0],
        depth_identifier=depth_identifier,
    ).map(dict, to_entries)
