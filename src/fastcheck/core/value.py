"""Generated values and the clone hook."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Generic, TypeVar

T = TypeVar("T")

# Name of the method an object exposes when each run needs a fresh copy of it
CLONE_METHOD = "fc_clone"


def has_clone_method(instance: Any) -> bool:
    return callable(getattr(instance, CLONE_METHOD, None))


def clone_if_needed(instance: T) -> T:
    if has_clone_method(instance):
        return getattr(instance, CLONE_METHOD)()
    return instance


class Value(Generic[T]):
    """A generated value paired with the context of the arbitrary producing it.

    The context is opaque: only the arbitrary that built the Value reads it,
    two Values holding equal payloads may carry different contexts.

    When the payload is stateful (it exposes a clone hook), `value` hands a
    fresh clone on every access after the first one and `value_` gives the
    raw payload.
    """

    __slots__ = ("_accessed", "_custom_get_value", "context", "has_to_be_cloned", "value_")

    def __init__(
        self,
        value: T,
        context: Any,
        custom_get_value: Callable[[], T] | None = None,
    ) -> None:
        self.value_ = value
        self.context = context
        self._custom_get_value = custom_get_value
        self.has_to_be_cloned = custom_get_value is not None or has_clone_method(value)
        self._accessed = False

    @property
    def value(self) -> T:
        if not self.has_to_be_cloned:
            return self.value_
        if not self._accessed:
            self._accessed = True
            return self.value_
        if self._custom_get_value is not None:
            return self._custom_get_value()
        return getattr(self.value_, CLONE_METHOD)()

    def __repr__(self) -> str:
        return f"Value({self.value_!r}, context={self.context!r})"
