"""Render values for reports."""

from __future__ import annotations

import asyncio
from typing import Any

# Name of the method an object exposes to customise how reports render it
TO_STRING_METHOD = "fc_to_string"


def has_to_string_method(instance: Any) -> bool:
    return callable(getattr(instance, TO_STRING_METHOD, None))


def stringify(value: Any) -> str:
    """Readable and, when possible, copy-pastable rendering of `value`."""
    if has_to_string_method(value):
        return str(getattr(value, TO_STRING_METHOD)())
    if isinstance(value, asyncio.Future):
        if not value.done():
            return "<pending future>"
        if value.cancelled():
            return "<cancelled future>"
        error = value.exception()
        if error is not None:
            return f"<future raising {error!r}>"
        return f"<future resolved with {stringify(value.result())}>"
    if isinstance(value, tuple) and not hasattr(value, "_fields"):
        items = ", ".join(stringify(v) for v in value)
        return f"({items},)" if len(value) == 1 else f"({items})"
    if isinstance(value, list) and type(value) is not list:
        return "[" + ", ".join(stringify(v) for v in value) + "]"
    return repr(value)
