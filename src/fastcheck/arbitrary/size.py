"""Size and depth settings shared by collection and recursive arbitraries.

A size (`xsmall` to `xlarge`, `max`, or a relative offset `-4` to `+4`
applied on top of the globally configured base size) controls the maximal
length generated by default and how fast recursive structures stop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from fastcheck.check.parameters import read_configure_global
from fastcheck.error import FastCheckError

MAX_LENGTH_UPPER_BOUND = 0x7FFFFFFF

Size = Literal["xsmall", "small", "medium", "large", "xlarge"]
RelativeSize = Literal["-4", "-3", "-2", "-1", "=", "+1", "+2", "+3", "+4"]
SizeForArbitrary = Size | RelativeSize | Literal["max"] | None
DepthSize = SizeForArbitrary | float | int

DEFAULT_SIZE: Size = "small"

_ORDERED_SIZE: tuple[Size, ...] = ("xsmall", "small", "medium", "large", "xlarge")
_ORDERED_RELATIVE_SIZE: tuple[RelativeSize, ...] = (
    "-4",
    "-3",
    "-2",
    "-1",
    "=",
    "+1",
    "+2",
    "+3",
    "+4",
)


def max_length_from_min_length(min_length: int, size: Size) -> int:
    match size:
        case "xsmall":
            return int(1.1 * min_length) + 1
        case "small":
            return 2 * min_length + 10
        case "medium":
            return 11 * min_length + 100
        case "large":
            return 101 * min_length + 1000
        case "xlarge":
            return 1001 * min_length + 10000
        case _:
            msg = f"Unable to compute lengths based on received size: {size}"
            raise FastCheckError.invalid_configuration(msg)


def relative_size_to_size(size: Size | RelativeSize, default_size: Size) -> Size:
    if size not in _ORDERED_RELATIVE_SIZE:
        return size  # type: ignore[return-value]
    if default_size not in _ORDERED_SIZE:
        msg = f"Unable to offset size based on the unknown defaulted one: {default_size}"
        raise FastCheckError.invalid_configuration(msg)
    index = _ORDERED_SIZE.index(default_size) + _ORDERED_RELATIVE_SIZE.index(size) - 4  # type: ignore[arg-type]
    return _ORDERED_SIZE[min(max(index, 0), len(_ORDERED_SIZE) - 1)]


def _base_size() -> tuple[Size, bool]:
    global_parameters = read_configure_global()
    return (
        global_parameters.get("base_size", DEFAULT_SIZE),
        bool(global_parameters.get("default_size_to_max_when_max_specified", False)),
    )


def max_generated_length_from_size_for_arbitrary(
    size: SizeForArbitrary,
    min_length: int,
    max_length: int,
    specified_max_length: bool,
) -> int:
    """Largest length generated by default, never above `max_length`."""
    default_size, size_to_max = _base_size()
    if size is not None:
        defined_size = size
    elif specified_max_length and size_to_max:
        defined_size = "max"
    else:
        defined_size = default_size
    if defined_size == "max":
        return max_length
    final_size = relative_size_to_size(defined_size, default_size)
    return min(max_length_from_min_length(min_length, final_size), max_length)


def depth_bias_from_size_for_arbitrary(depth_size: DepthSize, specified_max_depth: bool) -> float:
    """Probability bonus given to the first branch per level of depth."""
    if isinstance(depth_size, int | float):
        return 1 / depth_size
    default_size, size_to_max = _base_size()
    if depth_size is not None:
        defined_size = depth_size
    elif specified_max_depth and size_to_max:
        defined_size = "max"
    else:
        defined_size = default_size
    if defined_size == "max":
        return 0
    match relative_size_to_size(defined_size, default_size):
        case "xsmall":
            return 1
        case "small":
            return 0.5
        case "medium":
            return 0.25
        case "large":
            return 0.125
        case _:
            return 0.0625


@dataclass
class DepthContext:
    """Current depth of a recursive generation, shared by name."""

    depth: int = 0


DepthIdentifier = DepthContext

_depth_contexts: dict[str, DepthContext] = {}


def get_depth_context_for(identifier: DepthIdentifier | str | None) -> DepthContext:
    if identifier is None:
        return DepthContext()
    if isinstance(identifier, DepthContext):
        return identifier
    context = _depth_contexts.get(identifier)
    if context is None:
        context = DepthContext()
        _depth_contexts[identifier] = context
    return context


def create_depth_identifier() -> DepthIdentifier:
    return DepthContext()
