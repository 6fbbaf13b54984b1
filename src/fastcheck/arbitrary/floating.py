"""Floating point arbitraries: `double` (64-bit) and `float32`.

Floats are generated through their index: the rank of the float among all
the floats of the same width, ordered by value. `+0.0` has index 0, `-0.0`
has index -1 and infinities sit just after the largest finite values. Index
shrinking then naturally moves floats towards zero, one float at a time.
NaN gets an extra index just outside the requested range.
"""

from __future__ import annotations

import math
import struct
from typing import Any

from fastcheck.arbitrary.int64 import int64_arbitrary
from fastcheck.arbitrary.integer import integer
from fastcheck.core.arbitrary import Arbitrary
from fastcheck.core.int64 import Int64
from fastcheck.error import FastCheckError

MAX_VALUE_64 = 1.7976931348623157e308
MAX_VALUE_32 = 3.4028234663852886e38
MIN_VALUE_32 = 2.0**-149
EPSILON_32 = 2.0**-23

_SIGN_64 = 1 << 63
_SIGN_32 = 1 << 31


def double_to_index(d: float) -> Int64:
    """Rank of `d` among all doubles; NaN has no index."""
    (bits,) = struct.unpack("<Q", struct.pack("<d", d))
    if bits & _SIGN_64:
        return Int64.from_int(-(bits & (_SIGN_64 - 1)) - 1)
    return Int64.from_int(bits)


def index_to_double(index: Int64) -> float:
    value = index.to_int()
    bits = value if value >= 0 else (-value - 1) | _SIGN_64
    (d,) = struct.unpack("<d", struct.pack("<Q", bits))
    return d


def float_to_index(f: float) -> int:
    """Rank of `f` among all 32-bit floats; `f` must be representable."""
    (bits,) = struct.unpack("<I", struct.pack("<f", f))
    if bits & _SIGN_32:
        return -(bits & (_SIGN_32 - 1)) - 1
    return bits


def index_to_float(index: int) -> float:
    bits = index if index >= 0 else (-index - 1) | _SIGN_32
    (f,) = struct.unpack("<f", struct.pack("<I", bits))
    return f


def is_float32(f: float) -> bool:
    if math.isnan(f) or math.isinf(f):
        return True
    if abs(f) > MAX_VALUE_32:
        return False
    return struct.unpack("<f", struct.pack("<f", f))[0] == f


def _is_number(value: Any) -> bool:
    return isinstance(value, float | int) and not isinstance(value, bool)


def _is_not_integer(value: float) -> bool:
    return not (math.isfinite(value) and float(value).is_integer())


def _checked_double_index(d: float, label: str) -> Int64:
    if not _is_number(d) or math.isnan(d):
        msg = f"double expects {label} to be a 64-bit float, got {d!r}"
        raise FastCheckError.invalid_configuration(msg)
    return double_to_index(float(d))


def _checked_float_index(f: float, label: str) -> int:
    if not _is_number(f) or math.isnan(f) or not is_float32(float(f)):
        msg = f"float32 expects {label} to be a 32-bit float, got {f!r}"
        raise FastCheckError.invalid_configuration(msg)
    return float_to_index(float(f))


def _unsupported(value: Any) -> None:
    if not _is_number(value):
        msg = f"Unsupported type: {type(value).__name__}"
        raise TypeError(msg)


def double(
    min: float | None = None,  # noqa: A002
    max: float | None = None,  # noqa: A002
    *,
    min_excluded: bool = False,
    max_excluded: bool = False,
    no_default_infinity: bool = False,
    no_nan: bool = False,
    no_integer: bool = False,
) -> Arbitrary[float]:
    """64-bit floats between `min` and `max`, NaN and infinities included by default."""
    lower = min if min is not None else (-MAX_VALUE_64 if no_default_infinity else -math.inf)
    upper = max if max is not None else (MAX_VALUE_64 if no_default_infinity else math.inf)
    min_index = _checked_double_index(lower, "min").to_int() + (1 if min_excluded else 0)
    max_index = _checked_double_index(upper, "max").to_int() - (1 if max_excluded else 0)
    # Indexes tell -0.0 from +0.0, comparing the floats would not
    if max_index < min_index:
        msg = "double expects min to be smaller or equal to max"
        raise FastCheckError.invalid_configuration(msg, {"min": lower, "max": upper})

    def unmap_index(value: Any) -> Int64:
        _unsupported(value)
        return double_to_index(float(value))

    if no_nan:
        arb = int64_arbitrary(Int64.from_int(min_index), Int64.from_int(max_index)).map(
            index_to_double, unmap_index
        )
    else:
        # NaN takes the index right after max, or right before min when max <= +0.0
        min_with_nan = min_index if max_index > 0 else min_index - 1
        max_with_nan = max_index + 1 if max_index > 0 else max_index
        nan_index = max_with_nan if max_with_nan != max_index else min_with_nan

        def to_double(index: Int64) -> float:
            raw = index.to_int()
            if raw > max_index or raw < min_index:
                return math.nan
            return index_to_double(index)

        def from_double(value: Any) -> Int64:
            _unsupported(value)
            if math.isnan(value):
                return Int64.from_int(nan_index)
            return double_to_index(float(value))

        arb = int64_arbitrary(Int64.from_int(min_with_nan), Int64.from_int(max_with_nan)).map(
            to_double, from_double
        )
    if no_integer:
        return arb.filter(_is_not_integer)
    return arb


def float32(
    min: float | None = None,  # noqa: A002
    max: float | None = None,  # noqa: A002
    *,
    min_excluded: bool = False,
    max_excluded: bool = False,
    no_default_infinity: bool = False,
    no_nan: bool = False,
    no_integer: bool = False,
) -> Arbitrary[float]:
    """Python floats holding values exactly representable as 32-bit floats."""
    lower = min if min is not None else (-MAX_VALUE_32 if no_default_infinity else -math.inf)
    upper = max if max is not None else (MAX_VALUE_32 if no_default_infinity else math.inf)
    min_index = _checked_float_index(lower, "min") + (1 if min_excluded else 0)
    max_index = _checked_float_index(upper, "max") - (1 if max_excluded else 0)
    if max_index < min_index:
        msg = "float32 expects min to be smaller or equal to max"
        raise FastCheckError.invalid_configuration(msg, {"min": lower, "max": upper})

    def unmap_index(value: Any) -> int:
        _unsupported(value)
        if not is_float32(float(value)):
            msg = f"{value!r} is not a 32-bit float"
            raise ValueError(msg)
        return float_to_index(float(value))

    if no_nan:
        arb = integer(min_index, max_index).map(index_to_float, unmap_index)
    else:
        min_with_nan = min_index if max_index > 0 else min_index - 1
        max_with_nan = max_index + 1 if max_index > 0 else max_index
        nan_index = max_with_nan if max_with_nan != max_index else min_with_nan

        def to_float(index: int) -> float:
            if index > max_index or index < min_index:
                return math.nan
            return index_to_float(index)

        def from_float(value: Any) -> int:
            if _is_number(value) and math.isnan(value):
                return nan_index
            return unmap_index(value)

        arb = integer(min_with_nan, max_with_nan).map(to_float, from_float)
    if no_integer:
        return arb.filter(_is_not_integer)
    return arb
