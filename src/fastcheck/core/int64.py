"""Signed 64-bit magnitudes stored as two 32-bit limbs.

Used to walk index spaces wider than a double can represent exactly (the
index of every 64-bit float). Each Int64 is `sign * (high * 2**32 + low)`
with `0 <= high, low < 2**32`. Zero always carries a positive sign.
"""

from __future__ import annotations

from dataclasses import dataclass

_LIMB = 0x1_0000_0000
_LIMB_MASK = 0xFFFF_FFFF


@dataclass(frozen=True)
class Int64:
    sign: int
    high: int
    low: int

    def __post_init__(self) -> None:
        if self.sign not in (1, -1):
            msg = f"Invalid sign for Int64: {self.sign}"
            raise ValueError(msg)
        if not (0 <= self.high <= _LIMB_MASK and 0 <= self.low <= _LIMB_MASK):
            msg = f"Int64 limbs out of range: high={self.high}, low={self.low}"
            raise OverflowError(msg)
        if self.high == 0 and self.low == 0 and self.sign == -1:
            object.__setattr__(self, "sign", 1)

    @staticmethod
    def from_int(value: int) -> Int64:
        magnitude = -value if value < 0 else value
        return Int64(-1 if value < 0 else 1, magnitude >> 32, magnitude & _LIMB_MASK)

    def to_int(self) -> int:
        return self.sign * (self.high * _LIMB + self.low)

    def __repr__(self) -> str:
        return f"Int64({self.to_int()})"


ZERO = Int64(1, 0, 0)
UNIT = Int64(1, 0, 1)


def is_zero(a: Int64) -> bool:
    return a.high == 0 and a.low == 0


def is_strictly_negative(a: Int64) -> bool:
    return a.sign == -1 and not is_zero(a)


def is_strictly_positive(a: Int64) -> bool:
    return a.sign == 1 and not is_zero(a)


def is_equal(a: Int64, b: Int64) -> bool:
    if a.high == b.high and a.low == b.low:
        return a.sign == b.sign or is_zero(a)
    return False


def is_strictly_smaller(a: Int64, b: Int64) -> bool:
    if a.sign == b.sign:
        if a.sign == 1:
            return a.high < b.high or (a.high == b.high and a.low < b.low)
        return b.high < a.high or (b.high == a.high and b.low < a.low)
    if a.sign == 1:
        return False
    # a <= 0 <= b, equal only when both are zero
    return not is_zero(a) or not is_zero(b)


def _subtract_ordered(a: Int64, b: Int64) -> Int64:
    # Requires a >= b, the result is positive
    if a.sign == 1 and b.sign == -1:
        low = a.low + b.low
        carry = 1 if low > _LIMB_MASK else 0
        return Int64(1, a.high + b.high + carry, low & _LIMB_MASK)
    # Same signs: |first| >= |second|
    first, second = (a, b) if a.sign == 1 else (b, a)
    low = first.low - second.low
    borrow = 0
    if low < 0:
        borrow = 1
        low += _LIMB
    return Int64(1, first.high - second.high - borrow, low)


def subtract(a: Int64, b: Int64) -> Int64:
    if is_strictly_smaller(a, b):
        out = _subtract_ordered(b, a)
        return Int64(-1, out.high, out.low)
    return _subtract_ordered(a, b)


def negative(a: Int64) -> Int64:
    return Int64(-a.sign, a.high, a.low)


def add(a: Int64, b: Int64) -> Int64:
    if is_zero(b):
        return a
    return subtract(a, negative(b))


def halve(a: Int64) -> Int64:
    """Halve the magnitude, rounding towards zero."""
    return Int64(a.sign, a.high // 2, (0x8000_0000 if a.high % 2 == 1 else 0) + a.low // 2)


def log_like(a: Int64) -> Int64:
    """floor(log2(|a|)) carrying the sign of `a`; `a` must not be zero."""
    if a.high != 0:
        exponent = 32 + a.high.bit_length() - 1
    else:
        exponent = a.low.bit_length() - 1
    return Int64(a.sign, 0, exponent)
