"""Single character arbitraries.

Each character arbitrary draws a code point index and maps it to a string
of length one. Indexes are arranged so that the smallest ones map to
printable characters, making shrunk strings readable.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fastcheck.arbitrary.integer import integer
from fastcheck.core.arbitrary import Arbitrary

_SURROGATE_MIN = 0xD800
_SURROGATE_MAX = 0xDFFF
_SURROGATE_GAP = _SURROGATE_MAX - _SURROGATE_MIN + 1
_PRINTABLE_COUNT = 0x7E - 0x20 + 1


def _index_to_printable_index(index: int) -> int:
    if index < _PRINTABLE_COUNT:
        return index + 0x20
    return index - _PRINTABLE_COUNT if index <= 0x7E else index


def _printable_index_to_index(code: int) -> int:
    if 0x20 <= code <= 0x7E:
        return code - 0x20
    return code + _PRINTABLE_COUNT if code < 0x20 else code


def _unicode_index_to_code(index: int) -> int:
    # Indexes skip the surrogate block, which holds no standalone character
    code = _index_to_printable_index(index)
    return code + _SURROGATE_GAP if code >= _SURROGATE_MIN else code


def _unicode_code_to_index(code: int) -> int:
    if code > _SURROGATE_MAX:
        code -= _SURROGATE_GAP
    return _printable_index_to_index(code)


def build_character_arbitrary(
    min_index: int,
    max_index: int,
    map_to_code: Callable[[int], int],
    unmap_from_code: Callable[[int], int],
) -> Arbitrary[str]:
    def unmapper(value: Any) -> int:
        if not isinstance(value, str) or len(value) != 1:
            msg = f"Cannot unmap {value!r}: expected a single character"
            raise ValueError(msg)
        code = ord(value)
        if _SURROGATE_MIN <= code <= _SURROGATE_MAX:
            msg = f"Cannot unmap lone surrogate {value!r}"
            raise ValueError(msg)
        return unmap_from_code(code)

    return integer(min_index, max_index).map(lambda n: chr(map_to_code(n)), unmapper)


def char() -> Arbitrary[str]:
    """Printable ASCII characters, from space (0x20) to tilde (0x7e)."""
    return build_character_arbitrary(0x20, 0x7E, lambda n: n, lambda n: n)


def ascii_char() -> Arbitrary[str]:
    """Any ASCII character, printable ones shrinking first."""
    return build_character_arbitrary(
        0x00, 0x7F, _index_to_printable_index, _printable_index_to_index
    )


def unicode_char() -> Arbitrary[str]:
    """Any Unicode code point except surrogates."""
    return build_character_arbitrary(
        0x0000, 0x10FFFF - _SURROGATE_GAP, _unicode_index_to_code, _unicode_code_to_index
    )
