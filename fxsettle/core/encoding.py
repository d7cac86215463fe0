"""
Numeric and hex helpers shared by the typed-data builder and the ABI assembler.

uint256 values travel as decimal strings: JSON transports lose precision past
2**53 and floats never carry exact token amounts.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Union

MAX_UINT256 = 2**256 - 1
MAX_SAFE_INTEGER = 2**53 - 1

_DECIMAL_RE = re.compile(r"^[0-9]+$")
_HEX_RE = re.compile(r"^0x[0-9a-fA-F]+$")

UintLike = Union[int, str, Decimal]


def parse_uint256(value: Any) -> int:
    """Parse an int, decimal string or 0x-hex string into a uint256.

    Raises:
        TypeError: value is a float, bool or other non-integer type
        ValueError: value is not a valid uint256
    """
    if isinstance(value, bool):
        raise TypeError("booleans are not uint256 values")
    if isinstance(value, int):
        number = value
    elif isinstance(value, Decimal):
        if value != value.to_integral_value():
            raise ValueError(f"{value} is not an integer")
        number = int(value)
    elif isinstance(value, str):
        text = value.strip()
        if _DECIMAL_RE.match(text):
            number = int(text, 10)
        elif _HEX_RE.match(text):
            number = int(text, 16)
        else:
            raise ValueError(f"{value!r} is not a decimal or hex integer")
    else:
        raise TypeError(f"{type(value).__name__} is not accepted for uint256 values")

    if number < 0 or number > MAX_UINT256:
        raise ValueError(f"{number} is outside the uint256 range")
    return number


def to_decimal_string(value: Any) -> str:
    """Canonical decimal-string form of a uint256."""
    return str(parse_uint256(value))


def is_safe_integer(number: int) -> bool:
    return 0 <= number <= MAX_SAFE_INTEGER


def is_hex_string(value: Any, byte_length: int | None = None) -> bool:
    if not isinstance(value, str) or not _HEX_RE.match(value) and value != "0x":
        return False
    digits = len(value) - 2
    if digits % 2:
        return False
    return byte_length is None or digits == byte_length * 2
