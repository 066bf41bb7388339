"""
Quantity parsing and canonical tier keys
Operators type quantities with either decimal separator ("2,5" or "2.5")
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Union

Number = Union[int, float]


def _to_decimal(value) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"Invalid quantity: {value!r}")
    if isinstance(value, str):
        text = value.strip().replace(",", ".")
    elif isinstance(value, float):
        text = repr(value)
    elif isinstance(value, (int, Decimal)):
        text = str(value)
    else:
        raise ValueError(f"Invalid quantity: {value!r}")

    try:
        number = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Invalid quantity: {value!r}")
    if not number.is_finite():
        raise ValueError(f"Quantity must be finite: {value!r}")
    return number


def quantity_key(value) -> str:
    """Canonical decimal string for a quantity: "2,50" -> "2.5", 5.0 -> "5" """
    number = _to_decimal(value)
    key = format(number.normalize(), "f")
    if key == "-0":
        key = "0"
    return key


def parse_quantity(value) -> Number:
    """Number from user input, integral values come back as int"""
    number = _to_decimal(value)
    if number == number.to_integral_value():
        return int(number)
    result = float(number)
    if not math.isfinite(result):
        raise ValueError(f"Quantity must be finite: {value!r}")
    return result
