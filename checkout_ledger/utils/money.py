"""Decimal currency helpers (2-digit minor unit)"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert to Decimal without inheriting binary float noise"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value: Number) -> Decimal:
    """Round a value to the currency minor unit"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
