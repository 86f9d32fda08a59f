"""
Position Ledger - Numeric Helpers.

============================================================
PURPOSE
============================================================
Single place for the "safe decimal" coercion used at every
arithmetic boundary of the ledger.

Persisted rows arrive as floats, Decimals, strings or None.
Every value is coerced once, here, so that NaN or Infinity
can never leak into an aggregate sum.

============================================================
ROUNDING
============================================================
Rounding is half-up, floor(x * 10^d + 0.5) / 10^d, not
Python's banker's rounding.

- Money: 2 decimals
- Quantities: 8 decimals
- Prices: 8 decimals

============================================================
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


MONEY_DIGITS = 2
QUANTITY_DIGITS = 8
PRICE_DIGITS = 8


def to_float(value: Any) -> Optional[float]:
    """
    Coerce a numeric-like value to float.

    Returns None when the value cannot be interpreted as a number.
    Booleans are rejected to avoid True counting as 1.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        return value
    if isinstance(value, (int, Decimal)):
        try:
            return float(value)
        except (InvalidOperation, OverflowError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            return None
    return None


def to_finite_or_zero(value: Any) -> float:
    """Coerce to float, mapping None, NaN, Infinity and garbage to 0.0."""
    number = to_float(value)
    if number is None or not math.isfinite(number):
        return 0.0
    return number


def is_positive_finite(value: Any) -> bool:
    """True when value is a finite number strictly greater than zero."""
    number = to_float(value)
    return number is not None and math.isfinite(number) and number > 0


def round_half_up(value: float, digits: int) -> float:
    """Round half-up to a number of decimal places."""
    value = to_finite_or_zero(value)
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_money(value: float) -> float:
    return round_half_up(value, MONEY_DIGITS)


def round_quantity(value: float) -> float:
    return round_half_up(value, QUANTITY_DIGITS)


def round_price(value: float) -> float:
    return round_half_up(value, PRICE_DIGITS)


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0.0 when the denominator is not positive."""
    if denominator <= 0:
        return 0.0
    return to_finite_or_zero(numerator / denominator)
