"""
Money / cents helpers.

All exact arithmetic (allocation splitting) happens on integer cents.
Rounding follows Math.round semantics: halves round toward positive
infinity, so 0.5 -> 1 and -0.5 -> 0.
"""

from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
HALF = Decimal("0.5")

# Largest amount a Numeric(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")


def to_decimal(value: Any) -> Decimal:
    """
    Convert user or stored input to Decimal.

    Floats go through str() so 33.33 becomes Decimal("33.33") rather than
    its binary expansion.

    Raises:
        ValueError: value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a money amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Not a money amount: {value!r}")
    else:
        raise ValueError(f"Not a money amount: {value!r}")

    if not result.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return result


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer, halves toward +inf."""
    return int((value + HALF).to_integral_value(rounding=ROUND_FLOOR))


def to_cents(value: Any) -> int:
    amount = to_decimal(value)
    try:
        return round_half_up(amount * 100)
    except InvalidOperation:
        raise ValueError(f"Amount out of range: {value!r}")


def from_cents(cents: int) -> Decimal:
    try:
        return (Decimal(cents) / 100).quantize(CENT)
    except InvalidOperation:
        raise ValueError(f"Amount out of range: {cents} cents")


def round_money(value: Any) -> Decimal:
    """Round to two decimal places."""
    return from_cents(to_cents(value))


def is_positive_amount(value: Any) -> bool:
    """True for finite amounts that round to more than zero cents."""
    try:
        return to_cents(value) > 0
    except ValueError:
        return False
