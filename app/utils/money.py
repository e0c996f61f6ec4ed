"""Conversions between API decimal prices and stored integer cents."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal, str]


def to_cents(amount: Number) -> int:
    """
    Convert a decimal amount to integer cents, rounding half up.

    Goes through str() so that 3.35 becomes 335 and not 334.
    Raises ValueError for non-numeric or non-finite input.
    """
    if isinstance(amount, bool):
        raise ValueError("amount must be a number")
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"amount is not a number: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"amount is not finite: {amount!r}")
    try:
        return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise ValueError(f"amount is out of range: {amount!r}")


def from_cents(cents: int) -> float:
    """Convert integer cents back to a decimal amount."""
    return round(cents / 100.0, 2)
