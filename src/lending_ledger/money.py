"""Decimal helpers for monetary values."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal | None:
    """Parse a store value into a finite Decimal.

    Returns None for missing, unparseable or non-finite values so the
    caller can decide how to recover.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
    if not result.is_finite():
        return None
    return result


def quantize(amount: Decimal, places: Decimal = CENTS) -> Decimal:
    """Round a monetary amount half-up to the given precision."""
    if not amount.is_finite():
        return ZERO.quantize(places)
    return amount.quantize(places, rounding=ROUND_HALF_UP)


def as_float(amount: Decimal) -> float:
    """Render a Decimal for JSON output."""
    return float(quantize(amount))
