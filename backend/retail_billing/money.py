# Overview: Decimal-safe money helpers; amounts are stored as integer cents.

"""
Money handling

API amounts arrive as decimal strings ("12.50") or JSON numbers (12.5) and are
parsed through Decimal, never float arithmetic. Storage is integer cents.
Intermediate values (tax) stay Decimal until round_cents() at the storage
boundary.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
BPS_PER_PERCENT = 100


def parse_amount(value) -> Decimal:
    """
    Parse an API amount into a Decimal with at most two decimal places.

    Raises ValueError with a human-readable message on bad input.
    """
    if value is None or isinstance(value, bool):
        raise ValueError("must be a number")
    if isinstance(value, float):
        # repr() round-trips the literal the client sent (0.1 -> "0.1")
        value = repr(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("must be a number")
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError("must be a number")
    if not amount.is_finite():
        raise ValueError("must be a finite number")
    try:
        quantized = amount.quantize(CENT)
    except InvalidOperation:
        raise ValueError("is out of range")
    if amount != quantized:
        raise ValueError("must have at most 2 decimal places")
    return amount


def to_cents(value) -> int:
    """Parse an API amount and convert it to integer cents."""
    return int(parse_amount(value) * 100)


def round_cents(value: Decimal) -> int:
    """Round a full-precision amount expressed in cents (half-up) to an int."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_cents(cents: int | None) -> str | None:
    """12345 -> "123.45"."""
    if cents is None:
        return None
    return str((Decimal(cents) / 100).quantize(CENT))


def percent_to_bps(value) -> int:
    """Tax rate percent ("7.25") to basis points (725)."""
    return int(parse_amount(value) * BPS_PER_PERCENT)


def format_bps(bps: int | None) -> str | None:
    """725 -> "7.25"."""
    if bps is None:
        return None
    return str((Decimal(bps) / BPS_PER_PERCENT).quantize(CENT))
