# Overview: Exact money conversions between decimal values and integer cents.

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from .validation import InvalidAmountError

CENT = Decimal("0.01")

# $9,999,999,999.99; keeps values inside a BIGINT and away from nonsense
MAX_AMOUNT_CENTS = 999_999_999_999
MAX_AMOUNT = Decimal(MAX_AMOUNT_CENTS) / 100


def to_cents(value, *, field: str = "amount") -> int:
    """
    Convert a decimal amount to integer cents without float rounding.

    Accepts Decimal, int (whole currency units) and plain decimal strings
    such as "12.50". Floats, booleans, scientific notation and sub-cent
    precision are rejected.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(f"{field} must be a decimal amount")
    if isinstance(value, float):
        raise InvalidAmountError(f"{field} must be a decimal string, not a float")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower():
            raise InvalidAmountError(f"{field} must be a plain decimal amount")
        try:
            value = Decimal(stripped)
        except InvalidOperation:
            raise InvalidAmountError(f"{field} must be a decimal amount")
    if isinstance(value, int):
        value = Decimal(value)
    if not isinstance(value, Decimal) or not value.is_finite():
        raise InvalidAmountError(f"{field} must be a decimal amount")

    # Bounded before quantize, which fails past the context precision
    if abs(value) > MAX_AMOUNT:
        raise InvalidAmountError(f"{field} is out of range")
    quantized = value.quantize(CENT)
    if quantized != value:
        raise InvalidAmountError(f"{field} cannot have more than two decimal places")
    return int(quantized * 100)


def from_cents(cents: int | None) -> Decimal | None:
    if cents is None:
        return None
    return (Decimal(cents) / 100).quantize(CENT)


def format_cents(cents: int | None) -> str | None:
    """Render cents as a two-place decimal string ("150.00")."""
    amount = from_cents(cents)
    return None if amount is None else f"{amount:.2f}"


def coerce_cents(value, *, field: str) -> int:
    """
    Strict integer-cents validation for API payloads.

    Mirrors column coercion: ints pass, digit strings are parsed,
    floats/bools/decimal points are refused.
    """
    if isinstance(value, bool):
        raise InvalidAmountError(f"{field} must be an integer number of cents")
    if isinstance(value, int):
        cents = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise InvalidAmountError(f"{field} must be an integer number of cents")
        try:
            cents = int(stripped)
        except ValueError:
            raise InvalidAmountError(f"{field} must be an integer number of cents")
    else:
        raise InvalidAmountError(f"{field} must be an integer number of cents")
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise InvalidAmountError(f"{field} is out of range")
    return cents
