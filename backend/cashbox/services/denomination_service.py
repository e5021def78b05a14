# Overview: Denomination counting for detailed cash audits.

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from ..money import MAX_AMOUNT, to_cents
from ..validation import DenominationError

# Face values offered by the detailed count form (adjust per country)
DEFAULT_BILLS = ("1000", "500", "200", "100", "50", "20", "10", "5", "2", "1")
DEFAULT_COINS = ("0.5", "0.25", "0.1", "0.05", "0.01")

GROUPS = ("bills", "coins")

# Pieces of one face value in a single count
MAX_COUNT = 1_000_000


def empty_denominations() -> dict[str, dict[str, int]]:
    """Zeroed count template for every default face value."""
    return {
        "bills": {face: 0 for face in DEFAULT_BILLS},
        "coins": {face: 0 for face in DEFAULT_COINS},
    }


def _face_value(face) -> Decimal:
    try:
        value = Decimal(str(face).strip())
    except InvalidOperation:
        raise DenominationError(f"Invalid denomination face value: {face!r}")
    if not value.is_finite() or value <= 0 or value > MAX_AMOUNT:
        raise DenominationError(f"Invalid denomination face value: {face!r}")
    return value


def _count(face, raw) -> int:
    if isinstance(raw, bool):
        raise DenominationError(f"Invalid count for denomination {face}: {raw!r}")
    try:
        count = Decimal(str(raw).strip())
    except InvalidOperation:
        raise DenominationError(f"Invalid count for denomination {face}: {raw!r}")
    if not count.is_finite():
        raise DenominationError(f"Invalid count for denomination {face}: {raw!r}")
    if count > MAX_COUNT:
        raise DenominationError(f"Count for denomination {face} is out of range: {raw!r}")
    return max(int(count), 0)


def sanitize_denominations(raw) -> dict[str, dict[str, int]] | None:
    """
    Normalize a caller-supplied denomination breakdown.

    - Entries whose count is None are dropped.
    - Counts are coerced to non-negative integers.
    - Face-value keys are kept exactly as supplied (as strings).
    - Unknown groups, non-positive or oversized face values, duplicate
      keys and non-numeric or oversized counts raise DenominationError.
    """
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise DenominationError("denominations must be an object with 'bills' and 'coins'")

    unknown = set(raw) - set(GROUPS)
    if unknown:
        raise DenominationError(f"Unknown denomination groups: {', '.join(sorted(map(str, unknown)))}")

    cleaned: dict[str, dict[str, int]] = {}
    for group in GROUPS:
        entries = raw.get(group) or {}
        if not isinstance(entries, dict):
            raise DenominationError(f"denominations.{group} must be an object")
        cleaned[group] = {}
        for face, count in entries.items():
            if count is None:
                continue
            _face_value(face)
            key = str(face)
            if key in cleaned[group]:
                raise DenominationError(f"Denomination {key} appears more than once in {group}")
            cleaned[group][key] = _count(face, count)
    return cleaned


def count_denominations(denominations) -> int:
    """Total value in cents of a {"bills": {...}, "coins": {...}} breakdown."""
    if not denominations:
        return 0
    total = Decimal(0)
    for group in GROUPS:
        for face, count in (denominations.get(group) or {}).items():
            total += _face_value(face) * count
    return to_cents(total, field="denominations total")
