# Overview: Append-only movement ledger; keeps each register's running balance in step with its movements.

"""
Cash Movement Ledger

INVARIANTS:
- Movements are immutable. Corrections are new offsetting movements.
- INCOME, SALE and DEPOSIT increase the balance; EXPENSE, REFUND and
  WITHDRAWAL decrease it; ADJUSTMENT carries its own sign.
- A movement insert and the matching current_balance_cents update are
  committed in the same transaction, under the register lock.
- Nothing is ever appended to a CLOSED register.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import CashMovement, CashRegister, MovementType, PaymentMethod
from ..money import MAX_AMOUNT_CENTS
from ..time_utils import utcnow
from ..validation import (
    InvalidAmountError,
    RegisterClosedError,
    RegisterNotFoundError,
    ValidationError,
    clean_text,
    clean_actor,
    require_scope,
)
from .concurrency import lock_for_update, register_lock, run_with_retry


INCREASING_TYPES = frozenset({MovementType.INCOME, MovementType.SALE, MovementType.DEPOSIT})
DECREASING_TYPES = frozenset({MovementType.EXPENSE, MovementType.REFUND, MovementType.WITHDRAWAL})
SELF_SIGNED_TYPES = frozenset({MovementType.ADJUSTMENT})

_unclassified = set(MovementType) - (INCREASING_TYPES | DECREASING_TYPES | SELF_SIGNED_TYPES)
if _unclassified:
    raise RuntimeError(f"Movement types without a balance sign: {sorted(t.value for t in _unclassified)}")

DEFAULT_DESCRIPTIONS = {
    MovementType.INCOME: "Cash income",
    MovementType.EXPENSE: "Cash expense",
    MovementType.SALE: "Sale",
    MovementType.REFUND: "Refund",
    MovementType.WITHDRAWAL: "Cash withdrawal",
    MovementType.DEPOSIT: "Cash deposit",
    MovementType.ADJUSTMENT: "Balance adjustment",
}


def parse_movement_type(value) -> MovementType:
    try:
        return MovementType(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid movement type: {value!r}")


def parse_payment_method(value) -> PaymentMethod:
    if value is None:
        return PaymentMethod.CASH
    try:
        return PaymentMethod(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid payment method: {value!r}")


def signed_amount_cents(movement_type, amount_cents: int) -> int:
    """Balance delta of a movement given its stored amount."""
    movement_type = MovementType(movement_type)
    if movement_type in INCREASING_TYPES:
        return amount_cents
    if movement_type in DECREASING_TYPES:
        return -amount_cents
    return amount_cents


def normalize_amount(movement_type: MovementType, amount_cents) -> int:
    """Stored amount: magnitude for fixed-sign types, signed for adjustments."""
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise InvalidAmountError("amount_cents must be an integer number of cents")
    if amount_cents == 0:
        raise InvalidAmountError("amount_cents must be non-zero")
    if abs(amount_cents) > MAX_AMOUNT_CENTS:
        raise InvalidAmountError("amount_cents is out of range")
    if movement_type in SELF_SIGNED_TYPES:
        return amount_cents
    return abs(amount_cents)


def coerce_register_id(register_id) -> int:
    """Register ids are integers; anything else cannot exist."""
    if isinstance(register_id, bool):
        raise RegisterNotFoundError(f"Register {register_id!r} not found")
    try:
        return int(register_id)
    except (TypeError, ValueError):
        raise RegisterNotFoundError(f"Register {register_id!r} not found")


def _clean_order_ref(value, field: str) -> str | None:
    if value is None:
        return None
    return clean_text(str(value), field=field, max_length=64)


def load_register(tenant_id: str, branch_id: str, register_id, *, for_update: bool = False) -> CashRegister:
    """Fetch a register inside its tenant/branch scope or raise RegisterNotFoundError."""
    query = db.session.query(CashRegister).filter_by(
        id=register_id,
        tenant_id=tenant_id,
        branch_id=branch_id,
    )
    if for_update:
        query = lock_for_update(query)
    register = query.first()
    if not register:
        raise RegisterNotFoundError(f"Register {register_id} not found")
    return register


def apply_movement(
    register: CashRegister,
    *,
    actor: str,
    movement_type: MovementType,
    amount_cents: int,
    payment_method: PaymentMethod = PaymentMethod.CASH,
    description: str | None = None,
    reference: str | None = None,
    order_id: str | None = None,
    order_number: str | None = None,
    audit_id: int | None = None,
    idempotency_key: str | None = None,
) -> CashMovement:
    """
    Insert a movement and move the register balance, without committing.

    The caller must hold register_lock(register.id) and own the
    transaction; amount_cents must already be normalized.
    """
    if idempotency_key:
        existing = db.session.query(CashMovement).filter_by(
            register_id=register.id,
            idempotency_key=idempotency_key,
        ).first()
        if existing:
            return existing

    if not register.is_open:
        raise RegisterClosedError(f"Register {register.id} is closed")

    register.movement_sequence = (register.movement_sequence or 0) + 1
    movement = CashMovement(
        tenant_id=register.tenant_id,
        branch_id=register.branch_id,
        register_id=register.id,
        sequence=register.movement_sequence,
        type=movement_type.value,
        amount_cents=amount_cents,
        payment_method=payment_method.value,
        description=description or DEFAULT_DESCRIPTIONS[movement_type],
        reference=reference,
        order_id=order_id,
        order_number=order_number,
        audit_id=audit_id,
        idempotency_key=idempotency_key,
        created_at=utcnow(),
        created_by=actor,
    )
    register.current_balance_cents = (
        register.current_balance_cents + signed_amount_cents(movement_type, amount_cents)
    )

    db.session.add(movement)
    db.session.flush()
    return movement


def append_movement(
    tenant_id: str,
    branch_id: str,
    actor: str,
    register_id: int,
    movement_type,
    amount_cents: int,
    payment_method=PaymentMethod.CASH,
    description: str | None = None,
    reference: str | None = None,
    order_id: str | None = None,
    order_number: str | None = None,
    idempotency_key: str | None = None,
) -> CashMovement:
    """
    Append one movement to an OPEN register.

    Raises:
        RegisterNotFoundError: register missing from this tenant/branch
        RegisterClosedError: register is CLOSED (never retried)
        InvalidAmountError / ValidationError: malformed input
    """
    tenant_id, branch_id = require_scope(tenant_id, branch_id)
    actor = clean_actor(actor)
    movement_type = parse_movement_type(movement_type)
    payment_method = parse_payment_method(payment_method)
    amount_cents = normalize_amount(movement_type, amount_cents)
    description = clean_text(description, field="description")
    reference = clean_text(reference, field="reference")
    order_id = _clean_order_ref(order_id, "order_id")
    order_number = _clean_order_ref(order_number, "order_number")
    idempotency_key = clean_text(idempotency_key, field="idempotency_key", max_length=128)
    register_id = coerce_register_id(register_id)

    def _op():
        register = load_register(tenant_id, branch_id, register_id, for_update=True)
        movement = apply_movement(
            register,
            actor=actor,
            movement_type=movement_type,
            amount_cents=amount_cents,
            payment_method=payment_method,
            description=description,
            reference=reference,
            order_id=order_id,
            order_number=order_number,
            idempotency_key=idempotency_key,
        )
        db.session.commit()
        return movement

    with register_lock(register_id):
        movement = run_with_retry(_op)

    current_app.logger.info(
        "Cash movement %s (%s %s) recorded on register %s by %s",
        movement.id, movement.type, movement.amount_cents, register_id, actor,
    )
    return movement


def register_sale(
    tenant_id: str,
    branch_id: str,
    actor: str,
    register_id: int,
    order_id: str,
    order_number: str | None,
    amount_cents: int,
    payment_method=PaymentMethod.CASH,
    idempotency_key: str | None = None,
) -> CashMovement:
    """Record the payment of a completed order as a SALE movement."""
    if not _clean_order_ref(order_id, "order_id"):
        raise ValidationError("order_id is required for a sale")
    label = order_number or order_id
    return append_movement(
        tenant_id,
        branch_id,
        actor,
        register_id,
        MovementType.SALE,
        amount_cents,
        payment_method=payment_method,
        description=f"Sale for order #{label}",
        order_id=order_id,
        order_number=order_number,
        idempotency_key=idempotency_key,
    )


def register_refund(
    tenant_id: str,
    branch_id: str,
    actor: str,
    register_id: int,
    order_id: str,
    order_number: str | None,
    amount_cents: int,
    payment_method=PaymentMethod.CASH,
    reason: str | None = None,
    idempotency_key: str | None = None,
) -> CashMovement:
    """Record money returned to a customer as a REFUND movement."""
    if not _clean_order_ref(order_id, "order_id"):
        raise ValidationError("order_id is required for a refund")
    reason = clean_text(reason, field="reason", max_length=150, required=True)
    label = order_number or order_id
    return append_movement(
        tenant_id,
        branch_id,
        actor,
        register_id,
        MovementType.REFUND,
        amount_cents,
        payment_method=payment_method,
        description=f"Refund for order #{label}: {reason}",
        order_id=order_id,
        order_number=order_number,
        idempotency_key=idempotency_key,
    )


def list_movements(
    tenant_id: str,
    branch_id: str,
    register_id: int,
    *,
    movement_type=None,
    limit: int | None = None,
) -> list[CashMovement]:
    """All movements of a register, newest first. Works on CLOSED registers too."""
    tenant_id, branch_id = require_scope(tenant_id, branch_id)
    register_id = coerce_register_id(register_id)
    load_register(tenant_id, branch_id, register_id)

    query = db.session.query(CashMovement).filter_by(
        tenant_id=tenant_id,
        branch_id=branch_id,
        register_id=register_id,
    )
    if movement_type is not None:
        query = query.filter_by(type=parse_movement_type(movement_type).value)
    query = query.order_by(CashMovement.sequence.desc(), CashMovement.id.desc())
    if limit is not None:
        if limit <= 0:
            raise ValidationError("limit must be positive")
        query = query.limit(limit)
    return query.all()
