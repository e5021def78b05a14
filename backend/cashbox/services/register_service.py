# Overview: Register lifecycle (open -> close) and read projections over registers.

"""
Register Lifecycle

DESIGN PRINCIPLES:
- Registers are created OPEN by an explicit open action and move to
  CLOSED exactly once. They are never reopened; the next shift opens a
  new register.
- At most one OPEN register per branch when CASH_SINGLE_OPEN_REGISTER
  is enabled (the default).
- Closing records the expected final balance derived from history. When
  a counted balance is supplied and differs, one ADJUSTMENT movement is
  appended before the status flips, in the same transaction.
- Notes are an append-only log.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import CashRegister, MovementType, PaymentMethod, RegisterStatus
from ..money import MAX_AMOUNT_CENTS, format_cents
from ..time_utils import utcnow
from ..validation import (
    InvalidAmountError,
    RegisterAlreadyClosedError,
    RegisterAlreadyOpenError,
    ValidationError,
    clean_text,
    clean_actor,
    require_scope,
)
from .concurrency import register_lock, run_with_retry
from .movement_service import apply_movement, coerce_register_id, load_register
from .summary_service import build_summary, register_movements

DEFAULT_REGISTER_NAME = "Main register"


def _append_note(existing: str | None, note: str | None) -> str:
    if not note:
        return existing or ""
    if not existing:
        return note
    return f"{existing}\n{note}"


def _non_negative_cents(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmountError(f"{field} must be an integer number of cents")
    if value < 0:
        raise InvalidAmountError(f"{field} cannot be negative")
    if value > MAX_AMOUNT_CENTS:
        raise InvalidAmountError(f"{field} is out of range")
    return value


def _open_registers_query(tenant_id: str, branch_id: str):
    return db.session.query(CashRegister).filter_by(
        tenant_id=tenant_id,
        branch_id=branch_id,
        status=RegisterStatus.OPEN.value,
    )


def open_register(
    tenant_id: str,
    branch_id: str,
    actor: str,
    initial_amount_cents: int,
    notes: str | None = None,
    name: str | None = None,
) -> CashRegister:
    """
    Open a new register with its starting cash.

    Raises:
        InvalidAmountError: initial amount negative or not integer cents
        RegisterAlreadyOpenError: branch already has an OPEN register
            (only when CASH_SINGLE_OPEN_REGISTER is enabled)
    """
    tenant_id, branch_id = require_scope(tenant_id, branch_id)
    actor = clean_actor(actor)
    initial_amount_cents = _non_negative_cents(initial_amount_cents, "initial_amount_cents")
    notes = clean_text(notes, field="notes", max_length=2000)
    name = clean_text(name, field="name", max_length=128) or DEFAULT_REGISTER_NAME
    single_open = current_app.config.get("CASH_SINGLE_OPEN_REGISTER", True)

    def _op():
        if single_open:
            existing = _open_registers_query(tenant_id, branch_id).first()
            if existing:
                raise RegisterAlreadyOpenError(f"Branch already has an open register ({existing.id})")

        register = CashRegister(
            tenant_id=tenant_id,
            branch_id=branch_id,
            name=name,
            status=RegisterStatus.OPEN.value,
            initial_balance_cents=initial_amount_cents,
            current_balance_cents=initial_amount_cents,
            movement_sequence=0,
            opened_at=utcnow(),
            opened_by=actor,
            notes=notes or "",
        )
        db.session.add(register)
        db.session.commit()
        return register

    with register_lock((tenant_id, branch_id)):
        register = run_with_retry(_op)

    current_app.logger.info(
        "Register %s opened in %s/%s by %s with %s",
        register.id, tenant_id, branch_id, actor, format_cents(initial_amount_cents),
    )
    return register


def close_register(
    tenant_id: str,
    branch_id: str,
    register_id: int,
    actor: str,
    *,
    counted_balance_cents: int | None = None,
    expected_balance_cents: int | None = None,
    notes: str | None = None,
) -> CashRegister:
    """
    Close an OPEN register.

    Args:
        counted_balance_cents: physically counted till, if the close is
            combined with a count. A difference against the expected
            balance is booked as one signed ADJUSTMENT movement.
        expected_balance_cents: caller-computed expected balance. When
            omitted it is derived from the movement history.
        notes: appended to the register's notes log

    Raises:
        RegisterNotFoundError, RegisterAlreadyClosedError, InvalidAmountError
    """
    tenant_id, branch_id = require_scope(tenant_id, branch_id)
    actor = clean_actor(actor)
    register_id = coerce_register_id(register_id)
    if counted_balance_cents is not None:
        counted_balance_cents = _non_negative_cents(counted_balance_cents, "counted_balance_cents")
    if expected_balance_cents is not None and (
        isinstance(expected_balance_cents, bool) or not isinstance(expected_balance_cents, int)
    ):
        raise InvalidAmountError("expected_balance_cents must be an integer number of cents")
    notes = clean_text(notes, field="notes", max_length=2000)

    def _op():
        register = load_register(tenant_id, branch_id, register_id, for_update=True)
        if not register.is_open:
            raise RegisterAlreadyClosedError(f"Register {register_id} is already closed")

        expected = expected_balance_cents
        if expected is None:
            expected = build_summary(register, register_movements(register)).expected_balance_cents

        if counted_balance_cents is not None:
            difference = counted_balance_cents - expected
            if difference != 0:
                outcome = "surplus" if difference > 0 else "shortage"
                apply_movement(
                    register,
                    actor=actor,
                    movement_type=MovementType.ADJUSTMENT,
                    amount_cents=difference,
                    payment_method=PaymentMethod.CASH,
                    description=f"Closing count adjustment: {outcome} of {format_cents(abs(difference))}",
                    reference=f"Register close {register.id}",
                )
            register.counted_final_balance_cents = counted_balance_cents
            register.final_difference_cents = difference

        register.expected_final_balance_cents = expected
        register.status = RegisterStatus.CLOSED.value
        register.closed_at = utcnow()
        register.closed_by = actor
        register.notes = _append_note(register.notes, notes)
        db.session.commit()
        return register

    with register_lock(register_id):
        register = run_with_retry(_op)

    current_app.logger.info(
        "Register %s closed by %s; expected final balance %s",
        register.id, actor, format_cents(register.expected_final_balance_cents),
    )
    return register


def get_register(tenant_id: str, branch_id: str, register_id: int) -> CashRegister:
    tenant_id, branch_id = require_scope(tenant_id, branch_id)
    return load_register(tenant_id, branch_id, coerce_register_id(register_id))


def list_registers(tenant_id: str, branch_id: str, status=None) -> list[CashRegister]:
    """Registers of a branch, newest first, optionally filtered by status."""
    tenant_id, branch_id = require_scope(tenant_id, branch_id)
    query = db.session.query(CashRegister).filter_by(tenant_id=tenant_id, branch_id=branch_id)
    if status is not None:
        try:
            status = RegisterStatus(str(status).strip().upper())
        except ValueError:
            raise ValidationError(f"Invalid register status: {status!r}")
        query = query.filter_by(status=status.value)
    return query.order_by(CashRegister.opened_at.desc(), CashRegister.id.desc()).all()


def list_open_registers(tenant_id: str, branch_id: str) -> list[CashRegister]:
    return list_registers(tenant_id, branch_id, status=RegisterStatus.OPEN)


def get_current_register(tenant_id: str, branch_id: str) -> CashRegister | None:
    """Most recently opened OPEN register of the branch, if any."""
    open_registers = list_open_registers(tenant_id, branch_id)
    return open_registers[0] if open_registers else None


def has_open_register(tenant_id: str, branch_id: str) -> bool:
    return get_current_register(tenant_id, branch_id) is not None
