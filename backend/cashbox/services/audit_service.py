# Overview: Cash audits; compares counted cash with expected cash and books the discrepancy back into the ledger.

"""
Audit & Reconciliation

Each audit goes Collecting -> Evaluated -> Committed:
- Collecting: the caller supplies a counted amount, optionally with a
  bills/coins denomination breakdown.
- Evaluated: expected cash is the caller's figure or, by default, the
  CASH slice of the register's payment-method totals. The difference
  (actual - expected) decides BALANCED / SURPLUS / SHORTAGE.
- Committed: the audit row and, when the difference is non-zero and the
  register is still OPEN, one signed ADJUSTMENT movement are written in
  a single transaction.

The counted amount is trusted as given. A denomination breakdown whose
sum disagrees is stored and flagged, or rejected when
CASH_STRICT_DENOMINATIONS is on.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import AuditStatus, CashAudit, MovementType, PaymentMethod
from ..money import MAX_AMOUNT_CENTS, format_cents
from ..time_utils import utcnow
from ..validation import (
    AuditNotFoundError,
    DenominationMismatchError,
    InvalidAmountError,
    clean_text,
    clean_actor,
    require_scope,
)
from .concurrency import register_lock, run_with_retry
from .denomination_service import count_denominations, sanitize_denominations
from .movement_service import apply_movement, coerce_register_id, load_register
from .summary_service import build_summary, register_movements


def classify_difference(difference_cents: int) -> AuditStatus:
    if difference_cents > 0:
        return AuditStatus.SURPLUS
    if difference_cents < 0:
        return AuditStatus.SHORTAGE
    return AuditStatus.BALANCED


def _int_cents(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmountError(f"{field} must be an integer number of cents")
    if abs(value) > MAX_AMOUNT_CENTS:
        raise InvalidAmountError(f"{field} is out of range")
    return value


def perform_audit(
    tenant_id: str,
    branch_id: str,
    actor: str,
    register_id: int,
    actual_cash_cents: int,
    expected_cash_cents: int | None = None,
    notes: str | None = None,
    denominations: dict | None = None,
) -> CashAudit:
    """
    Reconcile a cash count against the register.

    Args:
        actual_cash_cents: counted cash (trusted as given)
        expected_cash_cents: caller-supplied expectation; defaults to the
            register's CASH payment-method total
        notes: free text stored on the audit
        denominations: {"bills": {face: count}, "coins": {face: count}}

    Raises:
        RegisterNotFoundError, InvalidAmountError, DenominationError,
        DenominationMismatchError (strict mode only)
    """
    tenant_id, branch_id = require_scope(tenant_id, branch_id)
    actor = clean_actor(actor)
    register_id = coerce_register_id(register_id)
    actual_cash_cents = _int_cents(actual_cash_cents, "actual_cash_cents")
    if actual_cash_cents < 0:
        raise InvalidAmountError("actual_cash_cents cannot be negative")
    if expected_cash_cents is not None:
        expected_cash_cents = _int_cents(expected_cash_cents, "expected_cash_cents")
    notes = clean_text(notes, field="notes", max_length=2000)

    denominations = sanitize_denominations(denominations)
    denomination_total = count_denominations(denominations) if denominations is not None else None
    if denomination_total is not None and denomination_total != actual_cash_cents:
        if current_app.config.get("CASH_STRICT_DENOMINATIONS", False):
            raise DenominationMismatchError(
                f"Denominations add up to {format_cents(denomination_total)} "
                f"but the counted cash is {format_cents(actual_cash_cents)}"
            )
        current_app.logger.warning(
            "Audit on register %s: denominations total %s differs from counted cash %s",
            register_id, format_cents(denomination_total), format_cents(actual_cash_cents),
        )

    def _op():
        register = load_register(tenant_id, branch_id, register_id, for_update=True)

        expected = expected_cash_cents
        if expected is None:
            expected = build_summary(register, register_movements(register)).expected_cash_cents
        difference = actual_cash_cents - expected
        status = classify_difference(difference)

        audit = CashAudit(
            tenant_id=tenant_id,
            branch_id=branch_id,
            register_id=register.id,
            performed_at=utcnow(),
            performed_by=actor,
            expected_cash_cents=expected,
            actual_cash_cents=actual_cash_cents,
            difference_cents=difference,
            status=status.value,
            notes=notes or "",
            denominations=denominations,
            denomination_total_cents=denomination_total,
        )
        db.session.add(audit)
        db.session.flush()

        if difference != 0 and register.is_open:
            outcome = "surplus" if status is AuditStatus.SURPLUS else "shortage"
            adjustment = apply_movement(
                register,
                actor=actor,
                movement_type=MovementType.ADJUSTMENT,
                amount_cents=difference,
                payment_method=PaymentMethod.CASH,
                description=f"Cash audit adjustment: {outcome} of {format_cents(abs(difference))}",
                reference=f"Audit {audit.id}",
                audit_id=audit.id,
            )
            audit.adjustment_movement_id = adjustment.id

        db.session.commit()
        return audit

    with register_lock(register_id):
        audit = run_with_retry(_op)

    current_app.logger.info(
        "Audit %s on register %s by %s: %s (difference %s)",
        audit.id, register_id, actor, audit.status, format_cents(audit.difference_cents),
    )
    return audit


def list_audits(tenant_id: str, branch_id: str, register_id: int) -> list[CashAudit]:
    """Audits of a register, newest first."""
    tenant_id, branch_id = require_scope(tenant_id, branch_id)
    register_id = coerce_register_id(register_id)
    load_register(tenant_id, branch_id, register_id)
    return db.session.query(CashAudit).filter_by(
        tenant_id=tenant_id,
        branch_id=branch_id,
        register_id=register_id,
    ).order_by(CashAudit.performed_at.desc(), CashAudit.id.desc()).all()


def get_last_audit(tenant_id: str, branch_id: str, register_id: int) -> CashAudit | None:
    audits = list_audits(tenant_id, branch_id, register_id)
    return audits[0] if audits else None


def get_audit(tenant_id: str, branch_id: str, audit_id: int) -> CashAudit:
    tenant_id, branch_id = require_scope(tenant_id, branch_id)
    audit = db.session.query(CashAudit).filter_by(
        id=audit_id,
        tenant_id=tenant_id,
        branch_id=branch_id,
    ).first()
    if not audit:
        raise AuditNotFoundError(f"Audit {audit_id} not found")
    return audit
