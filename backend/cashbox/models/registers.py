from __future__ import annotations

from enum import Enum

from ..extensions import db
from ..money import format_cents
from ..time_utils import to_utc_z


class RegisterStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class MovementType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    SALE = "SALE"
    REFUND = "REFUND"
    WITHDRAWAL = "WITHDRAWAL"
    DEPOSIT = "DEPOSIT"
    ADJUSTMENT = "ADJUSTMENT"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    APP = "APP"
    OTHER = "OTHER"


class AuditStatus(str, Enum):
    BALANCED = "BALANCED"
    SURPLUS = "SURPLUS"
    SHORTAGE = "SHORTAGE"


class CashRegister(db.Model):
    """
    A till scoped to one tenant branch.

    LIFECYCLE:
    - OPEN: created by an explicit open action, accepts movements
    - CLOSED: terminal; a new register is opened for the next shift

    current_balance_cents is maintained incrementally by the movement
    ledger and must always equal initial_balance_cents plus the signed
    sum of the register's movements.
    """
    __tablename__ = "cash_registers"
    __table_args__ = (
        db.Index("ix_cash_registers_scope_status", "tenant_id", "branch_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.String(64), nullable=False, index=True)
    branch_id = db.Column(db.String(64), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=RegisterStatus.OPEN.value)

    # Balances (all amounts in cents)
    initial_balance_cents = db.Column(db.BigInteger, nullable=False, default=0)
    current_balance_cents = db.Column(db.BigInteger, nullable=False, default=0)
    expected_final_balance_cents = db.Column(db.BigInteger, nullable=True)  # set at close
    counted_final_balance_cents = db.Column(db.BigInteger, nullable=True)  # optional count at close
    final_difference_cents = db.Column(db.BigInteger, nullable=True)  # counted - expected

    # Last sequence number handed to a movement of this register
    movement_sequence = db.Column(db.Integer, nullable=False, default=0)

    opened_at = db.Column(db.DateTime, nullable=False, index=True)
    opened_by = db.Column(db.String(128), nullable=False)
    closed_at = db.Column(db.DateTime, nullable=True)
    closed_by = db.Column(db.String(128), nullable=True)

    # Append-only text log
    notes = db.Column(db.Text, nullable=False, default="")
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == RegisterStatus.OPEN.value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "branch_id": self.branch_id,
            "name": self.name,
            "status": self.status,
            "initial_balance_cents": self.initial_balance_cents,
            "initial_balance": format_cents(self.initial_balance_cents),
            "current_balance_cents": self.current_balance_cents,
            "current_balance": format_cents(self.current_balance_cents),
            "expected_final_balance_cents": self.expected_final_balance_cents,
            "expected_final_balance": format_cents(self.expected_final_balance_cents),
            "counted_final_balance_cents": self.counted_final_balance_cents,
            "final_difference_cents": self.final_difference_cents,
            "opened_at": to_utc_z(self.opened_at),
            "opened_by": self.opened_by,
            "closed_at": to_utc_z(self.closed_at),
            "closed_by": self.closed_by,
            "notes": self.notes,
            "version_id": self.version_id,
        }


class CashMovement(db.Model):
    """
    One monetary event against a register.

    IMMUTABLE: corrections are new (offsetting) movements, never edits.
    amount_cents is a non-negative magnitude whose sign is implied by the
    type, except ADJUSTMENT which stores its own sign.
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.UniqueConstraint("register_id", "sequence", name="uq_cash_movements_register_sequence"),
        db.UniqueConstraint("register_id", "idempotency_key", name="uq_cash_movements_register_idempotency"),
        db.Index("ix_cash_movements_scope_register", "tenant_id", "branch_id", "register_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.String(64), nullable=False)
    branch_id = db.Column(db.String(64), nullable=False)
    register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)

    # Per-register append order
    sequence = db.Column(db.Integer, nullable=False)

    type = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.BigInteger, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, default=PaymentMethod.CASH.value)
    description = db.Column(db.String(255), nullable=False)
    reference = db.Column(db.String(255), nullable=True)

    # Back-references only (orders live in another subsystem)
    order_id = db.Column(db.String(64), nullable=True, index=True)
    order_number = db.Column(db.String(64), nullable=True)
    audit_id = db.Column(db.Integer, db.ForeignKey("cash_audits.id"), nullable=True)

    idempotency_key = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, index=True)
    created_by = db.Column(db.String(128), nullable=False)

    register = db.relationship("CashRegister", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "branch_id": self.branch_id,
            "register_id": self.register_id,
            "sequence": self.sequence,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "amount": format_cents(self.amount_cents),
            "payment_method": self.payment_method,
            "description": self.description,
            "reference": self.reference,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "audit_id": self.audit_id,
            "idempotency_key": self.idempotency_key,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
        }


class CashAudit(db.Model):
    """
    Point-in-time reconciliation of counted cash against expected cash.

    difference_cents = actual_cash_cents - expected_cash_cents, and the
    status follows its sign. Denominations, when present, are stored
    exactly as counted: {"bills": {face: count}, "coins": {face: count}}.
    """
    __tablename__ = "cash_audits"
    __table_args__ = (
        db.Index("ix_cash_audits_scope_register", "tenant_id", "branch_id", "register_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.String(64), nullable=False)
    branch_id = db.Column(db.String(64), nullable=False)
    register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)

    performed_at = db.Column(db.DateTime, nullable=False, index=True)
    performed_by = db.Column(db.String(128), nullable=False)

    expected_cash_cents = db.Column(db.BigInteger, nullable=False)
    actual_cash_cents = db.Column(db.BigInteger, nullable=False)
    difference_cents = db.Column(db.BigInteger, nullable=False)
    status = db.Column(db.String(16), nullable=False)

    notes = db.Column(db.Text, nullable=False, default="")
    denominations = db.Column(db.JSON, nullable=True)
    denomination_total_cents = db.Column(db.BigInteger, nullable=True)

    adjustment_movement_id = db.Column(db.Integer, nullable=True)

    register = db.relationship("CashRegister", backref=db.backref("audits", lazy=True))

    @property
    def denominations_match(self) -> bool | None:
        if self.denomination_total_cents is None:
            return None
        return self.denomination_total_cents == self.actual_cash_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "branch_id": self.branch_id,
            "register_id": self.register_id,
            "performed_at": to_utc_z(self.performed_at),
            "performed_by": self.performed_by,
            "expected_cash_cents": self.expected_cash_cents,
            "expected_cash": format_cents(self.expected_cash_cents),
            "actual_cash_cents": self.actual_cash_cents,
            "actual_cash": format_cents(self.actual_cash_cents),
            "difference_cents": self.difference_cents,
            "difference": format_cents(self.difference_cents),
            "status": self.status,
            "notes": self.notes,
            "denominations": self.denominations,
            "denomination_total_cents": self.denomination_total_cents,
            "denominations_match": self.denominations_match,
            "adjustment_movement_id": self.adjustment_movement_id,
        }
