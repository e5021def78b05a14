# Overview: Balance and summary calculator; derives expected/actual balances and payment-method totals from history.

"""
Register Summary

Two balances are reported side by side:
- actual_balance_cents: the register's incrementally maintained
  current_balance_cents.
- expected_balance_cents: recomputed from the initial balance and the
  fixed-sign movement totals. Adjustments are reported separately in
  total_adjustments_cents and are not part of this figure.

ledger_balance_cents additionally folds in signed adjustments, so it must
always equal actual_balance_cents; any ledger_drift_cents is a
consistency alert, independent of any audit.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..models import CashMovement, CashRegister, MovementType, PaymentMethod
from ..money import format_cents
from ..validation import require_scope
from .movement_service import load_register, signed_amount_cents


# Movement types that feed the per-payment-method breakdown.
# EXPENSE-type movements are intentionally left out (pending product decision).
PAYMENT_METHOD_TOTAL_TYPES = frozenset({MovementType.INCOME, MovementType.SALE, MovementType.DEPOSIT})

_TOTAL_FIELDS = {
    MovementType.INCOME: "total_income_cents",
    MovementType.EXPENSE: "total_expense_cents",
    MovementType.SALE: "total_sales_cents",
    MovementType.REFUND: "total_refunds_cents",
    MovementType.WITHDRAWAL: "total_withdrawals_cents",
    MovementType.DEPOSIT: "total_deposits_cents",
    MovementType.ADJUSTMENT: "total_adjustments_cents",
}

_missing_totals = set(MovementType) - set(_TOTAL_FIELDS)
if _missing_totals:
    raise RuntimeError(f"Movement types without a summary total: {sorted(t.value for t in _missing_totals)}")


def payment_method_key(method) -> str:
    return PaymentMethod(method).value.lower()


@dataclass(frozen=True)
class RegisterSummary:
    register_id: int
    status: str
    initial_balance_cents: int
    total_income_cents: int = 0
    total_expense_cents: int = 0
    total_sales_cents: int = 0
    total_refunds_cents: int = 0
    total_withdrawals_cents: int = 0
    total_deposits_cents: int = 0
    total_adjustments_cents: int = 0
    payment_method_totals: dict[str, int] = field(default_factory=dict)
    expected_balance_cents: int = 0
    actual_balance_cents: int = 0
    difference_cents: int = 0
    ledger_balance_cents: int = 0
    ledger_drift_cents: int = 0
    movement_count: int = 0
    sales_count: int = 0

    @property
    def expected_cash_cents(self) -> int:
        """Cash slice reconciled by audits."""
        return self.payment_method_totals.get(payment_method_key(PaymentMethod.CASH), 0)

    def to_dict(self) -> dict:
        data = {
            "register_id": self.register_id,
            "status": self.status,
            "movement_count": self.movement_count,
            "sales_count": self.sales_count,
            "payment_method_totals_cents": dict(self.payment_method_totals),
            "payment_method_totals": {
                key: format_cents(value) for key, value in self.payment_method_totals.items()
            },
        }
        for name in (
            "initial_balance_cents",
            "total_income_cents",
            "total_expense_cents",
            "total_sales_cents",
            "total_refunds_cents",
            "total_withdrawals_cents",
            "total_deposits_cents",
            "total_adjustments_cents",
            "expected_balance_cents",
            "actual_balance_cents",
            "difference_cents",
            "ledger_balance_cents",
            "ledger_drift_cents",
        ):
            cents = getattr(self, name)
            data[name] = cents
            data[name[: -len("_cents")]] = format_cents(cents)
        return data


def build_summary(register: CashRegister, movements: list[CashMovement]) -> RegisterSummary:
    """Pure aggregation over a register and its movement history."""
    totals = {name: 0 for name in _TOTAL_FIELDS.values()}
    method_totals = {payment_method_key(method): 0 for method in PaymentMethod}
    signed_total = 0
    sales_count = 0

    for movement in movements:
        movement_type = MovementType(movement.type)
        totals[_TOTAL_FIELDS[movement_type]] += abs(movement.amount_cents)
        signed_total += signed_amount_cents(movement_type, movement.amount_cents)
        if movement_type in PAYMENT_METHOD_TOTAL_TYPES:
            method_totals[payment_method_key(movement.payment_method)] += movement.amount_cents
        if movement_type is MovementType.SALE:
            sales_count += 1

    expected = (
        register.initial_balance_cents
        + totals["total_income_cents"]
        + totals["total_sales_cents"]
        + totals["total_deposits_cents"]
        - totals["total_expense_cents"]
        - totals["total_refunds_cents"]
        - totals["total_withdrawals_cents"]
    )
    actual = register.current_balance_cents
    ledger_balance = register.initial_balance_cents + signed_total

    return RegisterSummary(
        register_id=register.id,
        status=register.status,
        initial_balance_cents=register.initial_balance_cents,
        payment_method_totals=method_totals,
        expected_balance_cents=expected,
        actual_balance_cents=actual,
        difference_cents=actual - expected,
        ledger_balance_cents=ledger_balance,
        ledger_drift_cents=actual - ledger_balance,
        movement_count=len(movements),
        sales_count=sales_count,
        **totals,
    )


def register_movements(register: CashRegister) -> list[CashMovement]:
    return db.session.query(CashMovement).filter_by(
        register_id=register.id,
    ).order_by(CashMovement.sequence).all()


def summarize(tenant_id: str, branch_id: str, register_id: int) -> RegisterSummary:
    """Summary of a register's balances and totals. Read-only."""
    tenant_id, branch_id = require_scope(tenant_id, branch_id)
    register = load_register(tenant_id, branch_id, register_id)
    return build_summary(register, register_movements(register))


@dataclass(frozen=True)
class LedgerCheck:
    register_id: int
    current_balance_cents: int
    ledger_balance_cents: int
    movement_count: int

    @property
    def drift_cents(self) -> int:
        return self.current_balance_cents - self.ledger_balance_cents

    @property
    def is_consistent(self) -> bool:
        return self.drift_cents == 0

    def to_dict(self) -> dict:
        return {
            "register_id": self.register_id,
            "current_balance_cents": self.current_balance_cents,
            "ledger_balance_cents": self.ledger_balance_cents,
            "drift_cents": self.drift_cents,
            "movement_count": self.movement_count,
            "is_consistent": self.is_consistent,
        }


def check_ledger_integrity(tenant_id: str, branch_id: str, register_id: int) -> LedgerCheck:
    """
    Compare the running balance against one re-derived from history.

    Drift is reported and logged as a warning; the stored balance is not
    rewritten here.
    """
    summary = summarize(tenant_id, branch_id, register_id)
    check = LedgerCheck(
        register_id=summary.register_id,
        current_balance_cents=summary.actual_balance_cents,
        ledger_balance_cents=summary.ledger_balance_cents,
        movement_count=summary.movement_count,
    )
    if not check.is_consistent:
        current_app.logger.warning(
            "Ledger drift on register %s: current=%s ledger=%s drift=%s",
            check.register_id, check.current_balance_cents,
            check.ledger_balance_cents, check.drift_cents,
        )
    return check
