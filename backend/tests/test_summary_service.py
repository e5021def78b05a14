import pytest

from cashbox.extensions import db
from cashbox.models import CashRegister
from cashbox.services import movement_service, summary_service
from cashbox.validation import RegisterNotFoundError

from conftest import BRANCH, CASHIER, TENANT


def _append(register_id, movement_type, amount_cents, payment_method="CASH"):
    return movement_service.append_movement(
        TENANT, BRANCH, CASHIER, register_id, movement_type, amount_cents,
        payment_method=payment_method,
    )


def test_cash_sale_raises_expected_balance_and_cash_total(register):
    _append(register.id, "SALE", 5000)

    summary = summary_service.summarize(TENANT, BRANCH, register.id)

    assert summary.expected_balance_cents == 15000
    assert summary.payment_method_totals["cash"] == 5000
    assert summary.expected_cash_cents == 5000
    assert summary.actual_balance_cents == 15000
    assert summary.difference_cents == 0


def test_expense_lowers_expected_balance(register):
    _append(register.id, "SALE", 5000)
    _append(register.id, "EXPENSE", 2000)

    summary = summary_service.summarize(TENANT, BRANCH, register.id)

    assert summary.expected_balance_cents == 13000
    assert summary.total_expense_cents == 2000
    # Outflows do not reduce the per-method breakdown
    assert summary.payment_method_totals["cash"] == 5000


def test_totals_per_type_and_payment_method(register):
    _append(register.id, "SALE", 5000, "CASH")
    _append(register.id, "SALE", 2500, "CARD")
    _append(register.id, "INCOME", 700, "TRANSFER")
    _append(register.id, "DEPOSIT", 300, "APP")
    _append(register.id, "REFUND", 400, "CARD")
    _append(register.id, "WITHDRAWAL", 1000, "CASH")
    _append(register.id, "ADJUSTMENT", -250)
    _append(register.id, "ADJUSTMENT", 100)

    summary = summary_service.summarize(TENANT, BRANCH, register.id)

    assert summary.total_sales_cents == 7500
    assert summary.total_income_cents == 700
    assert summary.total_deposits_cents == 300
    assert summary.total_refunds_cents == 400
    assert summary.total_withdrawals_cents == 1000
    assert summary.total_adjustments_cents == 350
    assert summary.payment_method_totals == {
        "cash": 5000,
        "card": 2500,
        "transfer": 700,
        "app": 300,
        "other": 0,
    }
    assert summary.sales_count == 2
    assert summary.movement_count == 8

    expected = 10000 + 7500 + 700 + 300 - 400 - 1000
    assert summary.expected_balance_cents == expected
    assert summary.actual_balance_cents == expected - 150
    assert summary.difference_cents == -150
    # Running balance still agrees with the full history
    assert summary.ledger_balance_cents == expected - 150
    assert summary.ledger_drift_cents == 0


def test_summary_of_fresh_register(register):
    summary = summary_service.summarize(TENANT, BRANCH, register.id)
    assert summary.expected_balance_cents == 10000
    assert summary.actual_balance_cents == 10000
    assert summary.movement_count == 0
    assert set(summary.payment_method_totals) == {"cash", "card", "transfer", "app", "other"}


def test_summary_reads_are_repeatable(register):
    _append(register.id, "SALE", 5000)
    assert (
        summary_service.summarize(TENANT, BRANCH, register.id).to_dict()
        == summary_service.summarize(TENANT, BRANCH, register.id).to_dict()
    )


def test_summary_serializes_decimal_strings(register):
    _append(register.id, "SALE", 5005)
    data = summary_service.summarize(TENANT, BRANCH, register.id).to_dict()
    assert data["expected_balance"] == "150.05"
    assert data["expected_balance_cents"] == 15005
    assert data["payment_method_totals"]["cash"] == "50.05"
    assert data["payment_method_totals_cents"]["cash"] == 5005


def test_summary_of_unknown_register(db_session):
    with pytest.raises(RegisterNotFoundError):
        summary_service.summarize(TENANT, BRANCH, 4242)


def test_integrity_check_passes_for_consistent_ledger(register):
    _append(register.id, "SALE", 5000)
    _append(register.id, "ADJUSTMENT", -100)

    check = summary_service.check_ledger_integrity(TENANT, BRANCH, register.id)

    assert check.is_consistent
    assert check.current_balance_cents == 14900
    assert check.movement_count == 2


def test_integrity_check_reports_drift(register):
    _append(register.id, "SALE", 5000)
    stored = db.session.get(CashRegister, register.id)
    stored.current_balance_cents += 500
    db.session.commit()

    check = summary_service.check_ledger_integrity(TENANT, BRANCH, register.id)

    assert not check.is_consistent
    assert check.drift_cents == 500
    assert check.to_dict()["is_consistent"] is False
