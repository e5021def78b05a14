import pytest

from cashbox.extensions import db
from cashbox.models import CashMovement, CashRegister
from cashbox.services import audit_service, movement_service, register_service, summary_service
from cashbox.services.audit_service import classify_difference
from cashbox.validation import (
    AuditNotFoundError,
    DenominationError,
    DenominationMismatchError,
    InvalidAmountError,
    RegisterNotFoundError,
)

from conftest import BRANCH, CASHIER, TENANT

SUPERVISOR = "supervisor-7"


def _append(register_id, movement_type, amount_cents, payment_method="CASH"):
    return movement_service.append_movement(
        TENANT, BRANCH, CASHIER, register_id, movement_type, amount_cents,
        payment_method=payment_method,
    )


def _audit(register_id, actual_cash_cents, **kwargs):
    return audit_service.perform_audit(TENANT, BRANCH, SUPERVISOR, register_id, actual_cash_cents, **kwargs)


@pytest.mark.parametrize("difference, status", [
    (0, "BALANCED"),
    (1, "SURPLUS"),
    (7500, "SURPLUS"),
    (-1, "SHORTAGE"),
    (-2000, "SHORTAGE"),
])
def test_classification(difference, status):
    assert classify_difference(difference).value == status


def test_audit_reconciles_cash_slice_and_books_surplus(register):
    _append(register.id, "SALE", 5000)
    _append(register.id, "EXPENSE", 2000)

    audit = _audit(register.id, 12500)

    assert audit.expected_cash_cents == 5000
    assert audit.difference_cents == 7500
    assert audit.status == "SURPLUS"
    assert audit.performed_by == SUPERVISOR

    adjustment = db.session.get(CashMovement, audit.adjustment_movement_id)
    assert adjustment.type == "ADJUSTMENT"
    assert adjustment.amount_cents == 7500
    assert adjustment.payment_method == "CASH"
    assert adjustment.audit_id == audit.id
    assert adjustment.reference == f"Audit {audit.id}"
    assert "surplus" in adjustment.description

    assert db.session.get(CashRegister, register.id).current_balance_cents == 10000 + 5000 - 2000 + 7500
    summary = summary_service.summarize(TENANT, BRANCH, register.id)
    assert summary.total_adjustments_cents == 7500
    assert summary.ledger_drift_cents == 0


def test_shortage_books_negative_adjustment(register):
    _append(register.id, "SALE", 5000)

    audit = _audit(register.id, 4200)

    assert audit.status == "SHORTAGE"
    assert audit.difference_cents == -800
    adjustment = db.session.get(CashMovement, audit.adjustment_movement_id)
    assert adjustment.amount_cents == -800
    assert "shortage" in adjustment.description
    assert db.session.get(CashRegister, register.id).current_balance_cents == 15000 - 800


def test_balanced_audit_appends_nothing(register):
    _append(register.id, "SALE", 5000)

    audit = _audit(register.id, 5000)

    assert audit.status == "BALANCED"
    assert audit.adjustment_movement_id is None
    assert db.session.query(CashMovement).filter_by(register_id=register.id).count() == 1


def test_caller_supplied_expected_cash_wins(register):
    _append(register.id, "SALE", 5000)

    audit = _audit(register.id, 15000, expected_cash_cents=15000)

    assert audit.expected_cash_cents == 15000
    assert audit.status == "BALANCED"


def test_audit_on_closed_register_records_without_adjustment(register):
    _append(register.id, "SALE", 5000)
    register_service.close_register(TENANT, BRANCH, register.id, CASHIER)

    audit = _audit(register.id, 4000)

    assert audit.status == "SHORTAGE"
    assert audit.adjustment_movement_id is None
    assert db.session.query(CashMovement).filter_by(register_id=register.id).count() == 1


def test_denominations_are_sanitized_and_stored(register):
    _append(register.id, "SALE", 12500)

    audit = _audit(register.id, 12500, denominations={
        "bills": {"100": 1, "20": 1, "50": None},
        "coins": {"0.5": 10, "0.25": -4},
    })

    assert audit.denominations == {
        "bills": {"100": 1, "20": 1},
        "coins": {"0.5": 10, "0.25": 0},
    }
    assert audit.denomination_total_cents == 12500
    assert audit.denominations_match is True
    assert audit.status == "BALANCED"


def test_denomination_mismatch_is_flagged_in_permissive_mode(register):
    _append(register.id, "SALE", 5000)

    audit = _audit(register.id, 5000, denominations={"bills": {"20": 2}})

    # Counted cash is trusted; the breakdown disagreement stays visible
    assert audit.actual_cash_cents == 5000
    assert audit.denomination_total_cents == 4000
    assert audit.denominations_match is False
    assert audit.to_dict()["denominations_match"] is False


def test_denomination_mismatch_is_rejected_in_strict_mode(app, register, monkeypatch):
    monkeypatch.setitem(app.config, "CASH_STRICT_DENOMINATIONS", True)
    _append(register.id, "SALE", 5000)

    with pytest.raises(DenominationMismatchError):
        _audit(register.id, 5000, denominations={"bills": {"20": 2}})

    assert audit_service.list_audits(TENANT, BRANCH, register.id) == []
    assert db.session.get(CashRegister, register.id).current_balance_cents == 15000


def test_malformed_denominations_are_rejected(register):
    with pytest.raises(DenominationError):
        _audit(register.id, 100, denominations={"bills": {"twenty": 5}})


def test_invalid_counted_amounts(register):
    with pytest.raises(InvalidAmountError):
        _audit(register.id, -1)
    with pytest.raises(InvalidAmountError):
        _audit(register.id, 10.5)


def test_audit_of_unknown_register(db_session):
    with pytest.raises(RegisterNotFoundError):
        _audit(31337, 100)


def test_audit_history_newest_first(register):
    _append(register.id, "SALE", 5000)
    first = _audit(register.id, 5000)
    second = _audit(register.id, 4900)

    audits = audit_service.list_audits(TENANT, BRANCH, register.id)
    assert [a.id for a in audits] == [second.id, first.id]
    assert audit_service.get_last_audit(TENANT, BRANCH, register.id).id == second.id
    assert audit_service.get_audit(TENANT, BRANCH, first.id).status == "BALANCED"


def test_last_audit_is_none_without_history(register):
    assert audit_service.get_last_audit(TENANT, BRANCH, register.id) is None


def test_get_audit_is_scoped(register):
    audit = _audit(register.id, 0)
    with pytest.raises(AuditNotFoundError):
        audit_service.get_audit(TENANT, "other-branch", audit.id)
