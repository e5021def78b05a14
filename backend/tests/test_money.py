from decimal import Decimal

import pytest

from cashbox.money import coerce_cents, format_cents, from_cents, to_cents
from cashbox.validation import InvalidAmountError


@pytest.mark.parametrize("value, cents", [
    ("12.50", 1250),
    (" 0.01 ", 1),
    (Decimal("150.00"), 15000),
    (7, 700),
    ("-3.2", -320),
])
def test_to_cents_accepts_exact_decimals(value, cents):
    assert to_cents(value) == cents


@pytest.mark.parametrize("value", [12.5, True, None, "1e3", "abc", "", "0.001", Decimal("NaN")])
def test_to_cents_rejects_inexact_or_malformed_values(value):
    with pytest.raises(InvalidAmountError):
        to_cents(value)


def test_from_and_format_cents():
    assert from_cents(13000) == Decimal("130.00")
    assert format_cents(-7500) == "-75.00"
    assert format_cents(None) is None


def test_coerce_cents_is_strict():
    assert coerce_cents(2000, field="amount_cents") == 2000
    assert coerce_cents("2000", field="amount_cents") == 2000
    for bad in (20.0, "20.5", False, "2e3", None):
        with pytest.raises(InvalidAmountError):
            coerce_cents(bad, field="amount_cents")


@pytest.mark.parametrize("value", [
    "1" * 30,
    "-" + "9" * 40 + ".5",
    Decimal("1" * 30),
    10 ** 40,
    "10000000000.00",
])
def test_to_cents_rejects_out_of_range_amounts(value):
    with pytest.raises(InvalidAmountError, match="out of range"):
        to_cents(value)


def test_to_cents_accepts_largest_amount():
    assert to_cents("9999999999.99") == 999_999_999_999
