from decimal import Decimal

import pytest

from bukkapay.core.exceptions import ValidationError
from bukkapay.core.money import MAX_AMOUNT, normalize_currency, parse_amount


def test_parse_amount_quantizes_to_minor_unit():
    assert parse_amount("40", "USD") == Decimal("40.00")
    assert str(parse_amount("40", "usd")) == "40.00"
    assert parse_amount(Decimal("0.1"), "EUR") == Decimal("0.10")


def test_parse_amount_accepts_floats_through_their_string_form():
    assert parse_amount(0.1, "USD") == Decimal("0.10")


@pytest.mark.parametrize("value", ["0", "-5", "abc", "NaN", "Infinity", None])
def test_parse_amount_rejects_non_positive_or_garbage(value):
    with pytest.raises(ValidationError):
        parse_amount(value, "USD")


def test_parse_amount_rejects_sub_minor_unit_precision():
    with pytest.raises(ValidationError):
        parse_amount("1.005", "USD")
    with pytest.raises(ValidationError):
        parse_amount("10.5", "JPY")
    assert parse_amount("100", "JPY") == Decimal("100")


def test_unknown_currency_is_rejected():
    with pytest.raises(ValidationError):
        normalize_currency("XYZ")
    assert normalize_currency(" gbp ") == "GBP"


def test_parse_amount_rejects_exponent_notation_overflow():
    with pytest.raises(ValidationError):
        parse_amount(Decimal("1e30"), "USD")
    with pytest.raises(ValidationError):
        parse_amount("1e30", "JPY")


def test_parse_amount_rejects_amounts_too_large_to_store():
    with pytest.raises(ValidationError):
        parse_amount("10000000000000000", "USD")
    with pytest.raises(ValidationError):
        parse_amount(MAX_AMOUNT, "JPY")
    assert parse_amount("9999999999999999.99", "USD") == Decimal("9999999999999999.99")
