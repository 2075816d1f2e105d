from decimal import Decimal, InvalidOperation

from bukkapay.core.exceptions import ValidationError

# ISO 4217 minor units for the currencies the wallet holds.
CURRENCY_MINOR_UNITS = {
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "ZAR": 2,
    "NGN": 2,
    "KES": 2,
    "GHS": 2,
    "JPY": 0,
}

ZERO = Decimal("0")

# Balances and amounts are stored as NUMERIC(18, 2).
MAX_AMOUNT = Decimal(10) ** 16


def normalize_currency(currency: str) -> str:
    code = (currency or "").strip().upper()
    if code not in CURRENCY_MINOR_UNITS:
        raise ValidationError(f"Unsupported currency: {currency!r}")
    return code


def parse_amount(value, currency: str) -> Decimal:
    """
    Parse a positive amount and check it against the currency's minor unit.

    Floats are accepted only through their string form so that 0.1 stays
    0.1 and does not become 0.1000000000000000055511151231257827.
    """
    code = normalize_currency(currency)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid amount: {value!r}")

    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    if amount <= ZERO:
        raise ValidationError("Amount must be greater than zero")
    if amount >= MAX_AMOUNT:
        raise ValidationError(f"Amount must be below {MAX_AMOUNT:,}")

    places = CURRENCY_MINOR_UNITS[code]
    if -amount.normalize().as_tuple().exponent > places:
        raise ValidationError(
            f"{code} amounts allow at most {places} decimal places"
        )
    try:
        return amount.quantize(Decimal(1).scaleb(-places))
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {value!r}")
