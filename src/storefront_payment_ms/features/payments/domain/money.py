"""Currency codes, amount validation and per-currency amount formatting."""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from storefront_payment_ms.shared.domain.exceptions import PaymentError, PaymentErrorKind

_CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")

# ISO 4217 currencies without a minor unit.
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"BIF", "CLP", "DJF", "GNF", "HUF", "ISK", "JPY", "KMF", "KRW", "PYG", "RWF",
     "TWD", "UGX", "VND", "VUV", "XAF", "XOF", "XPF"}
)


def normalize_currency(currency: str) -> str:
    """Upper-case and validate a 3-letter ISO-4217 code."""
    code = (currency or "").strip().upper()
    if not _CURRENCY_PATTERN.match(code):
        raise PaymentError(
            f"Invalid currency code '{currency}'. Expected a 3-letter ISO 4217 code.",
            PaymentErrorKind.CLIENT_ERROR,
        )
    return code


def to_decimal(amount: Any) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    try:
        return Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise PaymentError(
            f"Invalid amount '{amount}'.", PaymentErrorKind.CLIENT_ERROR
        ) from exc


def require_positive_amount(amount: Any) -> Decimal:
    value = to_decimal(amount)
    if not value.is_finite() or value <= 0:
        raise PaymentError(
            f"Amount must be a positive value, got '{amount}'.",
            PaymentErrorKind.CLIENT_ERROR,
        )
    return value


def minor_unit_exponent(currency: str) -> int:
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


def format_amount(amount: Decimal, currency: str) -> str:
    """Render a major-unit amount with the currency's decimal places."""
    exponent = minor_unit_exponent(currency)
    quantum = Decimal(1).scaleb(-exponent)
    return str(amount.quantize(quantum, rounding=ROUND_HALF_UP))
