from decimal import Decimal

import pytest

from storefront_payment_ms.features.payments.domain.money import (
    format_amount,
    normalize_currency,
    require_positive_amount,
)
from storefront_payment_ms.shared.domain.exceptions import PaymentError, PaymentErrorKind


@pytest.mark.parametrize(
    "amount, currency, expected",
    [
        (Decimal("10"), "USD", "10.00"),
        (Decimal("10.005"), "EUR", "10.01"),
        (Decimal("1500.4"), "JPY", "1500"),
        (Decimal("1500.5"), "jpy", "1501"),
    ],
)
def test_format_amount_uses_currency_decimal_places(amount, currency, expected):
    assert format_amount(amount, currency) == expected


def test_normalize_currency():
    assert normalize_currency(" usd ") == "USD"
    with pytest.raises(PaymentError) as exc_info:
        normalize_currency("DOLLARS")
    assert exc_info.value.kind is PaymentErrorKind.CLIENT_ERROR


@pytest.mark.parametrize("amount", ["0", "-1", "NaN", "abc"])
def test_require_positive_amount_rejects(amount):
    with pytest.raises(PaymentError):
        require_positive_amount(amount)
