"""Payment gateway adapters."""

from storefront_payment_ms.features.payments.infrastructure.adapters.mock_adapter import (
    MockGateway,
)
from storefront_payment_ms.features.payments.infrastructure.adapters.mpgs_adapter import (
    MpgsGateway,
)
from storefront_payment_ms.features.payments.infrastructure.adapters.paypal_adapter import (
    PayPalGateway,
)

__all__ = ["MockGateway", "MpgsGateway", "PayPalGateway"]
