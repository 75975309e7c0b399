"""Outbound API clients for payment gateways and the order service."""

from storefront_payment_ms.features.payments.infrastructure.clients.mpgs_client import (
    MpgsApiClient,
)
from storefront_payment_ms.features.payments.infrastructure.clients.order_service_client import (
    OrderServiceClient,
)
from storefront_payment_ms.features.payments.infrastructure.clients.paypal_client import (
    PayPalApiClient,
)

__all__ = ["MpgsApiClient", "OrderServiceClient", "PayPalApiClient"]
