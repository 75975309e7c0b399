"""Payment application ports."""

from storefront_payment_ms.features.payments.application.ports.order_status_port import (
    OrderStatusPort,
    OrderStatusRecord,
)
from storefront_payment_ms.features.payments.application.ports.payment_gateway_port import (
    PaymentGatewayPort,
)

__all__ = [
    "OrderStatusPort",
    "OrderStatusRecord",
    "PaymentGatewayPort",
]
