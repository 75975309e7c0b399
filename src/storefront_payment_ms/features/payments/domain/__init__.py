"""Payment domain entities and value objects."""

from storefront_payment_ms.features.payments.domain.entities import (
    Address,
    CustomerInfo,
    Order,
    OrderCreationRequest,
    OrderItem,
    PaymentCaptureResponse,
    RefundResponse,
    VoidResponse,
    WebhookEvent,
)
from storefront_payment_ms.features.payments.domain.enums import (
    CaptureStatus,
    OrderStatus,
    RefundStatus,
    VoidStatus,
    WebhookEventKind,
)

__all__ = [
    "Address",
    "CaptureStatus",
    "CustomerInfo",
    "Order",
    "OrderCreationRequest",
    "OrderItem",
    "OrderStatus",
    "PaymentCaptureResponse",
    "RefundResponse",
    "RefundStatus",
    "VoidResponse",
    "VoidStatus",
    "WebhookEvent",
    "WebhookEventKind",
]
