"""Payment value objects exchanged with gateways."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from storefront_payment_ms.features.payments.domain.enums import (
    CaptureStatus,
    RefundStatus,
    VoidStatus,
    WebhookEventKind,
)
from storefront_payment_ms.features.payments.domain.money import normalize_currency, to_decimal


@dataclass(frozen=True)
class Address:
    line1: str
    city: str
    postal_code: str
    country: str  # ISO 3166-1 alpha-2
    line2: str | None = None
    state: str | None = None


@dataclass(frozen=True)
class OrderItem:
    id: str
    name: str
    quantity: int
    unit_price: Decimal
    currency: str
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))
        object.__setattr__(self, "currency", normalize_currency(self.currency))


@dataclass(frozen=True)
class CustomerInfo:
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    billing_address: Address | None = None
    shipping_address: Address | None = None


@dataclass(frozen=True)
class OrderCreationRequest:
    """Checkout request handed to ``create_order``."""

    amount: Decimal
    currency: str
    order_id: str | None = None
    description: str | None = None
    customer_info: CustomerInfo | None = None
    items: tuple[OrderItem, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        object.__setattr__(self, "currency", normalize_currency(self.currency))
        object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class Order:
    """Order as created at the gateway."""

    id: str
    status: str
    approve_url: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class PaymentCaptureResponse:
    transaction_id: str
    status: CaptureStatus
    amount_captured: Decimal
    currency: str
    captured_at: str
    order_id: str | None = None
    gateway_response_code: str | None = None
    gateway_response_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RefundResponse:
    refund_id: str
    transaction_id: str
    status: RefundStatus
    amount_refunded: Decimal
    currency: str
    refunded_at: str
    gateway_response_code: str | None = None
    gateway_response_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VoidResponse:
    void_id: str
    transaction_id: str
    status: VoidStatus
    voided_at: str
    gateway_response_code: str | None = None
    gateway_response_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WebhookEvent:
    """
    Inbound webhook event after signature verification.

    ``order_id`` and ``transaction_id`` are the references the gateway
    extracted from its provider-specific payload.
    """

    id: str
    type: str
    timestamp: int  # unix milliseconds
    data: dict[str, Any]
    gateway: str
    kind: WebhookEventKind = WebhookEventKind.OTHER
    signature: str | None = None
    order_id: str | None = None
    transaction_id: str | None = None
