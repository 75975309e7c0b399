"""Payment gateway port (interface) - Adapter Pattern."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from storefront_payment_ms.features.payments.domain.entities import (
    Order,
    OrderCreationRequest,
    PaymentCaptureResponse,
    RefundResponse,
    VoidResponse,
    WebhookEvent,
)


class PaymentGatewayPort(ABC):
    """
    Abstract interface for payment gateways (Adapter Pattern).

    Implementations:
    - PayPalGateway
    - MpgsGateway
    - MockGateway (for development)

    Every failure leaving a gateway is a ``PaymentError``; provider-native
    error shapes never cross this boundary.
    """

    @property
    @abstractmethod
    def gateway_name(self) -> str:
        """Get the gateway name used for registry lookups."""

    @property
    @abstractmethod
    def webhook_fingerprint_header(self) -> str:
        """Header whose presence identifies this gateway's webhooks."""

    @abstractmethod
    async def create_order(
        self,
        amount: Decimal,
        currency: str,
        details: OrderCreationRequest | None = None,
    ) -> Order:
        """
        Create an order with the gateway.

        ``amount`` is in major units and must be positive; ``currency`` is a
        3-letter ISO 4217 code.
        """

    @abstractmethod
    async def capture_payment(
        self, order_id: str, details: Mapping[str, Any] | None = None
    ) -> PaymentCaptureResponse:
        """
        Capture an approved order.

        Capturing an order that is already captured returns the existing
        capture instead of failing.
        """

    @abstractmethod
    async def refund_payment(
        self,
        transaction_id: str,
        amount: Decimal | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> RefundResponse:
        """
        Refund a captured transaction.

        If amount is None, full refund is performed.
        """

    @abstractmethod
    async def void_payment(
        self, authorization_id: str, details: Mapping[str, Any] | None = None
    ) -> VoidResponse:
        """Cancel an authorization before it is captured."""

    @abstractmethod
    async def process_webhook(
        self, headers: Mapping[str, str], raw_body: bytes
    ) -> WebhookEvent:
        """
        Verify, parse and dispatch an inbound webhook.

        Unverified signatures are rejected before the payload is parsed.
        """
