"""Mock Payment Gateway Adapter - For development and testing."""

import secrets
import time
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from storefront_payment_ms.features.payments.application.ports import PaymentGatewayPort
from storefront_payment_ms.features.payments.application.use_cases.webhook_event_processor import (
    WebhookEventProcessor,
)
from storefront_payment_ms.features.payments.domain.entities import (
    Order,
    OrderCreationRequest,
    PaymentCaptureResponse,
    RefundResponse,
    VoidResponse,
    WebhookEvent,
)
from storefront_payment_ms.features.payments.domain.enums import (
    CaptureStatus,
    RefundStatus,
    VoidStatus,
    WebhookEventKind,
)
from storefront_payment_ms.features.payments.domain.money import (
    normalize_currency,
    require_positive_amount,
)
from storefront_payment_ms.features.payments.infrastructure.adapters.webhook_support import (
    normalize_headers,
    parse_json_body,
    require_headers,
    utc_now_iso,
)
from storefront_payment_ms.shared.domain.exceptions import (
    PaymentError,
    PaymentErrorKind,
    WebhookVerificationError,
)
from storefront_payment_ms.shared.infrastructure.security import WebhookVerifier

SIGNATURE_HEADER = "x-mock-signature"


class MockGateway(PaymentGatewayPort):
    """
    Mock payment gateway for development and testing.

    Simulates the order lifecycle without external API calls. Webhooks are
    signed as ``t=<unix seconds>,v1=<hex hmac of "t.body">``.
    """

    def __init__(
        self,
        processor: WebhookEventProcessor,
        *,
        webhook_secret: str,
        timestamp_tolerance_ms: int = 300_000,
    ) -> None:
        self._processor = processor
        self._webhook_secret = webhook_secret
        self._tolerance_ms = timestamp_tolerance_ms
        self._orders: dict[str, dict[str, Any]] = {}

    @property
    def gateway_name(self) -> str:
        return "mock"

    @property
    def webhook_fingerprint_header(self) -> str:
        return SIGNATURE_HEADER

    async def create_order(
        self,
        amount: Decimal,
        currency: str,
        details: OrderCreationRequest | None = None,
    ) -> Order:
        amount = require_positive_amount(amount)
        currency = normalize_currency(currency)
        order_id = (details.order_id if details else None) or f"mock_order_{secrets.token_hex(8)}"
        self._orders[order_id] = {
            "amount": amount,
            "currency": currency,
            "status": "CREATED",
            "capture_id": None,
        }
        return Order(id=order_id, status="CREATED")

    async def capture_payment(
        self, order_id: str, details: Mapping[str, Any] | None = None
    ) -> PaymentCaptureResponse:
        order = self._order(order_id)
        if order["status"] == "CREATED":
            order["status"] = "CAPTURED"
            order["capture_id"] = f"mock_cap_{secrets.token_hex(8)}"
            order["captured_at"] = utc_now_iso()
        elif order["status"] != "CAPTURED":
            raise PaymentError(
                f"Order {order_id} cannot be captured in status {order['status']}.",
                PaymentErrorKind.BUSINESS_LOGIC_ERROR,
                gateway_error_code=order["status"],
            )
        return PaymentCaptureResponse(
            transaction_id=order["capture_id"],
            status=CaptureStatus.SUCCESS,
            amount_captured=order["amount"],
            currency=order["currency"],
            captured_at=order["captured_at"],
            order_id=order_id,
        )

    async def refund_payment(
        self,
        transaction_id: str,
        amount: Decimal | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> RefundResponse:
        order = self._order_by_capture(transaction_id)
        if order["status"] != "CAPTURED":
            raise PaymentError(
                f"Transaction {transaction_id} is not refundable.",
                PaymentErrorKind.BUSINESS_LOGIC_ERROR,
                gateway_error_code=order["status"],
            )
        refund_amount = order["amount"] if amount is None else require_positive_amount(amount)
        if refund_amount > order["amount"]:
            raise PaymentError(
                "Refund amount exceeds the captured amount.",
                PaymentErrorKind.BUSINESS_LOGIC_ERROR,
                gateway_error_code="REFUND_AMOUNT_EXCEEDED",
            )
        order["status"] = "REFUNDED"
        return RefundResponse(
            refund_id=f"mock_re_{secrets.token_hex(8)}",
            transaction_id=transaction_id,
            status=RefundStatus.SUCCESS,
            amount_refunded=refund_amount,
            currency=order["currency"],
            refunded_at=utc_now_iso(),
        )

    async def void_payment(
        self, authorization_id: str, details: Mapping[str, Any] | None = None
    ) -> VoidResponse:
        order = self._order(authorization_id)
        if order["status"] != "CREATED":
            raise PaymentError(
                f"Order {authorization_id} cannot be voided in status {order['status']}.",
                PaymentErrorKind.BUSINESS_LOGIC_ERROR,
                gateway_error_code=order["status"],
            )
        order["status"] = "VOIDED"
        return VoidResponse(
            void_id=f"mock_void_{secrets.token_hex(8)}",
            transaction_id=authorization_id,
            status=VoidStatus.SUCCESS,
            voided_at=utc_now_iso(),
        )

    async def process_webhook(
        self, headers: Mapping[str, str], raw_body: bytes
    ) -> WebhookEvent:
        (signature,) = require_headers(normalize_headers(headers), SIGNATURE_HEADER)
        timestamp = self._verify_signature(raw_body, signature)

        payload = parse_json_body(raw_body)
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        event_type = str(payload.get("type", ""))
        try:
            kind = WebhookEventKind(event_type)
        except ValueError:
            kind = WebhookEventKind.OTHER

        event = WebhookEvent(
            id=str(payload.get("id") or f"mock_evt_{secrets.token_hex(8)}"),
            type=event_type,
            timestamp=timestamp * 1000,
            data=payload,
            gateway=self.gateway_name,
            kind=kind,
            signature=signature,
            order_id=data.get("order_id"),
            transaction_id=data.get("transaction_id"),
        )
        await self._processor.process(event)
        return event

    def generate_webhook_signature(self, payload: str | bytes, timestamp: int | None = None) -> str:
        """
        Generate a webhook signature for testing.

        Useful for simulating webhook calls in development.
        """
        ts = int(time.time()) if timestamp is None else timestamp
        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        digest = WebhookVerifier.compute_signature(f"{ts}.{body}", self._webhook_secret, prefix="")
        return f"t={ts},v1={digest}"

    def _verify_signature(self, raw_body: bytes, signature: str) -> int:
        try:
            parts = dict(part.split("=", 1) for part in signature.split(","))
            timestamp = int(parts["t"])
            provided = parts["v1"]
        except (ValueError, KeyError) as exc:
            raise WebhookVerificationError("Malformed signature header") from exc

        signed = f"{timestamp}.".encode("utf-8") + raw_body
        if not WebhookVerifier.verify_webhook(
            signed,
            provided,
            self._webhook_secret,
            timestamp * 1000,
            prefix="",
            tolerance_ms=self._tolerance_ms,
        ):
            raise WebhookVerificationError("Invalid mock signature")
        return timestamp

    def _order(self, order_id: str) -> dict[str, Any]:
        order = self._orders.get(order_id)
        if order is None:
            raise PaymentError(
                f"Order {order_id} not found.",
                PaymentErrorKind.BUSINESS_LOGIC_ERROR,
                status_code=404,
                gateway_error_code="RESOURCE_NOT_FOUND",
            )
        return order

    def _order_by_capture(self, capture_id: str) -> dict[str, Any]:
        for order in self._orders.values():
            if order["capture_id"] == capture_id:
                return order
        raise PaymentError(
            f"Transaction {capture_id} not found.",
            PaymentErrorKind.BUSINESS_LOGIC_ERROR,
            status_code=404,
            gateway_error_code="RESOURCE_NOT_FOUND",
        )
