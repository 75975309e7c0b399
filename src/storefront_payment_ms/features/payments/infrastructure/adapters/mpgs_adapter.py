"""Mastercard Payment Gateway Services (MPGS) Adapter."""

import logging
import time
import uuid
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
    format_amount,
    normalize_currency,
    require_positive_amount,
    to_decimal,
)
from storefront_payment_ms.features.payments.infrastructure.adapters.webhook_support import (
    iso_to_ms,
    normalize_headers,
    parse_json_body,
    require_headers,
    utc_now_iso,
)
from storefront_payment_ms.features.payments.infrastructure.clients import MpgsApiClient
from storefront_payment_ms.shared.domain.exceptions import (
    PaymentError,
    PaymentErrorKind,
    WebhookVerificationError,
)
from storefront_payment_ms.shared.infrastructure.security import WebhookVerifier

logger = logging.getLogger(__name__)

NOTIFICATION_ID = "x-notification-id"
NOTIFICATION_SECRET = "x-notification-secret"

REFUNDABLE_ORDER_STATUSES = frozenset({"CAPTURED", "PARTIALLY_REFUNDED"})
VOIDABLE_ORDER_STATUSES = frozenset({"AUTHORIZED"})

CAPTURE_RESULTS: dict[str, CaptureStatus] = {
    "SUCCESS": CaptureStatus.SUCCESS,
    "PENDING": CaptureStatus.PENDING,
    "FAILURE": CaptureStatus.FAILED,
    "ERROR": CaptureStatus.FAILED,
}

REFUND_RESULTS: dict[str, RefundStatus] = {
    "SUCCESS": RefundStatus.SUCCESS,
    "PENDING": RefundStatus.PENDING,
}

VOID_RESULTS: dict[str, VoidStatus] = {
    "SUCCESS": VoidStatus.SUCCESS,
    "PENDING": VoidStatus.PENDING,
}


class MpgsGateway(PaymentGatewayPort):
    """
    MPGS hosted-checkout gateway.

    Orders are identified by the merchant order id; refunds and voids take
    that order id as their transaction reference.
    """

    def __init__(
        self,
        client: MpgsApiClient,
        processor: WebhookEventProcessor,
        *,
        webhook_secret: str = "",
    ) -> None:
        self._client = client
        self._processor = processor
        self._webhook_secret = webhook_secret

    @property
    def gateway_name(self) -> str:
        return "mpgs"

    @property
    def webhook_fingerprint_header(self) -> str:
        return NOTIFICATION_ID

    @property
    def client(self) -> MpgsApiClient:
        return self._client

    async def create_order(
        self,
        amount: Decimal,
        currency: str,
        details: OrderCreationRequest | None = None,
    ) -> Order:
        amount = require_positive_amount(amount)
        currency = normalize_currency(currency)
        order_id = (details.order_id if details else None) or uuid.uuid4().hex

        order: dict[str, Any] = {
            "id": order_id,
            "amount": format_amount(amount, currency),
            "currency": currency,
        }
        if details is not None and details.description:
            order["description"] = details.description
        body = {
            "apiOperation": "INITIATE_CHECKOUT",
            "interaction": {"operation": "PURCHASE"},
            "order": order,
        }

        data = await self._client.request("POST", "/session", json=body)
        session = data.get("session") or {}
        if data.get("result") not in (None, "SUCCESS") or not session.get("id"):
            raise PaymentError(
                "MPGS did not open a checkout session.",
                PaymentErrorKind.BUSINESS_LOGIC_ERROR,
                gateway_error_code=data.get("result"),
                details={"order_id": order_id},
            )
        logger.info(
            "MPGS checkout session created",
            extra={"order_id": order_id, "amount": str(amount), "currency": currency},
        )
        return Order(id=order_id, status="CREATED", raw=data)

    async def capture_payment(
        self, order_id: str, details: Mapping[str, Any] | None = None
    ) -> PaymentCaptureResponse:
        order = await self._get_order(order_id)
        if order.get("status") == "CAPTURED":
            logger.info(
                "MPGS order already captured, returning existing capture",
                extra={"order_id": order_id},
            )
            return _existing_capture(order_id, order)
        if order.get("status") != "AUTHORIZED":
            raise PaymentError(
                f"Order {order_id} cannot be captured in status {order.get('status')}.",
                PaymentErrorKind.BUSINESS_LOGIC_ERROR,
                gateway_error_code=order.get("status"),
            )

        currency = order.get("currency", "")
        amount = to_decimal((details or {}).get("amount", order.get("amount", "0")))
        data = await self._client.request(
            "PUT",
            f"/order/{order_id}/transaction/capture-1",
            json={
                "apiOperation": "CAPTURE",
                "transaction": {"amount": format_amount(amount, currency), "currency": currency},
            },
        )
        transaction = data.get("transaction") or {}
        result = data.get("result", "")
        return PaymentCaptureResponse(
            transaction_id=transaction.get("id", "capture-1"),
            status=CAPTURE_RESULTS.get(result, CaptureStatus.PENDING),
            amount_captured=to_decimal(transaction.get("amount", amount)),
            currency=transaction.get("currency", currency),
            captured_at=data.get("timeOfRecord") or utc_now_iso(),
            order_id=order_id,
            gateway_response_code=(data.get("response") or {}).get("gatewayCode"),
            gateway_response_message=result,
        )

    async def refund_payment(
        self,
        transaction_id: str,
        amount: Decimal | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> RefundResponse:
        order = await self._get_order(transaction_id)
        if order.get("status") not in REFUNDABLE_ORDER_STATUSES:
            raise PaymentError(
                f"Order {transaction_id} cannot be refunded in status {order.get('status')}.",
                PaymentErrorKind.BUSINESS_LOGIC_ERROR,
                gateway_error_code=order.get("status"),
            )

        currency = order.get("currency", "")
        if amount is None:
            amount = to_decimal(order.get("totalCapturedAmount", 0)) - to_decimal(
                order.get("totalRefundedAmount", 0)
            )
        amount = require_positive_amount(amount)
        refund_id = (details or {}).get("refund_id") or f"refund-{uuid.uuid4().hex[:12]}"

        data = await self._client.request(
            "PUT",
            f"/order/{transaction_id}/transaction/{refund_id}",
            json={
                "apiOperation": "REFUND",
                "transaction": {"amount": format_amount(amount, currency), "currency": currency},
            },
        )
        result = data.get("result", "")
        return RefundResponse(
            refund_id=refund_id,
            transaction_id=transaction_id,
            status=REFUND_RESULTS.get(result, RefundStatus.FAILED),
            amount_refunded=amount,
            currency=currency,
            refunded_at=data.get("timeOfRecord") or utc_now_iso(),
            gateway_response_code=(data.get("response") or {}).get("gatewayCode"),
            gateway_response_message=result,
        )

    async def void_payment(
        self, authorization_id: str, details: Mapping[str, Any] | None = None
    ) -> VoidResponse:
        order = await self._get_order(authorization_id)
        if order.get("status") not in VOIDABLE_ORDER_STATUSES:
            raise PaymentError(
                f"Order {authorization_id} cannot be voided in status {order.get('status')}.",
                PaymentErrorKind.BUSINESS_LOGIC_ERROR,
                gateway_error_code=order.get("status"),
            )

        target = _find_transaction(order, "AUTHORIZATION")
        data = await self._client.request(
            "PUT",
            f"/order/{authorization_id}/transaction/void-1",
            json={
                "apiOperation": "VOID",
                "transaction": {"targetTransactionId": target or "1"},
            },
        )
        result = data.get("result", "")
        return VoidResponse(
            void_id="void-1",
            transaction_id=authorization_id,
            status=VOID_RESULTS.get(result, VoidStatus.FAILED),
            voided_at=data.get("timeOfRecord") or utc_now_iso(),
            gateway_response_code=(data.get("response") or {}).get("gatewayCode"),
            gateway_response_message=result,
        )

    async def process_webhook(
        self, headers: Mapping[str, str], raw_body: bytes
    ) -> WebhookEvent:
        headers = normalize_headers(headers)
        notification_id, secret = require_headers(headers, NOTIFICATION_ID, NOTIFICATION_SECRET)
        if not WebhookVerifier.secrets_match(secret, self._webhook_secret):
            raise WebhookVerificationError("Invalid notification secret")

        payload = parse_json_body(raw_body)
        order = payload.get("order") if isinstance(payload.get("order"), dict) else {}
        transaction = (
            payload.get("transaction") if isinstance(payload.get("transaction"), dict) else {}
        )
        transaction_type = str(transaction.get("type", ""))
        result = str(payload.get("result", ""))
        try:
            timestamp_ms = iso_to_ms(payload["timeOfRecord"])
        except (KeyError, TypeError, ValueError):
            timestamp_ms = int(time.time() * 1000)

        event = WebhookEvent(
            id=notification_id,
            type=f"{transaction_type}.{result}" if transaction_type else "UNKNOWN",
            timestamp=timestamp_ms,
            data=payload,
            gateway=self.gateway_name,
            kind=_event_kind(transaction_type, result),
            order_id=order.get("id"),
            transaction_id=transaction.get("id"),
        )
        await self._processor.process(event)
        return event

    async def _get_order(self, order_id: str) -> dict[str, Any]:
        data = await self._client.request("GET", f"/order/{order_id}")
        if not isinstance(data, dict):
            raise PaymentError(
                "Unexpected MPGS order response.", PaymentErrorKind.UNKNOWN_ERROR
            )
        return data


def _event_kind(transaction_type: str, result: str) -> WebhookEventKind:
    if transaction_type in ("CAPTURE", "PAYMENT"):
        if result == "SUCCESS":
            return WebhookEventKind.CAPTURE_COMPLETED
        if result == "FAILURE":
            return WebhookEventKind.CAPTURE_DENIED
    if transaction_type == "REFUND" and result == "SUCCESS":
        return WebhookEventKind.REFUND_COMPLETED
    if transaction_type in ("VOID_AUTHORIZATION", "VOID") and result == "SUCCESS":
        return WebhookEventKind.AUTHORIZATION_VOIDED
    return WebhookEventKind.OTHER


def _find_transaction(order: dict[str, Any], *types: str) -> str | None:
    for entry in order.get("transaction") or []:
        transaction = (entry or {}).get("transaction") or {}
        if transaction.get("type") in types:
            return transaction.get("id")
    return None


def _existing_capture(order_id: str, order: dict[str, Any]) -> PaymentCaptureResponse:
    return PaymentCaptureResponse(
        transaction_id=_find_transaction(order, "CAPTURE", "PAYMENT") or order_id,
        status=CaptureStatus.SUCCESS,
        amount_captured=to_decimal(order.get("totalCapturedAmount", order.get("amount", 0))),
        currency=order.get("currency", ""),
        captured_at=order.get("lastUpdatedTime") or utc_now_iso(),
        order_id=order_id,
        gateway_response_code="CAPTURED",
        gateway_response_message="Order already captured",
    )
