"""PayPal Payment Gateway Adapter."""

import logging
import time
import zlib
from collections.abc import Mapping
from decimal import Decimal
from typing import Any
from urllib.parse import urlparse

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
from storefront_payment_ms.features.payments.infrastructure.clients import PayPalApiClient
from storefront_payment_ms.shared.domain.exceptions import (
    PaymentError,
    PaymentErrorKind,
    WebhookVerificationError,
    WebhookVerificationUnavailableError,
)
from storefront_payment_ms.shared.infrastructure.security import WebhookVerifier

logger = logging.getLogger(__name__)

TRANSMISSION_ID = "paypal-transmission-id"
TRANSMISSION_TIME = "paypal-transmission-time"
TRANSMISSION_SIG = "paypal-transmission-sig"
CERT_URL = "paypal-cert-url"
AUTH_ALGO = "paypal-auth-algo"

# Certificates are only fetched by PayPal from its own hosts.
PINNED_CERT_HOSTS = frozenset(
    {
        "api.paypal.com",
        "api-m.paypal.com",
        "api.sandbox.paypal.com",
        "api-m.sandbox.paypal.com",
    }
)

EVENT_KINDS: dict[str, WebhookEventKind] = {
    "PAYMENT.CAPTURE.COMPLETED": WebhookEventKind.CAPTURE_COMPLETED,
    "PAYMENT.CAPTURE.DENIED": WebhookEventKind.CAPTURE_DENIED,
    "PAYMENT.CAPTURE.DECLINED": WebhookEventKind.CAPTURE_DENIED,
    "PAYMENT.CAPTURE.REFUNDED": WebhookEventKind.REFUND_COMPLETED,
    "PAYMENT.REFUND.COMPLETED": WebhookEventKind.REFUND_COMPLETED,
    "REFUND.COMPLETED": WebhookEventKind.REFUND_COMPLETED,
    "PAYMENT.AUTHORIZATION.VOIDED": WebhookEventKind.AUTHORIZATION_VOIDED,
}

CAPTURE_STATUSES: dict[str, CaptureStatus] = {
    "COMPLETED": CaptureStatus.SUCCESS,
    "PENDING": CaptureStatus.PENDING,
    "DECLINED": CaptureStatus.FAILED,
    "FAILED": CaptureStatus.FAILED,
    "REFUNDED": CaptureStatus.REFUNDED,
    "PARTIALLY_REFUNDED": CaptureStatus.REFUNDED,
}

REFUND_STATUSES: dict[str, RefundStatus] = {
    "COMPLETED": RefundStatus.SUCCESS,
    "PENDING": RefundStatus.PENDING,
}


class PayPalGateway(PaymentGatewayPort):
    """
    PayPal Orders v2 gateway.

    Webhooks are verified either with a shared HMAC secret over PayPal's
    transmission fields (``hmac``) or through PayPal's
    verify-webhook-signature endpoint (``api``).
    """

    def __init__(
        self,
        client: PayPalApiClient,
        processor: WebhookEventProcessor,
        *,
        webhook_id: str = "",
        webhook_secret: str = "",
        verification_mode: str = "hmac",
        intent: str = "CAPTURE",
        timestamp_tolerance_ms: int = 300_000,
    ) -> None:
        self._client = client
        self._processor = processor
        self._webhook_id = webhook_id
        self._webhook_secret = webhook_secret
        self._verification_mode = verification_mode
        self._intent = intent
        self._tolerance_ms = timestamp_tolerance_ms

    @property
    def gateway_name(self) -> str:
        return "paypal"

    @property
    def webhook_fingerprint_header(self) -> str:
        return TRANSMISSION_ID

    @property
    def client(self) -> PayPalApiClient:
        return self._client

    async def create_order(
        self,
        amount: Decimal,
        currency: str,
        details: OrderCreationRequest | None = None,
    ) -> Order:
        amount = require_positive_amount(amount)
        currency = normalize_currency(currency)

        purchase_unit: dict[str, Any] = {
            "amount": {"currency_code": currency, "value": format_amount(amount, currency)},
        }
        body: dict[str, Any] = {"intent": self._intent, "purchase_units": [purchase_unit]}
        if details is not None:
            _apply_order_details(body, purchase_unit, details, currency)

        data = await self._client.request("POST", "/v2/checkout/orders", json=body)
        order_id = data.get("id") if isinstance(data, dict) else None
        if not order_id:
            raise PaymentError(
                "PayPal order response carried no id.",
                PaymentErrorKind.UNKNOWN_ERROR,
                details={"response": data},
            )

        approve_url = next(
            (
                link.get("href")
                for link in data.get("links", [])
                if isinstance(link, dict) and link.get("rel") in ("approve", "payer-action")
            ),
            None,
        )
        logger.info(
            "PayPal order created",
            extra={"order_id": order_id, "amount": str(amount), "currency": currency},
        )
        return Order(id=order_id, status=data.get("status", "CREATED"), approve_url=approve_url, raw=data)

    async def capture_payment(
        self, order_id: str, details: Mapping[str, Any] | None = None
    ) -> PaymentCaptureResponse:
        headers = {"PayPal-Request-Id": f"capture-{order_id}", "Prefer": "return=representation"}
        try:
            if self._intent == "AUTHORIZE":
                data = await self._authorize_and_capture(order_id, details, headers)
            else:
                data = await self._client.request(
                    "POST",
                    f"/v2/checkout/orders/{order_id}/capture",
                    json=dict(details or {}),
                    headers=headers,
                )
        except PaymentError as error:
            if error.gateway_error_code != "ORDER_ALREADY_CAPTURED":
                raise
            logger.info(
                "PayPal order already captured, returning existing capture",
                extra={"order_id": order_id},
            )
            data = await self._client.request("GET", f"/v2/checkout/orders/{order_id}")
        return _capture_from_order(order_id, data)

    async def refund_payment(
        self,
        transaction_id: str,
        amount: Decimal | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> RefundResponse:
        details = dict(details or {})
        body: dict[str, Any] = {}
        currency = None
        if amount is not None:
            amount = require_positive_amount(amount)
            if not details.get("currency"):
                raise PaymentError(
                    "A currency is required for a partial refund.",
                    PaymentErrorKind.CLIENT_ERROR,
                )
            currency = normalize_currency(details["currency"])
            body["amount"] = {"value": format_amount(amount, currency), "currency_code": currency}
        if details.get("note_to_payer"):
            body["note_to_payer"] = details["note_to_payer"]

        data = await self._client.request(
            "POST",
            f"/v2/payments/captures/{transaction_id}/refund",
            json=body,
            headers={"Prefer": "return=representation"},
        )
        refunded = data.get("amount") or {}
        return RefundResponse(
            refund_id=data.get("id", ""),
            transaction_id=transaction_id,
            status=REFUND_STATUSES.get(data.get("status", ""), RefundStatus.FAILED),
            amount_refunded=to_decimal(refunded.get("value", amount or 0)),
            currency=refunded.get("currency_code") or currency or "",
            refunded_at=data.get("create_time") or utc_now_iso(),
            gateway_response_code=data.get("status"),
            metadata={"paypal_status": data.get("status")},
        )

    async def void_payment(
        self, authorization_id: str, details: Mapping[str, Any] | None = None
    ) -> VoidResponse:
        data = await self._client.request(
            "POST",
            f"/v2/payments/authorizations/{authorization_id}/void",
            json={},
        )
        # PayPal answers 204 No Content unless a representation is requested.
        status = data.get("status", "VOIDED") if isinstance(data, dict) else "VOIDED"
        return VoidResponse(
            void_id=data.get("id", authorization_id) if isinstance(data, dict) else authorization_id,
            transaction_id=authorization_id,
            status=VoidStatus.SUCCESS if status == "VOIDED" else VoidStatus.PENDING,
            voided_at=utc_now_iso(),
            gateway_response_code=status,
        )

    async def process_webhook(
        self, headers: Mapping[str, str], raw_body: bytes
    ) -> WebhookEvent:
        headers = normalize_headers(headers)
        transmission_id, transmission_time, signature = require_headers(
            headers, TRANSMISSION_ID, TRANSMISSION_TIME, TRANSMISSION_SIG
        )

        if self._verification_mode == "api":
            payload = parse_json_body(raw_body)
            await self._verify_with_api(headers, payload)
        else:
            self._verify_hmac(raw_body, transmission_id, transmission_time, signature)
            payload = parse_json_body(raw_body)

        event_type = str(payload.get("event_type", ""))
        resource = payload.get("resource") if isinstance(payload.get("resource"), dict) else {}
        timestamp = payload.get("create_time") or transmission_time
        try:
            timestamp_ms = iso_to_ms(timestamp)
        except ValueError:
            timestamp_ms = int(time.time() * 1000)

        event = WebhookEvent(
            id=str(payload.get("id") or transmission_id),
            type=event_type,
            timestamp=timestamp_ms,
            data=payload,
            gateway=self.gateway_name,
            kind=EVENT_KINDS.get(event_type, WebhookEventKind.OTHER),
            signature=signature,
            order_id=resource.get("invoice_id") or resource.get("custom_id"),
            transaction_id=resource.get("id"),
        )
        await self._processor.process(event)
        return event

    async def _authorize_and_capture(
        self,
        order_id: str,
        details: Mapping[str, Any] | None,
        headers: dict[str, str],
    ) -> dict[str, Any]:
        order = await self._client.request(
            "POST",
            f"/v2/checkout/orders/{order_id}/authorize",
            json=dict(details or {}),
            headers={**headers, "PayPal-Request-Id": f"authorize-{order_id}"},
        )
        authorization = _first_payment(order, "authorizations")
        if authorization is None:
            raise PaymentError(
                "PayPal authorization response carried no authorization.",
                PaymentErrorKind.UNKNOWN_ERROR,
                details={"order_id": order_id},
            )
        capture = await self._client.request(
            "POST",
            f"/v2/payments/authorizations/{authorization['id']}/capture",
            json={},
            headers=headers,
        )
        return {"id": order_id, "purchase_units": [{"payments": {"captures": [capture]}}]}

    def _verify_hmac(
        self, raw_body: bytes, transmission_id: str, transmission_time: str, signature: str
    ) -> None:
        signed = f"{transmission_id}|{transmission_time}|{self._webhook_id}|{zlib.crc32(raw_body)}"
        if not WebhookVerifier.verify_hmac(signed, signature, self._webhook_secret):
            raise WebhookVerificationError("Invalid PayPal signature")
        try:
            sent_ms = iso_to_ms(transmission_time)
        except ValueError as exc:
            raise WebhookVerificationError("Invalid transmission time") from exc
        if not WebhookVerifier.verify_timestamp(sent_ms, self._tolerance_ms):
            raise WebhookVerificationError("Transmission time outside tolerance")

    async def _verify_with_api(self, headers: dict[str, str], payload: dict[str, Any]) -> None:
        cert_url, auth_algo = require_headers(headers, CERT_URL, AUTH_ALGO)
        parsed = urlparse(cert_url)
        if parsed.scheme != "https" or parsed.hostname not in PINNED_CERT_HOSTS:
            raise WebhookVerificationError("Untrusted certificate URL")

        try:
            result = await self._client.request(
                "POST",
                "/v1/notifications/verify-webhook-signature",
                json={
                    "auth_algo": auth_algo,
                    "cert_url": cert_url,
                    "transmission_id": headers[TRANSMISSION_ID],
                    "transmission_sig": headers[TRANSMISSION_SIG],
                    "transmission_time": headers[TRANSMISSION_TIME],
                    "webhook_id": self._webhook_id,
                    "webhook_event": payload,
                },
            )
        except PaymentError as error:
            raise WebhookVerificationUnavailableError(error.message) from error

        if not isinstance(result, dict) or result.get("verification_status") != "SUCCESS":
            raise WebhookVerificationError("PayPal rejected the signature")


def _apply_order_details(
    body: dict[str, Any],
    purchase_unit: dict[str, Any],
    details: OrderCreationRequest,
    currency: str,
) -> None:
    if details.order_id:
        purchase_unit["reference_id"] = details.order_id
        purchase_unit["invoice_id"] = details.order_id
        purchase_unit["custom_id"] = details.order_id
    if details.description:
        purchase_unit["description"] = details.description[:127]

    if details.items:
        item_total = sum((item.unit_price * item.quantity for item in details.items), Decimal(0))
        purchase_unit["items"] = [
            {
                "name": item.name[:127],
                "sku": item.id,
                "quantity": str(item.quantity),
                "unit_amount": {
                    "currency_code": item.currency,
                    "value": format_amount(item.unit_price, item.currency),
                },
            }
            for item in details.items
        ]
        purchase_unit["amount"]["breakdown"] = {
            "item_total": {"currency_code": currency, "value": format_amount(item_total, currency)}
        }

    customer = details.customer_info
    if customer is None:
        return
    payer: dict[str, Any] = {}
    if customer.email:
        payer["email_address"] = customer.email
    if customer.first_name or customer.last_name:
        payer["name"] = {
            "given_name": customer.first_name or "",
            "surname": customer.last_name or "",
        }
    if payer:
        body["payer"] = payer
    if customer.shipping_address is not None:
        address = customer.shipping_address
        purchase_unit["shipping"] = {
            "address": {
                "address_line_1": address.line1,
                "address_line_2": address.line2,
                "admin_area_2": address.city,
                "admin_area_1": address.state,
                "postal_code": address.postal_code,
                "country_code": address.country,
            }
        }


def _first_payment(order: Any, kind: str) -> dict[str, Any] | None:
    if not isinstance(order, dict):
        return None
    for unit in order.get("purchase_units", []):
        payments = (unit or {}).get("payments") or {}
        entries = payments.get(kind) or []
        if entries and isinstance(entries[0], dict):
            return entries[0]
    return None


def _capture_from_order(order_id: str, order: Any) -> PaymentCaptureResponse:
    capture = _first_payment(order, "captures")
    if capture is None:
        raise PaymentError(
            f"PayPal order {order_id} has no capture.",
            PaymentErrorKind.UNKNOWN_ERROR,
            details={"order_status": order.get("status") if isinstance(order, dict) else None},
        )
    amount = capture.get("amount") or {}
    paypal_status = capture.get("status", "")
    return PaymentCaptureResponse(
        transaction_id=capture.get("id", ""),
        status=CAPTURE_STATUSES.get(paypal_status, CaptureStatus.PENDING),
        amount_captured=to_decimal(amount.get("value", "0")),
        currency=amount.get("currency_code", ""),
        captured_at=capture.get("create_time") or utc_now_iso(),
        order_id=order.get("id", order_id),
        gateway_response_code=paypal_status,
        gateway_response_message=(capture.get("status_details") or {}).get("reason"),
    )
