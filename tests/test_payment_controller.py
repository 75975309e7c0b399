import json
import logging
import zlib
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import FakeGateway, MockApi, RecordingSleep, json_response
from storefront_payment_ms.features.payments.application.use_cases import WebhookEventProcessor
from storefront_payment_ms.features.payments.application.use_cases.payment_controller import (
    PaymentController,
)
from storefront_payment_ms.features.payments.domain.enums import CaptureStatus, OrderStatus
from storefront_payment_ms.features.payments.infrastructure.adapters import PayPalGateway
from storefront_payment_ms.features.payments.infrastructure.clients import (
    OrderServiceClient,
    PayPalApiClient,
)
from storefront_payment_ms.features.payments.infrastructure.gateway_registry import (
    GatewayRegistry,
)
from storefront_payment_ms.shared.domain.exceptions import (
    MalformedWebhookPayloadError,
    PaymentError,
    PaymentErrorKind,
    WebhookVerificationError,
    WebhookVerificationUnavailableError,
)
from storefront_payment_ms.shared.infrastructure.security import WebhookVerifier


def _paypal_controller(api: MockApi, sleep, processor) -> PaymentController:
    client = PayPalApiClient(
        "https://paypal.test",
        "client-id",
        "client-secret",
        retry_delay_ms=100,
        transport=api.transport,
        sleep=sleep,
    )
    registry = GatewayRegistry()
    registry.register(
        "paypal",
        PayPalGateway(client, processor, webhook_id="WH-1", webhook_secret="whsec_paypal"),
    )
    return PaymentController(registry)


def _controller(*gateways: FakeGateway) -> PaymentController:
    registry = GatewayRegistry()
    for gateway in gateways:
        registry.register(gateway.gateway_name, gateway)
    return PaymentController(registry)


def _paypal_webhook(secret: str = "whsec_paypal") -> tuple[dict[str, str], bytes]:
    body = json.dumps(
        {
            "id": "WH-EVT-1",
            "event_type": "PAYMENT.CAPTURE.COMPLETED",
            "resource": {"invoice_id": "ORDER123", "id": "TXN1"},
        }
    ).encode()
    transmission_time = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    signed = f"tid-1|{transmission_time}|WH-1|{zlib.crc32(body)}"
    headers = {
        "paypal-transmission-id": "tid-1",
        "paypal-transmission-time": transmission_time,
        "paypal-transmission-sig": WebhookVerifier.compute_signature(signed, secret),
    }
    return headers, body


async def test_checkout_returns_gateway_order_id(sleep, processor):
    api = MockApi(json_response(201, {"id": "ORDER123", "status": "CREATED"}))
    controller = _paypal_controller(api, sleep, processor)

    result = await controller.initiate_checkout(Decimal("10.00"), "USD", "paypal")

    assert result == {"orderId": "ORDER123"}
    assert api.body(0)["purchase_units"][0]["amount"]["value"] == "10.00"


async def test_checkout_with_unknown_gateway_is_client_error(sleep, processor):
    api = MockApi()
    controller = _paypal_controller(api, sleep, processor)

    with pytest.raises(PaymentError) as exc_info:
        await controller.initiate_checkout(Decimal("10.00"), "USD", "stripe")

    assert exc_info.value.kind is PaymentErrorKind.CLIENT_ERROR
    assert exc_info.value.status_code == 400
    assert exc_info.value.details["available"] == ["paypal"]
    assert api.calls == 0


async def test_process_payment_captures_order():
    controller = _controller(FakeGateway("paypal"))

    capture = await controller.process_payment("ORDER123", "PAYER1", "paypal")

    assert capture.status is CaptureStatus.SUCCESS
    assert capture.order_id == "ORDER123"


async def test_refund_and_void_use_named_gateway():
    controller = _controller(FakeGateway("mock"))

    refund = await controller.refund_payment("TXN1", "mock", Decimal("4.00"))
    void = await controller.void_payment("AUTH1", "mock")

    assert refund.amount_refunded == Decimal("4.00")
    assert void.transaction_id == "AUTH1"


async def test_signed_webhook_updates_order_exactly_once(sleep, processor, order_status):
    controller = _paypal_controller(MockApi(), sleep, processor)
    headers, body = _paypal_webhook()

    result = await controller.handle_webhook(headers, body)

    assert result.status_code == 200
    assert result.message == "Webhook processed successfully"
    assert order_status.updates == [("ORDER123", OrderStatus.COMPLETED, "TXN1")]


async def test_webhook_without_known_fingerprint_is_rejected():
    gateway = FakeGateway("paypal", "paypal-transmission-id")
    controller = _controller(gateway)

    result = await controller.handle_webhook({"content-type": "application/json"}, b"{}")

    assert (result.status_code, result.message) == (400, "Unknown gateway type")
    assert gateway.webhook_calls == 0


async def test_tampered_webhook_is_forbidden(sleep, processor, order_status):
    controller = _paypal_controller(MockApi(), sleep, processor)
    headers, body = _paypal_webhook(secret="not-the-secret")

    result = await controller.handle_webhook(headers, body)

    assert result.status_code == 403
    assert order_status.updates == []


async def test_webhook_missing_headers_is_bad_request(sleep, processor):
    controller = _paypal_controller(MockApi(), sleep, processor)

    result = await controller.handle_webhook({"paypal-transmission-id": "tid-1"}, b"{}")

    assert result.status_code == 400
    assert "paypal-transmission-time" in result.message


def _raise(error: Exception):
    def effect() -> None:
        raise error

    return effect


@pytest.mark.parametrize(
    "error, status_code",
    [
        (PaymentError("no order", PaymentErrorKind.BUSINESS_LOGIC_ERROR), 200),
        (MalformedWebhookPayloadError(), 400),
        (WebhookVerificationError("bad signature"), 403),
        (WebhookVerificationUnavailableError("PayPal down"), 503),
        (PaymentError("rejected", PaymentErrorKind.CLIENT_ERROR, status_code=400), 500),
        (PaymentError("expired", PaymentErrorKind.AUTHENTICATION_ERROR, status_code=401), 500),
        (PaymentError("busy", PaymentErrorKind.SERVER_ERROR, status_code=503), 500),
        (PaymentError("boom", PaymentErrorKind.SERVER_ERROR, status_code=500), 500),
        (RuntimeError("unexpected"), 500),
    ],
)
async def test_webhook_error_statuses(error, status_code):
    gateway = FakeGateway("mock", "x-mock-signature", webhook_effect=_raise(error))
    controller = _controller(gateway)

    result = await controller.handle_webhook({"X-Mock-Signature": "t=1,v1=00"}, b'{"id": "e1"}')

    assert result.status_code == status_code
    assert gateway.webhook_calls == 1


def _order_service(*responses) -> OrderServiceClient:
    return OrderServiceClient(
        "https://orders.test",
        "service-token",
        max_retries=0,
        transport=MockApi(*responses).transport,
        sleep=RecordingSleep(),
    )


@pytest.mark.parametrize("status", [400, 401, 403])
async def test_order_service_rejection_during_webhook_is_server_error(sleep, status):
    order_service = _order_service(json_response(status, {"message": "rejected"}))
    controller = _paypal_controller(MockApi(), sleep, WebhookEventProcessor(order_service))
    headers, body = _paypal_webhook()

    result = await controller.handle_webhook(headers, body)

    assert (result.status_code, result.message) == (500, "Error processing webhook")


async def test_malformed_signed_webhook_is_bad_request(sleep, processor, order_status):
    controller = _paypal_controller(MockApi(), sleep, processor)
    body = b"[1, 2, 3]"
    transmission_time = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    signed = f"tid-1|{transmission_time}|WH-1|{zlib.crc32(body)}"
    headers = {
        "paypal-transmission-id": "tid-1",
        "paypal-transmission-time": transmission_time,
        "paypal-transmission-sig": WebhookVerifier.compute_signature(signed, "whsec_paypal"),
    }

    result = await controller.handle_webhook(headers, body)

    assert (result.status_code, result.message) == (400, "Webhook payload must be a JSON object.")
    assert order_status.updates == []


async def test_capture_log_leaves_out_payer_identity(caplog):
    controller = _controller(FakeGateway("paypal"))

    with caplog.at_level(logging.INFO):
        await controller.process_payment("ORDER123", "PAYER-SECRET-1", "paypal")

    assert caplog.records
    for record in caplog.records:
        assert not hasattr(record, "payer_id")
        assert "PAYER-SECRET-1" not in record.getMessage()
