import base64
import json
from decimal import Decimal

import pytest

from conftest import MockApi, SpyOrderStatus, json_response
from storefront_payment_ms.features.payments.application.use_cases import WebhookEventProcessor
from storefront_payment_ms.features.payments.domain.entities import OrderCreationRequest
from storefront_payment_ms.features.payments.domain.enums import (
    CaptureStatus,
    OrderStatus,
    RefundStatus,
    VoidStatus,
    WebhookEventKind,
)
from storefront_payment_ms.features.payments.infrastructure.adapters import MpgsGateway
from storefront_payment_ms.features.payments.infrastructure.clients import MpgsApiClient
from storefront_payment_ms.shared.domain.exceptions import (
    PaymentError,
    PaymentErrorKind,
    WebhookHeadersMissingError,
    WebhookVerificationError,
)

BASE_PATH = "/api/rest/version/78/merchant/TESTMERCHANT"


def _gateway(api: MockApi, sleep, processor) -> MpgsGateway:
    client = MpgsApiClient(
        "https://mpgs.test",
        "TESTMERCHANT",
        "api-password",
        retry_delay_ms=100,
        transport=api.transport,
        sleep=sleep,
    )
    return MpgsGateway(client, processor, webhook_secret="mpgs-secret")


def _order(status: str, **extra) -> dict:
    return {"id": "ORDER123", "status": status, "amount": 10.0, "currency": "USD", **extra}


async def test_create_order_opens_checkout_session(sleep, processor):
    api = MockApi(json_response(201, {"result": "SUCCESS", "session": {"id": "SESSION0001"}}))
    gateway = _gateway(api, sleep, processor)
    details = OrderCreationRequest(amount=Decimal("10"), currency="USD", order_id="ORDER123")

    order = await gateway.create_order(Decimal("10"), "USD", details)

    assert order.id == "ORDER123"
    request = api.requests[0]
    assert request.method == "POST"
    assert request.url.path == f"{BASE_PATH}/session"
    expected = base64.b64encode(b"merchant.TESTMERCHANT:api-password").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    body = api.body(0)
    assert body["apiOperation"] == "INITIATE_CHECKOUT"
    assert body["order"] == {"id": "ORDER123", "amount": "10.00", "currency": "USD"}


async def test_create_order_generates_order_id(sleep, processor):
    api = MockApi(json_response(201, {"result": "SUCCESS", "session": {"id": "SESSION0001"}}))
    gateway = _gateway(api, sleep, processor)

    order = await gateway.create_order(Decimal("5"), "JPY")

    assert len(order.id) == 32
    assert api.body(0)["order"]["amount"] == "5"


async def test_create_order_without_session_is_business_error(sleep, processor):
    api = MockApi(json_response(201, {"result": "FAILURE"}))
    gateway = _gateway(api, sleep, processor)

    with pytest.raises(PaymentError) as exc_info:
        await gateway.create_order(Decimal("10"), "USD")

    assert exc_info.value.kind is PaymentErrorKind.BUSINESS_LOGIC_ERROR


async def test_invalid_field_is_business_error(sleep, processor):
    api = MockApi(
        json_response(
            400,
            {
                "result": "ERROR",
                "error": {
                    "cause": "INVALID_REQUEST",
                    "validationType": "INVALID",
                    "explanation": "Value '-1' is invalid.",
                },
            },
        )
    )
    gateway = _gateway(api, sleep, processor)

    with pytest.raises(PaymentError) as exc_info:
        await gateway.create_order(Decimal("10"), "USD")

    assert exc_info.value.kind is PaymentErrorKind.BUSINESS_LOGIC_ERROR
    assert exc_info.value.message == "Value '-1' is invalid."
    assert api.calls == 1


async def test_capture_authorized_order(sleep, processor):
    api = MockApi(
        json_response(200, _order("AUTHORIZED")),
        json_response(
            200,
            {
                "result": "SUCCESS",
                "response": {"gatewayCode": "APPROVED"},
                "transaction": {"id": "capture-1", "amount": 10.0, "currency": "USD"},
                "timeOfRecord": "2024-05-01T12:00:00.000Z",
            },
        ),
    )
    gateway = _gateway(api, sleep, processor)

    capture = await gateway.capture_payment("ORDER123")

    assert api.requests[0].url.path == f"{BASE_PATH}/order/ORDER123"
    assert api.requests[1].method == "PUT"
    assert api.requests[1].url.path == f"{BASE_PATH}/order/ORDER123/transaction/capture-1"
    assert api.body(1)["transaction"] == {"amount": "10.00", "currency": "USD"}
    assert capture.status is CaptureStatus.SUCCESS
    assert capture.gateway_response_code == "APPROVED"
    assert capture.amount_captured == Decimal("10.0")


async def test_capture_of_captured_order_is_idempotent(sleep, processor):
    api = MockApi(
        json_response(
            200,
            _order(
                "CAPTURED",
                totalCapturedAmount=10.0,
                transaction=[{"transaction": {"id": "TXN1", "type": "CAPTURE"}}],
            ),
        )
    )
    gateway = _gateway(api, sleep, processor)

    capture = await gateway.capture_payment("ORDER123")

    assert api.calls == 1
    assert capture.transaction_id == "TXN1"
    assert capture.status is CaptureStatus.SUCCESS


async def test_capture_of_unauthorized_order_is_rejected(sleep, processor):
    api = MockApi(json_response(200, _order("FAILED")))
    gateway = _gateway(api, sleep, processor)

    with pytest.raises(PaymentError) as exc_info:
        await gateway.capture_payment("ORDER123")

    assert exc_info.value.kind is PaymentErrorKind.BUSINESS_LOGIC_ERROR
    assert api.calls == 1


async def test_refund_defaults_to_remaining_amount(sleep, processor):
    api = MockApi(
        json_response(
            200,
            _order("PARTIALLY_REFUNDED", totalCapturedAmount=10.0, totalRefundedAmount=4.0),
        ),
        json_response(200, {"result": "SUCCESS", "response": {"gatewayCode": "APPROVED"}}),
    )
    gateway = _gateway(api, sleep, processor)

    refund = await gateway.refund_payment("ORDER123")

    assert refund.status is RefundStatus.SUCCESS
    assert refund.amount_refunded == Decimal("6.0")
    assert api.body(1)["transaction"]["amount"] == "6.00"
    assert api.requests[1].url.path.startswith(f"{BASE_PATH}/order/ORDER123/transaction/refund-")


async def test_refund_of_uncaptured_order_is_rejected(sleep, processor):
    api = MockApi(json_response(200, _order("AUTHORIZED")))
    gateway = _gateway(api, sleep, processor)

    with pytest.raises(PaymentError) as exc_info:
        await gateway.refund_payment("ORDER123", Decimal("5"))

    assert exc_info.value.kind is PaymentErrorKind.BUSINESS_LOGIC_ERROR
    assert api.calls == 1


async def test_void_targets_authorization(sleep, processor):
    api = MockApi(
        json_response(
            200,
            _order(
                "AUTHORIZED",
                transaction=[{"transaction": {"id": "auth-7", "type": "AUTHORIZATION"}}],
            ),
        ),
        json_response(200, {"result": "SUCCESS"}),
    )
    gateway = _gateway(api, sleep, processor)

    void = await gateway.void_payment("ORDER123")

    assert void.status is VoidStatus.SUCCESS
    assert api.requests[1].url.path == f"{BASE_PATH}/order/ORDER123/transaction/void-1"
    assert api.body(1)["transaction"] == {"targetTransactionId": "auth-7"}


async def test_void_of_captured_order_is_rejected(sleep, processor):
    api = MockApi(json_response(200, _order("CAPTURED")))
    gateway = _gateway(api, sleep, processor)

    with pytest.raises(PaymentError) as exc_info:
        await gateway.void_payment("ORDER123")

    assert exc_info.value.kind is PaymentErrorKind.BUSINESS_LOGIC_ERROR


def _notification(transaction_type: str, result: str) -> bytes:
    return json.dumps(
        {
            "result": result,
            "order": {"id": "ORDER123"},
            "transaction": {"id": "TXN1", "type": transaction_type},
            "timeOfRecord": "2024-05-01T12:00:00.000Z",
        }
    ).encode()


async def test_webhook_with_matching_secret_updates_order(sleep, processor, order_status):
    gateway = _gateway(MockApi(), sleep, processor)
    headers = {"X-Notification-Id": "N-1", "X-Notification-Secret": "mpgs-secret"}

    event = await gateway.process_webhook(headers, _notification("PAYMENT", "SUCCESS"))

    assert event.type == "PAYMENT.SUCCESS"
    assert event.kind is WebhookEventKind.CAPTURE_COMPLETED
    assert order_status.updates == [("ORDER123", OrderStatus.COMPLETED, "TXN1")]


async def test_webhook_with_numeric_time_of_record_still_updates_order(sleep, processor, order_status):
    gateway = _gateway(MockApi(), sleep, processor)
    payload = json.loads(_notification("PAYMENT", "SUCCESS"))
    payload["timeOfRecord"] = 1714564800000
    headers = {"x-notification-id": "N-3", "x-notification-secret": "mpgs-secret"}

    event = await gateway.process_webhook(headers, json.dumps(payload).encode())

    assert event.timestamp > 0
    assert order_status.updates == [("ORDER123", OrderStatus.COMPLETED, "TXN1")]


async def test_refund_notification_marks_order_refunded(sleep):
    order_status = SpyOrderStatus({"ORDER123": OrderStatus.COMPLETED})
    gateway = _gateway(MockApi(), sleep, WebhookEventProcessor(order_status))
    headers = {"x-notification-id": "N-2", "x-notification-secret": "mpgs-secret"}

    event = await gateway.process_webhook(headers, _notification("REFUND", "SUCCESS"))

    assert event.kind is WebhookEventKind.REFUND_COMPLETED
    assert order_status.updates == [("ORDER123", OrderStatus.REFUNDED, "TXN1")]


async def test_webhook_with_wrong_secret_is_rejected(sleep, processor, order_status):
    gateway = _gateway(MockApi(), sleep, processor)
    headers = {"x-notification-id": "N-1", "x-notification-secret": "guess"}

    with pytest.raises(WebhookVerificationError):
        await gateway.process_webhook(headers, _notification("PAYMENT", "SUCCESS"))

    assert order_status.updates == []


async def test_webhook_without_secret_header(sleep, processor):
    gateway = _gateway(MockApi(), sleep, processor)

    with pytest.raises(WebhookHeadersMissingError) as exc_info:
        await gateway.process_webhook({"x-notification-id": "N-1"}, b"{}")

    assert exc_info.value.missing == ["x-notification-secret"]
