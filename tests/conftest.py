"""Shared fixtures for the payment microservice tests."""

import json
from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any

import httpx
import pytest

from storefront_payment_ms.features.payments.application.ports import (
    OrderStatusPort,
    OrderStatusRecord,
    PaymentGatewayPort,
)
from storefront_payment_ms.features.payments.application.use_cases import WebhookEventProcessor
from storefront_payment_ms.features.payments.domain.entities import (
    Order,
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
)
from storefront_payment_ms.shared.core.settings import Settings


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockApi:
    """
    Scripted httpx transport.

    Responses are consumed in order; every request is recorded.
    """

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request {request.method} {request.url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def body(self, index: int) -> Any:
        content = self.requests[index].content
        return json.loads(content) if content else None


def json_response(status_code: int, payload: Any) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


class SpyOrderStatus(OrderStatusPort):
    """Order status collaborator that records every call."""

    def __init__(self, records: Mapping[str, OrderStatus] | None = None) -> None:
        self.records = {
            order_id: OrderStatusRecord(order_id, status)
            for order_id, status in (records or {}).items()
        }
        self.updates: list[tuple[str, OrderStatus, str | None]] = []
        self.anomalies: list[tuple[str, OrderStatus, str | None, str]] = []

    async def get_order_status(self, order_id: str) -> OrderStatusRecord | None:
        return self.records.get(order_id)

    async def update_order_status(
        self, order_id: str, status: OrderStatus, transaction_id: str | None
    ) -> None:
        self.updates.append((order_id, status, transaction_id))
        self.records[order_id] = OrderStatusRecord(order_id, status, transaction_id)

    async def flag_anomaly(
        self,
        order_id: str,
        attempted_status: OrderStatus,
        transaction_id: str | None,
        reason: str,
    ) -> None:
        self.anomalies.append((order_id, attempted_status, transaction_id, reason))


class FakeGateway(PaymentGatewayPort):
    """Gateway double whose webhook behaviour is scripted per test."""

    def __init__(
        self,
        name: str = "fake",
        fingerprint: str = "x-fake-id",
        webhook_effect: Callable[[], None] | None = None,
    ) -> None:
        self._name = name
        self._fingerprint = fingerprint
        self.webhook_effect = webhook_effect
        self.webhook_calls = 0
        self.create_error: Exception | None = None

    @property
    def gateway_name(self) -> str:
        return self._name

    @property
    def webhook_fingerprint_header(self) -> str:
        return self._fingerprint

    async def create_order(self, amount, currency, details=None) -> Order:
        if self.create_error is not None:
            raise self.create_error
        return Order(id=f"{self._name}-order", status="CREATED")

    async def capture_payment(self, order_id, details=None) -> PaymentCaptureResponse:
        return PaymentCaptureResponse(
            transaction_id="TXN1",
            status=CaptureStatus.SUCCESS,
            amount_captured=Decimal("10.00"),
            currency="USD",
            captured_at="2024-01-01T00:00:00+00:00",
            order_id=order_id,
        )

    async def refund_payment(self, transaction_id, amount=None, details=None) -> RefundResponse:
        return RefundResponse(
            refund_id="RF1",
            transaction_id=transaction_id,
            status=RefundStatus.SUCCESS,
            amount_refunded=amount or Decimal("10.00"),
            currency="USD",
            refunded_at="2024-01-01T00:00:00+00:00",
        )

    async def void_payment(self, authorization_id, details=None) -> VoidResponse:
        return VoidResponse(
            void_id="VD1",
            transaction_id=authorization_id,
            status=VoidStatus.SUCCESS,
            voided_at="2024-01-01T00:00:00+00:00",
        )

    async def process_webhook(self, headers, raw_body) -> WebhookEvent:
        self.webhook_calls += 1
        if self.webhook_effect is not None:
            self.webhook_effect()
        return WebhookEvent(id="evt-1", type="test", timestamp=0, data={}, gateway=self._name)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        paypal_client_id="client-id",
        paypal_client_secret="client-secret",
        paypal_base_url="https://paypal.test",
        paypal_webhook_id="WH-1",
        paypal_webhook_secret="whsec_paypal",
        mpgs_host="https://mpgs.test",
        mpgs_merchant_id="TESTMERCHANT",
        mpgs_api_password="api-password",
        mpgs_webhook_secret="mpgs-secret",
        mock_gateway_enabled=True,
        mock_webhook_secret="mock-secret",
        admin_api_token="admin-token",
        max_retries=3,
        retry_delay_ms=100,
    )


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def order_status() -> SpyOrderStatus:
    return SpyOrderStatus()


@pytest.fixture
def processor(order_status: SpyOrderStatus) -> WebhookEventProcessor:
    return WebhookEventProcessor(order_status)
