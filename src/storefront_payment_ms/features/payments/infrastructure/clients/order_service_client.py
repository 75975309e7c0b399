"""HTTP client for the internal order service."""

import logging
from typing import Any

from storefront_payment_ms.features.payments.application.ports import (
    OrderStatusPort,
    OrderStatusRecord,
)
from storefront_payment_ms.features.payments.domain.enums import OrderStatus
from storefront_payment_ms.shared.domain.exceptions import PaymentError
from storefront_payment_ms.shared.infrastructure.http_clients import BearerTokenApiClient

logger = logging.getLogger(__name__)


class OrderServiceClient(OrderStatusPort):
    """
    Order status collaborator backed by the order service REST API.

    Endpoints:
    - GET /api/orders/{id}
    - PUT /api/orders/{id}/status
    - POST /api/orders/{id}/payment-anomalies
    """

    def __init__(self, base_url: str, token: str, **client_kwargs: Any) -> None:
        self._client = BearerTokenApiClient(base_url, token, **client_kwargs)

    @property
    def client(self) -> BearerTokenApiClient:
        return self._client

    async def get_order_status(self, order_id: str) -> OrderStatusRecord | None:
        try:
            data = await self._client.request("GET", f"/api/orders/{order_id}")
        except PaymentError as error:
            if error.status_code == 404:
                return None
            raise

        order = data.get("data", data) if isinstance(data, dict) else {}
        raw_status = str(order.get("paymentStatus") or order.get("status") or "").upper()
        try:
            status = OrderStatus(raw_status)
        except ValueError:
            # Fulfilment states (shipped, cancelled...) carry no payment verdict.
            logger.debug(
                "Order status not a payment status",
                extra={"order_id": order_id, "status": raw_status},
            )
            status = OrderStatus.PENDING
        return OrderStatusRecord(
            order_id=order_id,
            status=status,
            transaction_id=order.get("transactionId"),
        )

    async def update_order_status(
        self, order_id: str, status: OrderStatus, transaction_id: str | None
    ) -> None:
        await self._client.request(
            "PUT",
            f"/api/orders/{order_id}/status",
            json={"status": status.value, "transactionId": transaction_id},
        )

    async def flag_anomaly(
        self,
        order_id: str,
        attempted_status: OrderStatus,
        transaction_id: str | None,
        reason: str,
    ) -> None:
        await self._client.request(
            "POST",
            f"/api/orders/{order_id}/payment-anomalies",
            json={
                "attemptedStatus": attempted_status.value,
                "transactionId": transaction_id,
                "reason": reason,
            },
        )
