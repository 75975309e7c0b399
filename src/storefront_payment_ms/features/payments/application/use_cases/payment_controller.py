"""Payment use case - Checkout, capture and webhook orchestration."""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from storefront_payment_ms.features.payments.application.ports import PaymentGatewayPort
from storefront_payment_ms.features.payments.domain.entities import (
    OrderCreationRequest,
    PaymentCaptureResponse,
    RefundResponse,
    VoidResponse,
)
from storefront_payment_ms.features.payments.infrastructure.gateway_registry import (
    GatewayRegistry,
)
from storefront_payment_ms.shared.domain.exceptions import (
    GatewayNotFoundError,
    MalformedWebhookPayloadError,
    PaymentError,
    PaymentErrorKind,
    WebhookHeadersMissingError,
    WebhookVerificationError,
    WebhookVerificationUnavailableError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookResult:
    """HTTP status and plain-text message returned to the webhook sender."""

    status_code: int
    message: str


class PaymentController:
    """
    Orchestrates checkout, capture and webhook dispatch.

    Gateways are looked up by name for checkout operations and by header
    fingerprint for webhooks.
    """

    def __init__(self, registry: GatewayRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> GatewayRegistry:
        return self._registry

    async def initiate_checkout(
        self,
        amount: Decimal,
        currency: str,
        gateway_name: str,
        details: OrderCreationRequest | None = None,
    ) -> dict[str, str]:
        logger.info(
            "Initiating checkout process",
            extra={"amount": str(amount), "currency": currency, "gateway": gateway_name},
        )
        gateway = self._gateway(gateway_name)
        order = await gateway.create_order(amount, currency, details)
        logger.info(
            f"{gateway_name} order created successfully",
            extra={"order_id": order.id, "gateway": gateway_name},
        )
        return {"orderId": order.id}

    async def process_payment(
        self, order_id: str, payer_id: str | None, gateway_name: str
    ) -> PaymentCaptureResponse:
        logger.info(
            "Processing payment capture",
            extra={"order_id": order_id, "gateway": gateway_name},
        )
        gateway = self._gateway(gateway_name)
        capture = await gateway.capture_payment(order_id)
        logger.info(
            "Payment capture completed",
            extra={
                "order_id": order_id,
                "capture_status": capture.status.value,
                "gateway": gateway_name,
            },
        )
        return capture

    async def refund_payment(
        self,
        transaction_id: str,
        gateway_name: str,
        amount: Decimal | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> RefundResponse:
        gateway = self._gateway(gateway_name)
        refund = await gateway.refund_payment(transaction_id, amount, details)
        logger.info(
            "Refund processed",
            extra={
                "transaction_id": transaction_id,
                "refund_id": refund.refund_id,
                "refund_status": refund.status.value,
                "gateway": gateway_name,
            },
        )
        return refund

    async def void_payment(
        self,
        authorization_id: str,
        gateway_name: str,
        details: Mapping[str, Any] | None = None,
    ) -> VoidResponse:
        gateway = self._gateway(gateway_name)
        void = await gateway.void_payment(authorization_id, details)
        logger.info(
            "Authorization voided",
            extra={
                "authorization_id": authorization_id,
                "void_status": void.status.value,
                "gateway": gateway_name,
            },
        )
        return void

    async def handle_webhook(self, headers: Mapping[str, str], raw_body: bytes) -> WebhookResult:
        """
        Dispatch a webhook to the gateway identified by its headers.

        Once the signature verifies, the sender always gets 200 for business
        outcomes so it does not retry; only bad requests, failed
        verification and internal errors produce other statuses.
        """
        gateway = self._registry.find_by_webhook_headers(headers)
        if gateway is None:
            logger.error(
                "Unknown gateway type for incoming webhook",
                extra={"header_names": sorted(str(key).lower() for key in headers)},
            )
            return WebhookResult(400, "Unknown gateway type")

        gateway_name = gateway.gateway_name
        try:
            event = await gateway.process_webhook(headers, raw_body)
        except WebhookHeadersMissingError as error:
            logger.warning(
                error.message, extra={"gateway": gateway_name, "missing": error.missing}
            )
            return WebhookResult(400, error.message)
        except PaymentError as error:
            return self._webhook_error_result(gateway_name, raw_body, error)
        except Exception as error:
            logger.error(
                f"Error processing webhook for {gateway_name}",
                exc_info=True,
                extra={
                    "gateway": gateway_name,
                    "webhook_id": _webhook_id(raw_body),
                    "error_message": str(error),
                },
            )
            return WebhookResult(500, "Error processing webhook")

        logger.info(
            f"Webhook processed successfully for {gateway_name}",
            extra={"gateway": gateway_name, "webhook_id": event.id, "event_type": event.type},
        )
        return WebhookResult(200, "Webhook processed successfully")

    def _gateway(self, gateway_name: str) -> PaymentGatewayPort:
        try:
            return self._registry.get(gateway_name)
        except GatewayNotFoundError as exc:
            raise PaymentError(
                exc.message,
                PaymentErrorKind.CLIENT_ERROR,
                status_code=400,
                details={"available": self._registry.names()},
            ) from exc

    def _webhook_error_result(
        self, gateway_name: str, raw_body: bytes, error: PaymentError
    ) -> WebhookResult:
        log_fields = {
            "gateway": gateway_name,
            "webhook_id": _webhook_id(raw_body),
            "error_kind": error.kind.value,
            "error_code": error.gateway_error_code,
        }
        if isinstance(error, WebhookVerificationError):
            logger.warning(error.message, extra=log_fields)
            return WebhookResult(403, "Webhook signature verification failed")
        if isinstance(error, WebhookVerificationUnavailableError):
            logger.error(error.message, extra=log_fields)
            return WebhookResult(503, "Webhook verification unavailable")
        if error.kind is PaymentErrorKind.BUSINESS_LOGIC_ERROR:
            logger.warning(
                f"Webhook acknowledged with business error: {error.message}", extra=log_fields
            )
            return WebhookResult(200, "Webhook acknowledged")
        if isinstance(error, MalformedWebhookPayloadError):
            logger.warning(error.message, extra=log_fields)
            return WebhookResult(400, error.message)

        logger.error(
            f"Error processing webhook for {gateway_name}: {error.message}",
            exc_info=error,
            extra=log_fields,
        )
        return WebhookResult(500, "Error processing webhook")


def _webhook_id(raw_body: bytes) -> str | None:
    try:
        payload = json.loads(raw_body)
    except ValueError:
        return None
    if isinstance(payload, dict) and payload.get("id") is not None:
        return str(payload["id"])
    return None
