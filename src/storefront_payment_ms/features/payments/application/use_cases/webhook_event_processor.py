"""Webhook use case - Apply verified gateway events to order status."""

import logging

from storefront_payment_ms.features.payments.application.ports import OrderStatusPort
from storefront_payment_ms.features.payments.domain.entities import WebhookEvent
from storefront_payment_ms.features.payments.domain.enums import OrderStatus, WebhookEventKind
from storefront_payment_ms.shared.core.structured_logging import preview
from storefront_payment_ms.shared.domain.exceptions import PaymentError, PaymentErrorKind

logger = logging.getLogger(__name__)

_STATUS_BY_KIND: dict[WebhookEventKind, OrderStatus] = {
    WebhookEventKind.CAPTURE_COMPLETED: OrderStatus.COMPLETED,
    WebhookEventKind.CAPTURE_DENIED: OrderStatus.DENIED,
    WebhookEventKind.REFUND_COMPLETED: OrderStatus.REFUNDED,
    WebhookEventKind.AUTHORIZATION_VOIDED: OrderStatus.VOIDED,
}


class WebhookEventProcessor:
    """
    Use case for applying webhook events to the order status collaborator.

    Events can arrive out of order. A transition the order's current status
    does not allow is logged and flagged as an anomaly instead of applied.
    """

    def __init__(self, order_status: OrderStatusPort) -> None:
        self._order_status = order_status

    @property
    def order_status(self) -> OrderStatusPort:
        return self._order_status

    async def process(self, event: WebhookEvent) -> bool:
        """
        Apply one event.

        Returns True when the order status was written, False for ignored,
        duplicate or flagged events.
        """
        new_status = _STATUS_BY_KIND.get(event.kind)
        if new_status is None:
            logger.info(
                f"Unhandled webhook event type: {event.type}",
                extra={
                    "gateway": event.gateway,
                    "webhook_id": event.id,
                    "event_type": event.type,
                    "payload_preview": preview(event.data),
                },
            )
            return False

        if not event.order_id:
            raise PaymentError(
                f"Webhook event {event.id} carries no order reference.",
                PaymentErrorKind.BUSINESS_LOGIC_ERROR,
                details={"event_type": event.type, "gateway": event.gateway},
            )

        current = await self._order_status.get_order_status(event.order_id)
        if current is not None:
            if current.status is new_status:
                logger.info(
                    "Duplicate webhook event ignored",
                    extra={
                        "gateway": event.gateway,
                        "webhook_id": event.id,
                        "order_id": event.order_id,
                        "status": new_status.value,
                    },
                )
                return False
            if not current.status.can_transition_to(new_status):
                reason = (
                    f"Out-of-order event {event.type}: "
                    f"{current.status.value} -> {new_status.value} not allowed"
                )
                logger.warning(
                    reason,
                    extra={
                        "gateway": event.gateway,
                        "webhook_id": event.id,
                        "order_id": event.order_id,
                        "current_status": current.status.value,
                        "attempted_status": new_status.value,
                    },
                )
                await self._order_status.flag_anomaly(
                    event.order_id, new_status, event.transaction_id, reason
                )
                return False

        await self._order_status.update_order_status(
            event.order_id, new_status, event.transaction_id
        )
        logger.info(
            f"Order {event.order_id} marked {new_status.value}",
            extra={
                "gateway": event.gateway,
                "webhook_id": event.id,
                "event_type": event.type,
                "transaction_id": event.transaction_id,
            },
        )
        return True
