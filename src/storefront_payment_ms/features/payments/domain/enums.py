"""Payment domain enums."""

from enum import Enum


class CaptureStatus(str, Enum):
    """Outcome of a capture as reported by the gateway."""

    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    VOIDED = "VOIDED"


class RefundStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILED = "FAILED"


class VoidStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILED = "FAILED"


class WebhookEventKind(str, Enum):
    """Provider-independent classification of webhook events."""

    CAPTURE_COMPLETED = "capture.completed"
    CAPTURE_DENIED = "capture.denied"
    REFUND_COMPLETED = "refund.completed"
    AUTHORIZATION_VOIDED = "authorization.voided"
    OTHER = "other"


class OrderStatus(str, Enum):
    """Payment status of a storefront order, owned by the order service."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    DENIED = "DENIED"
    REFUNDED = "REFUNDED"
    VOIDED = "VOIDED"

    def can_transition_to(self, new_status: "OrderStatus") -> bool:
        """
        Check whether an event may move the order to ``new_status``.

        Refunds and voids are final; a completed order only moves to
        refunded. Anything else is a stale or out-of-order event.
        """
        return new_status in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(OrderStatus),
    OrderStatus.DENIED: frozenset({OrderStatus.COMPLETED, OrderStatus.DENIED}),
    OrderStatus.COMPLETED: frozenset({OrderStatus.COMPLETED, OrderStatus.REFUNDED}),
    OrderStatus.REFUNDED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.VOIDED: frozenset({OrderStatus.VOIDED}),
}
