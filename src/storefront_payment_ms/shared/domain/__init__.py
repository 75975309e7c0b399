"""Shared domain module - Exceptions and types."""

from storefront_payment_ms.shared.domain.exceptions import (
    CircuitOpenError,
    GatewayNotFoundError,
    MalformedWebhookPayloadError,
    PaymentError,
    PaymentErrorKind,
    WebhookHeadersMissingError,
    WebhookVerificationError,
    WebhookVerificationUnavailableError,
)

__all__ = [
    "CircuitOpenError",
    "GatewayNotFoundError",
    "MalformedWebhookPayloadError",
    "PaymentError",
    "PaymentErrorKind",
    "WebhookHeadersMissingError",
    "WebhookVerificationError",
    "WebhookVerificationUnavailableError",
]
