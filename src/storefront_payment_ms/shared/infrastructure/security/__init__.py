"""Webhook security helpers."""

from storefront_payment_ms.shared.infrastructure.security.webhook_verifier import (
    WebhookVerifier,
)

__all__ = ["WebhookVerifier"]
