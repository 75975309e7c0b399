"""Payment use cases."""

from storefront_payment_ms.features.payments.application.use_cases.webhook_event_processor import (
    WebhookEventProcessor,
)

__all__ = ["WebhookEventProcessor"]
