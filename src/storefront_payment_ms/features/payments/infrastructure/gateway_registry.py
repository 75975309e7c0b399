"""Payment gateway registry - Dependency injection."""

import logging
from collections.abc import Mapping

import httpx

from storefront_payment_ms.features.payments.application.ports import PaymentGatewayPort
from storefront_payment_ms.features.payments.application.use_cases.webhook_event_processor import (
    WebhookEventProcessor,
)
from storefront_payment_ms.features.payments.infrastructure.adapters import (
    MockGateway,
    MpgsGateway,
    PayPalGateway,
)
from storefront_payment_ms.features.payments.infrastructure.clients import (
    MpgsApiClient,
    PayPalApiClient,
)
from storefront_payment_ms.shared.core.settings import Settings
from storefront_payment_ms.shared.domain.exceptions import GatewayNotFoundError
from storefront_payment_ms.shared.infrastructure.http_clients import CircuitBreaker

logger = logging.getLogger(__name__)


class GatewayRegistry:
    """
    Name to gateway lookup.

    Built once at startup and passed to the controller; read-only while
    requests are being served.
    """

    def __init__(self) -> None:
        self._gateways: dict[str, PaymentGatewayPort] = {}
        self._initialized = False

    def register(self, name: str, gateway: PaymentGatewayPort) -> None:
        if name in self._gateways:
            logger.warning(
                f"Payment gateway '{name}' already registered, overwriting",
                extra={"gateway": name},
            )
        self._gateways[name] = gateway

    def get(self, name: str) -> PaymentGatewayPort:
        try:
            return self._gateways[name]
        except KeyError:
            raise GatewayNotFoundError(name) from None

    def names(self) -> list[str]:
        return list(self._gateways)

    def find_by_webhook_headers(self, headers: Mapping[str, str]) -> PaymentGatewayPort | None:
        """First registered gateway whose fingerprint header is present."""
        present = {str(key).lower() for key in headers}
        for gateway in self._gateways.values():
            if gateway.webhook_fingerprint_header.lower() in present:
                return gateway
        return None

    def initialize(
        self,
        settings: Settings,
        processor: WebhookEventProcessor,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Register every configured gateway.

        PayPal is always registered; MPGS only with merchant credentials and
        the mock gateway only when enabled. Later calls are no-ops.
        """
        if self._initialized:
            logger.debug("Gateway registry already initialized")
            return

        shared_breaker = None
        if settings.circuit_breaker_scope == "shared":
            shared_breaker = _breaker("shared", settings)

        def client_options(name: str) -> dict:
            return {
                "max_retries": settings.max_retries,
                "retry_delay_ms": settings.retry_delay_ms,
                "timeout_seconds": settings.request_timeout_seconds,
                "circuit_breaker": shared_breaker or _breaker(name, settings),
                "transport": transport,
            }

        paypal_client = PayPalApiClient(
            settings.paypal_api_url,
            settings.paypal_client_id,
            settings.paypal_client_secret,
            **client_options("paypal"),
        )
        self.register(
            "paypal",
            PayPalGateway(
                paypal_client,
                processor,
                webhook_id=settings.paypal_webhook_id,
                webhook_secret=settings.paypal_webhook_secret,
                verification_mode=settings.paypal_webhook_verification,
                intent=settings.paypal_intent,
                timestamp_tolerance_ms=settings.webhook_timestamp_tolerance_ms,
            ),
        )

        if settings.mpgs_merchant_id and settings.mpgs_api_password:
            mpgs_client = MpgsApiClient(
                settings.mpgs_host,
                settings.mpgs_merchant_id,
                settings.mpgs_api_password,
                settings.mpgs_api_version,
                **client_options("mpgs"),
            )
            self.register(
                "mpgs",
                MpgsGateway(mpgs_client, processor, webhook_secret=settings.mpgs_webhook_secret),
            )

        if settings.mock_gateway_enabled:
            self.register(
                "mock",
                MockGateway(
                    processor,
                    webhook_secret=settings.mock_webhook_secret,
                    timestamp_tolerance_ms=settings.webhook_timestamp_tolerance_ms,
                ),
            )

        self._initialized = True
        logger.info("Payment gateways registered", extra={"gateways": self.names()})


def _breaker(name: str, settings: Settings) -> CircuitBreaker:
    return CircuitBreaker(
        name=name,
        failure_threshold=settings.failure_threshold,
        reset_window=settings.reset_window_seconds,
    )
