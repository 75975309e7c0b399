"""HTTP clients for external services."""

from storefront_payment_ms.shared.infrastructure.http_clients.base_api_client import (
    BaseApiClient,
    BearerTokenApiClient,
)
from storefront_payment_ms.shared.infrastructure.http_clients.circuit_breaker import (
    CircuitBreaker,
    CircuitState,
)

__all__ = ["BaseApiClient", "BearerTokenApiClient", "CircuitBreaker", "CircuitState"]
