"""Domain exceptions for the Payment Microservice."""

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any


class PaymentErrorKind(str, Enum):
    """Classification every payment failure terminates in."""

    NETWORK_ERROR = "NETWORK_ERROR"
    GATEWAY_ERROR = "GATEWAY_ERROR"
    BUSINESS_LOGIC_ERROR = "BUSINESS_LOGIC_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    CLIENT_ERROR = "CLIENT_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class PaymentError(Exception):
    """
    Base exception for payment errors.

    Created where an underlying failure is classified; every field is
    read-only afterwards.
    """

    def __init__(
        self,
        message: str,
        kind: PaymentErrorKind,
        status_code: int | None = None,
        gateway_error_code: str | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self._message = message
        self._kind = kind
        self._status_code = status_code
        self._gateway_error_code = gateway_error_code
        if isinstance(details, Mapping):
            details = MappingProxyType(dict(details))
        self._details = details if details is not None else MappingProxyType({})

    @property
    def message(self) -> str:
        return self._message

    @property
    def kind(self) -> PaymentErrorKind:
        return self._kind

    @property
    def status_code(self) -> int | None:
        return self._status_code

    @property
    def gateway_error_code(self) -> str | None:
        return self._gateway_error_code

    @property
    def details(self) -> Any:
        return self._details

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self._kind.value}, "
            f"status_code={self._status_code}, "
            f"gateway_error_code={self._gateway_error_code!r}, "
            f"message={self._message!r})"
        )


class CircuitOpenError(PaymentError):
    """Raised when the circuit breaker rejects a request without calling out."""

    def __init__(self, breaker_name: str, retry_after: float) -> None:
        self.breaker_name = breaker_name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker '{breaker_name}' is open. Service is currently unavailable.",
            PaymentErrorKind.CIRCUIT_OPEN,
        )


class GatewayNotFoundError(PaymentError):
    """Raised when a gateway name was never registered."""

    def __init__(self, gateway_name: str) -> None:
        self.gateway_name = gateway_name
        super().__init__(
            f"Payment gateway '{gateway_name}' not found.",
            PaymentErrorKind.CONFIGURATION_ERROR,
        )


class WebhookHeadersMissingError(PaymentError):
    """Raised when a webhook lacks the headers its gateway signs with."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            f"Missing required headers: {', '.join(missing)}",
            PaymentErrorKind.CLIENT_ERROR,
            status_code=400,
        )


class WebhookVerificationError(PaymentError):
    """Raised when webhook signature verification fails."""

    def __init__(self, reason: str = "Invalid signature") -> None:
        super().__init__(
            f"Webhook verification failed: {reason}",
            PaymentErrorKind.AUTHENTICATION_ERROR,
            status_code=403,
        )


class WebhookVerificationUnavailableError(PaymentError):
    """Raised when the verification material cannot be obtained."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            f"Webhook verification unavailable: {reason}",
            PaymentErrorKind.GATEWAY_ERROR,
            status_code=503,
        )


class MalformedWebhookPayloadError(PaymentError):
    """Raised when a webhook body is not a JSON object."""

    def __init__(self, reason: str = "Malformed webhook payload.") -> None:
        super().__init__(reason, PaymentErrorKind.CLIENT_ERROR, status_code=400)
