"""Resilient HTTP client shared by gateway and internal service clients."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from storefront_payment_ms.shared.core.structured_logging import preview
from storefront_payment_ms.shared.domain.exceptions import PaymentError, PaymentErrorKind
from storefront_payment_ms.shared.infrastructure.http_clients.circuit_breaker import (
    CircuitBreaker,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class BaseApiClient(ABC):
    """
    HTTP client with error classification, retry and circuit breaking.

    Subclasses supply credentials through ``get_auth_headers`` and may refine
    ``classify_response`` with provider-specific business errors.
    """

    # Gateway clients report 5xx as GATEWAY_ERROR.
    server_error_kind = PaymentErrorKind.SERVER_ERROR

    def __init__(
        self,
        base_url: str,
        *,
        max_retries: int = 3,
        retry_delay_ms: int = 1000,
        timeout_seconds: float = 10.0,
        circuit_breaker: CircuitBreaker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._max_retries = max_retries
        self._retry_delay_ms = retry_delay_ms
        self._timeout = timeout_seconds
        self._breaker = circuit_breaker or CircuitBreaker(name=self._base_url)
        self._transport = transport
        self._sleep = sleep

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    @abstractmethod
    def get_auth_headers(self) -> dict[str, str]:
        """Authentication headers, built fresh for every request."""

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        deadline: float | None = None,
    ) -> Any:
        """
        Send a request, retrying transient failures with exponential backoff.

        ``deadline`` is an event-loop time; retrying stops once the next
        backoff would pass it and the last error is raised as is.
        """
        attempt = 0
        while True:
            holds_trial = self._breaker.before_request()
            started = time.perf_counter()
            try:
                data = await self._send(method, path, json=json, params=params, headers=headers)
            except PaymentError as error:
                self._record_outcome(error)
                self._log_attempt(method, path, attempt, error.kind.value, started)
                if not self.is_retriable_error(error) or attempt >= self._max_retries:
                    raise
                # A failure that tripped the breaker ends the retries without a backoff.
                self._breaker.reject_if_open()
                delay = self._retry_delay_ms * (2**attempt) / 1000
                if deadline is not None and asyncio.get_running_loop().time() + delay > deadline:
                    logger.warning(
                        "Request deadline reached, not retrying",
                        extra={"method": method, "path": path, "attempt": attempt + 1},
                    )
                    raise
                logger.warning(
                    f"Retrying request to {path} in {delay * 1000:.0f}ms. "
                    f"Attempt {attempt + 1}/{self._max_retries}",
                    extra={
                        "method": method,
                        "path": path,
                        "retry_attempt": attempt + 1,
                        "max_retries": self._max_retries,
                        "error_kind": error.kind.value,
                        "error_code": error.gateway_error_code,
                    },
                )
                await self._sleep(delay)
                attempt += 1
                continue
            except BaseException:
                # Cancellation or a bug: no verdict on the destination's health.
                if holds_trial:
                    self._breaker.release_trial()
                raise

            self._breaker.record_success()
            self._log_attempt(method, path, attempt, "success", started)
            return data

    def is_retriable_error(self, error: PaymentError) -> bool:
        if error.kind is PaymentErrorKind.NETWORK_ERROR:
            return True
        return (
            error.kind in (PaymentErrorKind.GATEWAY_ERROR, PaymentErrorKind.SERVER_ERROR)
            and error.status_code is not None
            and error.status_code >= 500
        )

    def classify_response(self, status_code: int, body: Any) -> PaymentError:
        """Map a non-2xx response to the error taxonomy."""
        error_code = _extract_error_code(body)
        if status_code in (401, 403):
            return PaymentError(
                "Authentication or authorization failed.",
                PaymentErrorKind.AUTHENTICATION_ERROR,
                status_code,
                error_code,
                body,
            )
        if 400 <= status_code < 500:
            return PaymentError(
                "Client-side error from API.",
                PaymentErrorKind.CLIENT_ERROR,
                status_code,
                error_code,
                body,
            )
        if status_code >= 500:
            return PaymentError(
                "Server-side error from API.",
                self.server_error_kind,
                status_code,
                error_code,
                body,
            )
        return PaymentError(
            f"Unexpected response status {status_code}.",
            PaymentErrorKind.UNKNOWN_ERROR,
            status_code,
            error_code,
            body,
        )

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
    ) -> Any:
        request_headers = {
            "Content-Type": "application/json",
            **(headers or {}),
            **self.get_auth_headers(),
        }
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method, path, json=json, params=params, headers=request_headers
                )
        except httpx.TransportError as exc:
            raise self._classified(
                PaymentError(
                    "Network error during API request. Please try again.",
                    PaymentErrorKind.NETWORK_ERROR,
                    details={"reason": str(exc) or type(exc).__name__},
                ),
                None,
            ) from exc
        except httpx.HTTPError as exc:
            raise self._classified(
                PaymentError(
                    "Failed to set up API request.",
                    PaymentErrorKind.UNKNOWN_ERROR,
                    details={"reason": str(exc)},
                ),
                None,
            ) from exc

        if response.is_success:
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                raise self._classified(
                    PaymentError(
                        "Malformed response body from API.",
                        PaymentErrorKind.UNKNOWN_ERROR,
                        response.status_code,
                    ),
                    response.text,
                ) from exc

        try:
            body = response.json() if response.content else None
        except ValueError:
            body = None
        raise self._classified(
            self.classify_response(response.status_code, body),
            body if body is not None else response.text,
        )

    def _classified(self, error: PaymentError, raw_body: Any) -> PaymentError:
        logger.error(
            f"API error classified as {error.kind.value}",
            extra={
                "base_url": self._base_url,
                "status": error.status_code,
                "error_code": error.gateway_error_code,
                "error_kind": error.kind.value,
                "body_preview": preview(raw_body),
            },
        )
        return error

    def _record_outcome(self, error: PaymentError) -> None:
        if self.is_retriable_error(error):
            self._breaker.record_failure()
        elif error.status_code is not None:
            # The destination answered; a rejected request is not an outage.
            self._breaker.record_success()
        else:
            self._breaker.record_failure()

    def _log_attempt(self, method: str, path: str, attempt: int, outcome: str, started: float) -> None:
        logger.info(
            f"API request {method} {path}: {outcome}",
            extra={
                "base_url": self._base_url,
                "method": method,
                "path": path,
                "request_attempt": attempt + 1,
                "outcome": outcome,
                "latency_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )


def _extract_error_code(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    for key in ("name", "errorCode", "error_code", "code"):
        value = body.get(key)
        if isinstance(value, str):
            return value
    error = body.get("error")
    if isinstance(error, dict):
        cause = error.get("cause")
        if isinstance(cause, str):
            return cause
    if isinstance(error, str):
        return error
    return None


class BearerTokenApiClient(BaseApiClient):
    """Client for internal services authenticated with a bearer token."""

    def __init__(self, base_url: str, token: str, **kwargs: Any) -> None:
        super().__init__(base_url, **kwargs)
        self._token = token

    def get_auth_headers(self) -> dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}
