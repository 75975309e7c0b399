"""PayPal REST API client."""

import base64
from typing import Any

from storefront_payment_ms.shared.domain.exceptions import PaymentError, PaymentErrorKind
from storefront_payment_ms.shared.infrastructure.http_clients import BaseApiClient

# Error names PayPal uses for requests that were understood but refused.
BUSINESS_ERROR_NAMES = frozenset({"UNPROCESSABLE_ENTITY", "RESOURCE_NOT_FOUND"})
BUSINESS_ISSUES = frozenset(
    {
        "INSTRUMENT_DECLINED",
        "INSUFFICIENT_FUNDS",
        "ORDER_ALREADY_CAPTURED",
        "ORDER_NOT_APPROVED",
        "CURRENCY_NOT_SUPPORTED",
        "AMOUNT_MISMATCH",
        "CAPTURE_FULLY_REFUNDED",
        "REFUND_AMOUNT_EXCEEDED",
        "PREVIOUSLY_VOIDED",
        "AUTHORIZATION_ALREADY_CAPTURED",
        "TRANSACTION_REFUSED",
    }
)


class PayPalApiClient(BaseApiClient):
    """
    HTTP client for the PayPal REST API.

    Authenticates every request with HTTP basic auth over the client
    credentials and classifies PayPal's error envelope
    (``{"name", "message", "details": [{"issue"}]}``).
    """

    server_error_kind = PaymentErrorKind.GATEWAY_ERROR

    def __init__(self, base_url: str, client_id: str, client_secret: str, **kwargs: Any) -> None:
        super().__init__(base_url, **kwargs)
        self._client_id = client_id
        self._client_secret = client_secret

    def get_auth_headers(self) -> dict[str, str]:
        credentials = f"{self._client_id}:{self._client_secret}".encode("utf-8")
        return {"Authorization": f"Basic {base64.b64encode(credentials).decode('ascii')}"}

    def classify_response(self, status_code: int, body: Any) -> PaymentError:
        name, issue, message = _paypal_error_fields(body)
        error_code = issue or name

        if status_code in (401, 403) or name == "AUTHENTICATION_FAILURE":
            return PaymentError(
                message or "PayPal authentication failed.",
                PaymentErrorKind.AUTHENTICATION_ERROR,
                status_code,
                error_code,
                body,
            )
        if 400 <= status_code < 500 and (name in BUSINESS_ERROR_NAMES or issue in BUSINESS_ISSUES):
            return PaymentError(
                message or "PayPal rejected the request.",
                PaymentErrorKind.BUSINESS_LOGIC_ERROR,
                status_code,
                error_code,
                body,
            )

        error = super().classify_response(status_code, body)
        return PaymentError(
            message or error.message,
            error.kind,
            status_code,
            error_code or error.gateway_error_code,
            body,
        )


def _paypal_error_fields(body: Any) -> tuple[str | None, str | None, str | None]:
    if not isinstance(body, dict):
        return None, None, None
    name = body.get("name") if isinstance(body.get("name"), str) else None
    message = body.get("message") if isinstance(body.get("message"), str) else None
    issue = None
    details = body.get("details")
    if isinstance(details, list) and details and isinstance(details[0], dict):
        value = details[0].get("issue")
        issue = value if isinstance(value, str) else None
    return name, issue, message
