"""Mastercard Payment Gateway Services (MPGS) REST client."""

import base64
from typing import Any

from storefront_payment_ms.shared.domain.exceptions import PaymentError, PaymentErrorKind
from storefront_payment_ms.shared.infrastructure.http_clients import BaseApiClient

DECLINE_MARKERS = frozenset({"DECLINED", "FAILURE"})
INVALID_MARKERS = frozenset({"INVALID_FIELD", "INVALID"})


def mpgs_base_url(host: str, api_version: str, merchant_id: str) -> str:
    return f"{host.rstrip('/')}/api/rest/version/{api_version}/merchant/{merchant_id}"


class MpgsApiClient(BaseApiClient):
    """
    HTTP client for the MPGS REST API.

    Basic auth uses ``merchant.<merchantId>`` as the user name and the
    integration API password.
    """

    server_error_kind = PaymentErrorKind.GATEWAY_ERROR

    def __init__(
        self,
        host: str,
        merchant_id: str,
        api_password: str,
        api_version: str = "78",
        **kwargs: Any,
    ) -> None:
        super().__init__(mpgs_base_url(host, api_version, merchant_id), **kwargs)
        self._merchant_id = merchant_id
        self._api_password = api_password

    def get_auth_headers(self) -> dict[str, str]:
        credentials = f"merchant.{self._merchant_id}:{self._api_password}".encode("utf-8")
        return {"Authorization": f"Basic {base64.b64encode(credentials).decode('ascii')}"}

    def classify_response(self, status_code: int, body: Any) -> PaymentError:
        error = super().classify_response(status_code, body)
        markers, explanation = _mpgs_error_fields(body)
        code = next(iter(sorted(markers)), None) or error.gateway_error_code

        if 400 <= status_code < 500 and error.kind is PaymentErrorKind.CLIENT_ERROR:
            if markers & (DECLINE_MARKERS | INVALID_MARKERS):
                return PaymentError(
                    explanation or "MPGS declined the request.",
                    PaymentErrorKind.BUSINESS_LOGIC_ERROR,
                    status_code,
                    code,
                    body,
                )
        return PaymentError(
            explanation or error.message,
            error.kind,
            status_code,
            code,
            body,
        )


def _mpgs_error_fields(body: Any) -> tuple[set[str], str | None]:
    """Collect decline/validation markers from an MPGS error or result body."""
    markers: set[str] = set()
    explanation = None
    if not isinstance(body, dict):
        return markers, explanation

    for key in ("result", "status"):
        value = body.get(key)
        if isinstance(value, str) and value in DECLINE_MARKERS:
            markers.add(value)
    response = body.get("response")
    if isinstance(response, dict) and response.get("gatewayCode") == "DECLINED":
        markers.add("DECLINED")

    error = body.get("error")
    if isinstance(error, dict):
        for key in ("cause", "validationType"):
            value = error.get(key)
            if isinstance(value, str) and value in INVALID_MARKERS:
                markers.add(value)
        if isinstance(error.get("explanation"), str):
            explanation = error["explanation"]
    return markers, explanation
