"""Helpers shared by the gateway adapters."""

import json
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from storefront_payment_ms.shared.domain.exceptions import (
    MalformedWebhookPayloadError,
    WebhookHeadersMissingError,
)


def normalize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Lower-case header names; HTTP header names are case-insensitive."""
    return {str(key).lower(): value for key, value in headers.items()}


def require_headers(headers: Mapping[str, str], *names: str) -> list[str]:
    """Return the values of ``names`` or raise listing every missing one."""
    missing = [name for name in names if not headers.get(name)]
    if missing:
        raise WebhookHeadersMissingError(missing)
    return [headers[name] for name in names]


def parse_json_body(raw_body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(raw_body)
    except ValueError as exc:
        raise MalformedWebhookPayloadError() from exc
    if not isinstance(payload, dict):
        raise MalformedWebhookPayloadError("Webhook payload must be a JSON object.")
    return payload


def iso_to_ms(value: str) -> int:
    """Parse an ISO 8601 timestamp (``Z`` suffix allowed) to unix milliseconds."""
    if not isinstance(value, str):
        raise ValueError(f"Expected an ISO 8601 string, got {type(value).__name__}")
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
