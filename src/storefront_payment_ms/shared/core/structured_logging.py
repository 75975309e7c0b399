"""Structured logging helpers.

Log calls go through the standard library and pass their structured fields
through ``extra={...}``. The structlog ``ProcessorFormatter`` installed here
renders every record, those fields included, as one JSON object.
``redact_event`` and ``preview`` keep card data, payer data and credentials
out of log output.
"""

import json
import logging
from collections.abc import Mapping, MutableMapping
from typing import Any

import structlog

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset(
    {
        "authorization",
        "api_password",
        "apipassword",
        "password",
        "secret",
        "client_secret",
        "token",
        "access_token",
        "card",
        "card_number",
        "cardnumber",
        "number",
        "cvv",
        "cvc",
        "securitycode",
        "security_code",
        "expiry",
        "credit_card",
        "payment_source",
        "source",
        "sourceoffunds",
        "payer",
        "payer_info",
        "payer_id",
        "email_address",
        "x-notification-secret",
        "paypal-transmission-sig",
    }
)

# Left on a record by stdlib formatters that handled it first.
_FORMATTER_ATTRS = ("message", "asctime")

# Rendered by dedicated processors, never masked.
_PASSTHROUGH_KEYS = frozenset({"event", "exc_info", "stack_info"})


def _is_sensitive(key: Any) -> bool:
    return isinstance(key, str) and key.lower() in SENSITIVE_KEYS


def redact(data: Any) -> Any:
    """Return a copy of ``data`` with sensitive keys masked, recursively."""
    if isinstance(data, Mapping):
        return {
            key: REDACTED if _is_sensitive(key) else redact(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [redact(item) for item in data]
    return data


def preview(data: Any, limit: int = 500) -> str:
    """Render a truncated, redacted view of a payload for log output."""
    if data is None:
        return ""
    if isinstance(data, (bytes, bytearray)):
        data = data.decode("utf-8", errors="replace")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError:
            # Non-JSON bodies may still echo request fields; never show them whole.
            return data[:limit]
    rendered = json.dumps(redact(data), default=str)
    if len(rendered) > limit:
        return rendered[:limit] + "...(truncated)"
    return rendered


def redact_event(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor masking sensitive fields of an event."""
    for key, value in list(event_dict.items()):
        if key.startswith("_") or key in _PASSTHROUGH_KEYS:
            continue
        event_dict[key] = REDACTED if _is_sensitive(key) else redact(value)
    return event_dict


def _drop_formatter_attrs(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key in _FORMATTER_ATTRS:
        event_dict.pop(key, None)
    return event_dict


SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
]


def build_formatter() -> structlog.stdlib.ProcessorFormatter:
    """JSON formatter for records from stdlib and structlog loggers alike."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            *SHARED_PROCESSORS,
            structlog.stdlib.ExtraAdder(),
            _drop_formatter_attrs,
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            redact_event,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
    )


def configure_logging(level: str = "INFO") -> None:
    """Route structlog through stdlib logging and install the JSON formatter on the root logger."""
    structlog.configure(
        processors=[
            *SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    handler = logging.StreamHandler()
    handler.setFormatter(build_formatter())
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)
