"""Webhook signature verification utilities."""

import hashlib
import hmac
import time

DEFAULT_ALGORITHM = "sha256"
DEFAULT_PREFIX = "sha256="
DEFAULT_TOLERANCE_MS = 300_000


def _to_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


class WebhookVerifier:
    """
    Stateless HMAC and timestamp checks shared by every gateway.

    All comparisons are constant-time.
    """

    @staticmethod
    def compute_signature(
        payload: str | bytes,
        secret: str | bytes,
        algorithm: str = DEFAULT_ALGORITHM,
        prefix: str = DEFAULT_PREFIX,
    ) -> str:
        """Return ``prefix + hex(HMAC(algorithm, secret, payload))``."""
        digest = hmac.new(_to_bytes(secret), _to_bytes(payload), algorithm).hexdigest()
        return prefix + digest

    @staticmethod
    def verify_hmac(
        payload: str | bytes,
        signature: str | bytes,
        secret: str | bytes,
        algorithm: str = DEFAULT_ALGORITHM,
        prefix: str = DEFAULT_PREFIX,
    ) -> bool:
        """
        Verify a webhook signature.

        Returns True iff ``signature`` equals ``prefix`` followed by the hex
        HMAC of ``payload`` under ``secret``. An empty secret never verifies.
        """
        if not secret or not signature:
            return False
        expected = WebhookVerifier.compute_signature(payload, secret, algorithm, prefix)
        return hmac.compare_digest(_to_bytes(signature), expected.encode("utf-8"))

    @staticmethod
    def verify_timestamp(
        timestamp_ms: float,
        tolerance_ms: int = DEFAULT_TOLERANCE_MS,
        now_ms: float | None = None,
    ) -> bool:
        """Check the event is recent, to reject replays."""
        current = now_ms if now_ms is not None else time.time() * 1000
        return abs(current - timestamp_ms) <= tolerance_ms

    @staticmethod
    def verify_webhook(
        payload: str | bytes,
        signature: str | bytes,
        secret: str | bytes,
        timestamp_ms: float,
        algorithm: str = DEFAULT_ALGORITHM,
        prefix: str = DEFAULT_PREFIX,
        tolerance_ms: int = DEFAULT_TOLERANCE_MS,
        now_ms: float | None = None,
    ) -> bool:
        """Signature and timestamp must both pass."""
        signature_ok = WebhookVerifier.verify_hmac(
            payload, signature, secret, algorithm, prefix
        )
        timestamp_ok = WebhookVerifier.verify_timestamp(timestamp_ms, tolerance_ms, now_ms)
        return signature_ok and timestamp_ok

    @staticmethod
    def secrets_match(provided: str | None, expected: str | None) -> bool:
        """Constant-time comparison for shared-secret header schemes."""
        if not provided or not expected:
            return False
        return hmac.compare_digest(_to_bytes(provided), _to_bytes(expected))
