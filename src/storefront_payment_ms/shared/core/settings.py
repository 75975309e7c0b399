"""Application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

PAYPAL_SANDBOX_URL = "https://api-m.sandbox.paypal.com"
PAYPAL_LIVE_URL = "https://api-m.paypal.com"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8005
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # Order status collaborator
    order_status_backend: Literal["memory", "database", "http"] = "memory"
    database_url: str | None = None
    order_service_url: str = "http://localhost:3004"
    order_service_token: str = ""

    # PayPal
    paypal_client_id: str = ""
    paypal_client_secret: str = ""
    paypal_environment: Literal["sandbox", "live"] = "sandbox"
    paypal_base_url: str | None = None
    paypal_intent: Literal["CAPTURE", "AUTHORIZE"] = "CAPTURE"
    paypal_webhook_id: str = ""
    paypal_webhook_secret: str = ""
    paypal_webhook_verification: Literal["hmac", "api"] = "hmac"

    # MPGS card gateway
    mpgs_host: str = "https://ap-gateway.mastercard.com"
    mpgs_merchant_id: str = ""
    mpgs_api_password: str = ""
    mpgs_api_version: str = "78"
    mpgs_webhook_secret: str = ""

    # Mock gateway
    mock_gateway_enabled: bool = False
    mock_webhook_secret: str = "whsec_mock_development_secret"

    # Resilience
    max_retries: int = 3
    retry_delay_ms: int = 1000
    request_timeout_seconds: float = 10.0
    failure_threshold: int = 5
    reset_window_seconds: float = 60.0
    circuit_breaker_scope: Literal["per_gateway", "shared"] = "per_gateway"

    # Webhooks
    webhook_timestamp_tolerance_ms: int = 300_000

    # Security
    admin_api_token: str = ""

    # CORS
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    @property
    def paypal_api_url(self) -> str:
        """Resolve the PayPal REST host for the configured environment."""
        if self.paypal_base_url:
            return self.paypal_base_url.rstrip("/")
        return PAYPAL_LIVE_URL if self.paypal_environment == "live" else PAYPAL_SANDBOX_URL


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
