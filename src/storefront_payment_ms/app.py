"""FastAPI Application for the Storefront Payment Microservice."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront_payment_ms import __version__
from storefront_payment_ms.features.payments.application.ports import OrderStatusPort
from storefront_payment_ms.features.payments.application.use_cases import WebhookEventProcessor
from storefront_payment_ms.features.payments.application.use_cases.payment_controller import (
    PaymentController,
)
from storefront_payment_ms.features.payments.infrastructure.clients import OrderServiceClient
from storefront_payment_ms.features.payments.infrastructure.gateway_registry import (
    GatewayRegistry,
)
from storefront_payment_ms.features.payments.infrastructure.repository import (
    InMemoryOrderStatusRepository,
    SqlAlchemyOrderStatusRepository,
)
from storefront_payment_ms.features.payments.presentation.router import (
    router as payments_router,
)
from storefront_payment_ms.features.webhooks.presentation.router import (
    router as webhooks_router,
)
from storefront_payment_ms.shared.core.settings import Settings, get_settings
from storefront_payment_ms.shared.core.structured_logging import configure_logging
from storefront_payment_ms.shared.infrastructure.database import (
    close_db,
    get_session_factory,
    init_db,
)
from storefront_payment_ms.shared.infrastructure.http_clients import CircuitBreaker
from storefront_payment_ms.shared.presentation.exception_handlers import (
    register_exception_handlers,
)

logger = logging.getLogger(__name__)


async def build_order_status_backend(settings: Settings) -> OrderStatusPort:
    """Create the order status collaborator selected by configuration."""
    match settings.order_status_backend:
        case "database":
            if not settings.database_url:
                raise RuntimeError("DATABASE_URL is required for the database backend")
            await init_db(settings.database_url, echo=settings.debug)
            return SqlAlchemyOrderStatusRepository(get_session_factory())
        case "http":
            return OrderServiceClient(
                settings.order_service_url,
                settings.order_service_token,
                max_retries=settings.max_retries,
                retry_delay_ms=settings.retry_delay_ms,
                timeout_seconds=settings.request_timeout_seconds,
                circuit_breaker=CircuitBreaker(
                    "order-service",
                    failure_threshold=settings.failure_threshold,
                    reset_window=settings.reset_window_seconds,
                ),
            )
        case _:
            return InMemoryOrderStatusRepository()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    # Startup
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)
    logger.info(
        f"Payment Microservice starting on {settings.host}:{settings.port}",
        extra={"environment": settings.environment},
    )

    if getattr(app.state, "payment_controller", None) is None:
        order_status = await build_order_status_backend(settings)
        registry = GatewayRegistry()
        registry.initialize(settings, WebhookEventProcessor(order_status))
        app.state.payment_controller = PaymentController(registry)

    yield

    # Shutdown
    if settings.order_status_backend == "database":
        await close_db()
    logger.info("Payment Microservice shutting down")


def create_app(
    settings: Settings | None = None,
    *,
    controller: PaymentController | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    A prebuilt ``controller`` skips gateway wiring at startup.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Storefront Payment Microservice",
        description="Payment gateway integration for the storefront: PayPal, MPGS and webhooks",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.payment_controller = controller

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register exception handlers
    register_exception_handlers(app)

    # Register routers
    app.include_router(payments_router, prefix="/api/payments", tags=["Payments"])
    app.include_router(webhooks_router, prefix="/api/payments", tags=["Webhooks"])

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "payment-ms",
            "environment": settings.environment,
        }

    return app


app = create_app()
