"""Exception handlers for the FastAPI application."""

import logging
import math

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storefront_payment_ms.shared.domain.exceptions import (
    CircuitOpenError,
    PaymentError,
    PaymentErrorKind,
)
from storefront_payment_ms.shared.presentation.api_response import APIResponse

logger = logging.getLogger(__name__)

HTTP_STATUS_BY_KIND: dict[PaymentErrorKind, int] = {
    PaymentErrorKind.CLIENT_ERROR: 400,
    PaymentErrorKind.BUSINESS_LOGIC_ERROR: 400,
    PaymentErrorKind.CONFIGURATION_ERROR: 400,
    PaymentErrorKind.AUTHENTICATION_ERROR: 403,
    PaymentErrorKind.CIRCUIT_OPEN: 503,
}


def status_for_error(exc: PaymentError) -> int:
    return HTTP_STATUS_BY_KIND.get(exc.kind, 500)


def _error_content(exc: PaymentError, errors: list[str]) -> dict:
    return APIResponse.error(
        exc.message,
        errors=errors,
        data={"kind": exc.kind.value, "gatewayErrorCode": exc.gateway_error_code},
    ).model_dump()


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers."""

    @app.exception_handler(CircuitOpenError)
    async def circuit_open_handler(request: Request, exc: CircuitOpenError) -> JSONResponse:
        logger.warning(
            "Request rejected by open circuit",
            extra={"path": request.url.path, "breaker_name": exc.breaker_name},
        )
        return JSONResponse(
            status_code=503,
            content=_error_content(exc, ["Payment gateway temporarily unavailable"]),
            headers={"Retry-After": str(max(1, math.ceil(exc.retry_after)))},
        )

    @app.exception_handler(PaymentError)
    async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
        status_code = status_for_error(exc)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            f"Payment request failed: {exc.message}",
            extra={
                "path": request.url.path,
                "error_kind": exc.kind.value,
                "error_code": exc.gateway_error_code,
                "status": exc.status_code,
            },
        )
        return JSONResponse(
            status_code=status_code,
            content=_error_content(exc, [exc.kind.value]),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error", exc_info=exc, extra={"path": request.url.path}
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Internal server error",
                "errors": ["Internal server error"],
            },
        )
