"""Shared presentation module."""

from storefront_payment_ms.shared.presentation.api_response import APIResponse
from storefront_payment_ms.shared.presentation.exception_handlers import (
    register_exception_handlers,
    status_for_error,
)

__all__ = ["APIResponse", "register_exception_handlers", "status_for_error"]
