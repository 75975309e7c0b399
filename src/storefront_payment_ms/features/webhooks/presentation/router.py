"""Webhook API router - Handles incoming webhooks from payment gateways."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from storefront_payment_ms.features.payments.application.use_cases.payment_controller import (
    PaymentController,
)
from storefront_payment_ms.features.payments.presentation.router import get_payment_controller

router = APIRouter()


@router.post(
    "/webhook",
    response_class=PlainTextResponse,
    summary="Receive a gateway webhook",
    description="""
    Gateway is identified by its header fingerprint.

    - 200: acknowledged (including business declines)
    - 400: unknown gateway or missing headers
    - 403: signature verification failed
    - 503: verification service unreachable
    - 500: processing error
    """,
)
async def receive_webhook(
    request: Request,
    controller: Annotated[PaymentController, Depends(get_payment_controller)],
) -> PlainTextResponse:
    raw_body = await request.body()
    result = await controller.handle_webhook(dict(request.headers), raw_body)
    return PlainTextResponse(result.message, status_code=result.status_code)
