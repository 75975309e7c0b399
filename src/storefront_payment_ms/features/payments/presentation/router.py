"""Payment API router."""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request

from storefront_payment_ms.features.payments.application.use_cases.payment_controller import (
    PaymentController,
)
from storefront_payment_ms.features.payments.presentation.dto import (
    CaptureResponseDTO,
    CheckoutRequest,
    CheckoutResponse,
    GatewaysResponse,
    ProcessPaymentRequest,
    RefundRequest,
    RefundResponseDTO,
    VoidRequest,
    VoidResponseDTO,
)
from storefront_payment_ms.shared.core.settings import Settings
from storefront_payment_ms.shared.domain.exceptions import PaymentError, PaymentErrorKind
from storefront_payment_ms.shared.infrastructure.security import WebhookVerifier
from storefront_payment_ms.shared.presentation.api_response import APIResponse

router = APIRouter()


def get_payment_controller(request: Request) -> PaymentController:
    """Dependency for getting the controller built at startup."""
    return request.app.state.payment_controller


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_admin_token(
    settings: Annotated[Settings, Depends(get_app_settings)],
    admin_token: Annotated[str | None, Header(alias="X-Admin-Token")] = None,
) -> None:
    """Gate admin routes; an unset admin token disables them."""
    if not WebhookVerifier.secrets_match(admin_token, settings.admin_api_token):
        raise PaymentError(
            "Admin token missing or invalid.",
            PaymentErrorKind.AUTHENTICATION_ERROR,
            status_code=403,
        )


Controller = Annotated[PaymentController, Depends(get_payment_controller)]


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    summary="Start a checkout",
    description="Create an order with the selected gateway and return its id.",
)
async def initiate_checkout(
    request: CheckoutRequest,
    controller: Controller,
) -> CheckoutResponse:
    result = await controller.initiate_checkout(
        request.amount,
        request.currency,
        request.gateway_type,
        request.to_domain(),
    )
    return CheckoutResponse(order_id=result["orderId"])


@router.post(
    "/process/{order_id}",
    response_model=CaptureResponseDTO,
    summary="Capture an approved order",
    description="""
    Capture the payment for an order the payer approved.

    Capturing an already-captured order returns the existing capture.
    """,
)
async def process_payment(
    order_id: str,
    request: ProcessPaymentRequest,
    controller: Controller,
) -> CaptureResponseDTO:
    capture = await controller.process_payment(order_id, request.payer_id, request.gateway_type)
    return CaptureResponseDTO.from_domain(capture)


@router.post(
    "/refund/{transaction_id}",
    response_model=APIResponse[RefundResponseDTO],
    dependencies=[Depends(require_admin_token)],
    summary="Refund a captured payment",
    description="Full refund unless an amount is given. Requires `X-Admin-Token`.",
)
async def refund_payment(
    transaction_id: str,
    request: RefundRequest,
    controller: Controller,
) -> APIResponse[RefundResponseDTO]:
    details = {"currency": request.currency, "note_to_payer": request.note_to_payer}
    refund = await controller.refund_payment(
        transaction_id,
        request.gateway_type,
        request.amount,
        {key: value for key, value in details.items() if value is not None},
    )
    return APIResponse.ok(
        data=RefundResponseDTO.from_domain(refund),
        message="Refund processed",
    )


@router.post(
    "/void/{authorization_id}",
    response_model=APIResponse[VoidResponseDTO],
    dependencies=[Depends(require_admin_token)],
    summary="Void an authorization",
    description="Cancel an authorization before capture. Requires `X-Admin-Token`.",
)
async def void_payment(
    authorization_id: str,
    request: VoidRequest,
    controller: Controller,
) -> APIResponse[VoidResponseDTO]:
    void = await controller.void_payment(authorization_id, request.gateway_type)
    return APIResponse.ok(
        data=VoidResponseDTO.from_domain(void),
        message="Authorization voided",
    )


@router.get(
    "/gateways",
    response_model=APIResponse[GatewaysResponse],
    summary="List registered gateways",
)
async def list_gateways(controller: Controller) -> APIResponse[GatewaysResponse]:
    return APIResponse.ok(data=GatewaysResponse(gateways=controller.registry.names()))
