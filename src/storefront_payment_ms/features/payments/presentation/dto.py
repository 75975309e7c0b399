"""Payment DTOs for API requests/responses."""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront_payment_ms.features.payments.domain.entities import (
    Address,
    CustomerInfo,
    OrderCreationRequest,
    OrderItem,
    PaymentCaptureResponse,
    RefundResponse,
    VoidResponse,
)
from storefront_payment_ms.features.payments.domain.enums import (
    CaptureStatus,
    RefundStatus,
    VoidStatus,
)


class CamelModel(BaseModel):
    """Accepts both camelCase and snake_case; serializes camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AddressDTO(CamelModel):
    line1: str
    line2: str | None = None
    city: str
    state: str | None = None
    postal_code: str
    country: str = Field(..., min_length=2, max_length=2)

    def to_domain(self) -> Address:
        return Address(
            line1=self.line1,
            line2=self.line2,
            city=self.city,
            state=self.state,
            postal_code=self.postal_code,
            country=self.country.upper(),
        )


class OrderItemDTO(CamelModel):
    id: str
    name: str
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    currency: str
    description: str | None = None

    def to_domain(self) -> OrderItem:
        return OrderItem(**self.model_dump())


class CustomerInfoDTO(CamelModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    billing_address: AddressDTO | None = None
    shipping_address: AddressDTO | None = None

    def to_domain(self) -> CustomerInfo:
        return CustomerInfo(
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            phone=self.phone,
            billing_address=self.billing_address.to_domain() if self.billing_address else None,
            shipping_address=self.shipping_address.to_domain() if self.shipping_address else None,
        )


class CheckoutRequest(CamelModel):
    """Request to start a checkout with a gateway."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "amount": "10.00",
                "currency": "USD",
                "gatewayType": "paypal",
                "orderId": "ORDER123",
                "description": "Storefront order ORDER123",
            }
        },
    )

    amount: Decimal = Field(..., description="Amount in major currency units")
    currency: str = Field(..., description="ISO 4217 currency code")
    gateway_type: str = Field(..., description="Registered gateway name")
    order_id: str | None = Field(None, description="Storefront order reference")
    description: str | None = Field(None, max_length=500)
    customer_info: CustomerInfoDTO | None = None
    items: list[OrderItemDTO] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_domain(self) -> OrderCreationRequest:
        return OrderCreationRequest(
            amount=self.amount,
            currency=self.currency,
            order_id=self.order_id,
            description=self.description,
            customer_info=self.customer_info.to_domain() if self.customer_info else None,
            items=tuple(item.to_domain() for item in self.items),
            metadata=self.metadata,
        )


class CheckoutResponse(CamelModel):
    order_id: str


class ProcessPaymentRequest(CamelModel):
    payer_id: str | None = None
    gateway_type: str


class RefundRequest(CamelModel):
    gateway_type: str
    amount: Decimal | None = Field(None, description="Omit for a full refund")
    currency: str | None = None
    note_to_payer: str | None = Field(None, max_length=255)


class VoidRequest(CamelModel):
    gateway_type: str


class CaptureResponseDTO(CamelModel):
    transaction_id: str
    status: CaptureStatus
    amount_captured: Decimal
    currency: str
    captured_at: str
    order_id: str | None = None
    gateway_response_code: str | None = None
    gateway_response_message: str | None = None

    @classmethod
    def from_domain(cls, capture: PaymentCaptureResponse) -> "CaptureResponseDTO":
        return cls(
            transaction_id=capture.transaction_id,
            status=capture.status,
            amount_captured=capture.amount_captured,
            currency=capture.currency,
            captured_at=capture.captured_at,
            order_id=capture.order_id,
            gateway_response_code=capture.gateway_response_code,
            gateway_response_message=capture.gateway_response_message,
        )


class RefundResponseDTO(CamelModel):
    refund_id: str
    transaction_id: str
    status: RefundStatus
    amount_refunded: Decimal
    currency: str
    refunded_at: str
    gateway_response_code: str | None = None

    @classmethod
    def from_domain(cls, refund: RefundResponse) -> "RefundResponseDTO":
        return cls(
            refund_id=refund.refund_id,
            transaction_id=refund.transaction_id,
            status=refund.status,
            amount_refunded=refund.amount_refunded,
            currency=refund.currency,
            refunded_at=refund.refunded_at,
            gateway_response_code=refund.gateway_response_code,
        )


class VoidResponseDTO(CamelModel):
    void_id: str
    transaction_id: str
    status: VoidStatus
    voided_at: str
    gateway_response_code: str | None = None

    @classmethod
    def from_domain(cls, void: VoidResponse) -> "VoidResponseDTO":
        return cls(
            void_id=void.void_id,
            transaction_id=void.transaction_id,
            status=void.status,
            voided_at=void.voided_at,
            gateway_response_code=void.gateway_response_code,
        )


class GatewaysResponse(CamelModel):
    gateways: list[str]
