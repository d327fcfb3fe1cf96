"""Payment Pydantic schemas for request/response validation."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from tutorlink.models.payment import PaymentStatus
from tutorlink.schemas.common import ApiResponse, CamelModel


class CreatePaymentRequest(BaseModel):
    """Request schema for buying coins by currency amount."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"amount": "1.00", "currency": "USD"}}
    )

    amount: Decimal = Field(..., gt=0, description="Currency amount to pay")
    currency: str = Field(default="USD", min_length=3, max_length=3)


class CreatePaymentByCoinsRequest(BaseModel):
    coins: int = Field(..., gt=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)


class CapturePaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(..., alias="orderID", min_length=1)


class PaymentOrderRead(BaseModel):
    """Returned after the gateway order has been created."""

    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(serialization_alias="orderID")
    payment_id: uuid.UUID = Field(serialization_alias="paymentId")
    coins: int
    amount: Decimal

    @field_serializer("amount")
    def serialize_amount(self, amount: Decimal) -> str:
        """Serialize amount as decimal string to preserve precision."""
        return str(amount)


class CaptureResult(CamelModel):
    coins_added: int
    new_balance: int
    payment_id: uuid.UUID
    amount: Decimal

    @field_serializer("amount")
    def serialize_amount(self, amount: Decimal) -> str:
        return str(amount)


class PaymentRead(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    amount: Decimal
    coins: int
    currency: str
    status: PaymentStatus
    created_at: datetime

    @field_serializer("amount")
    def serialize_amount(self, amount: Decimal) -> str:
        return str(amount)


class CoinPackage(BaseModel):
    amount: Decimal
    coins: int
    currency: str = "USD"
    label: str


class MinimumPurchase(BaseModel):
    amount: Decimal
    coins: int


class CoinRate(CamelModel):
    rate: str
    coins_per_usd: int
    minimum_purchase: MinimumPurchase


class SweepResult(BaseModel):
    affected: int


class CoinPackagesResponse(ApiResponse[list[CoinPackage]]):
    rate: str
