"""Pydantic schemas for checkout, payment callbacks and fee schedules."""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CheckoutResponse(BaseModel):
    """Response schema for POST /checkout-session."""

    order_id: str = Field(..., alias="orderId")
    amount: int = Field(..., description="Amount in minor currency units")
    currency: str

    model_config = ConfigDict(populate_by_name=True)


class PaymentCallbackPayload(BaseModel):
    """Gateway callback for POST /payment-success.

    Accepts both the portal's names and the gateway checkout's native names.
    """

    order_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("orderId", "razorpay_order_id", "order_id"),
    )
    payment_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("paymentId", "razorpay_payment_id", "payment_id"),
    )
    signature: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("signature", "razorpay_signature"),
    )


class FeeSchedulePayload(BaseModel):
    """Request payload for PUT /fee-schedule."""

    fee_schedule: dict[str, Any] = Field(
        ..., validation_alias=AliasChoices("feeSchedule", "fee_schedule")
    )


class FeeScheduleResponse(BaseModel):
    """Response schema for GET/PUT /fee-schedule."""

    society_id: int
    fee_schedule: dict[str, Any]
    monthly_total: float | None = None
