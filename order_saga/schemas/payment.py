"""
Pydantic schemas for refunds, payment sync and the provider webhook
"""
from pydantic import BaseModel, Field, AliasChoices
from typing import Optional, Dict, Any


class RefundRequest(BaseModel):
    """Schema for an admin-initiated refund"""
    payment_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("paymentId", "payment_id", "razorpay_payment_id")
    )
    amount: float = Field(..., gt=0, description="Refund amount in rupees")
    reason: Optional[str] = Field(None, max_length=255)


class RefundDetails(BaseModel):
    gateway_refund_id: str
    status: str
    amount: float


class RefundResponse(BaseModel):
    """
    Refund result
    
    `recorded` is False when the gateway refund succeeded but local
    bookkeeping could not be written and needs manual reconciliation.
    """
    success: bool = True
    refund: RefundDetails
    recorded: bool


class FetchPaymentRequest(BaseModel):
    payment_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("paymentId", "payment_id", "razorpay_payment_id")
    )


class FetchPaymentResponse(BaseModel):
    success: bool = True
    payment: Dict[str, Any]
    updated: bool


class WebhookResponse(BaseModel):
    success: bool = True
    outcome: str
