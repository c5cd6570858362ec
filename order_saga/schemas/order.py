"""
Pydantic schemas for order lifecycle requests and responses
"""
from pydantic import BaseModel, Field, EmailStr, ConfigDict, AliasChoices
from typing import Optional, List, Literal
from datetime import datetime


class ShippingAddress(BaseModel):
    """Shipping address captured at checkout"""
    address_line_1: str = Field(..., min_length=1, max_length=255)
    address_line_2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: str = Field(..., min_length=4, max_length=10)
    phone: Optional[str] = Field(None, max_length=20)


class OrderCreate(BaseModel):
    """Schema for creating a new order from the caller's cart"""
    shipping_address: ShippingAddress = Field(
        ...,
        validation_alias=AliasChoices("shippingAddress", "shipping_address"),
        description="Shipping address"
    )
    coupon_code: Optional[str] = Field(
        None,
        max_length=50,
        validation_alias=AliasChoices("couponCode", "coupon_code"),
        description="Coupon code to apply"
    )
    customer_email: Optional[EmailStr] = Field(
        None,
        validation_alias=AliasChoices("email", "customerEmail", "customer_email"),
        description="Customer email address"
    )


class OrderAction(BaseModel):
    """Schema for handlers that act on a single order (cancel, admin bypass)"""
    order_id: int = Field(..., gt=0, validation_alias=AliasChoices("orderId", "order_id"))


class VerifyPaymentRequest(BaseModel):
    """Payment provider callback data forwarded by the client"""
    order_id: int = Field(..., gt=0, validation_alias=AliasChoices("orderId", "order_id"))
    gateway_order_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("gatewayOrderId", "razorpay_order_id", "gateway_order_id")
    )
    gateway_payment_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("gatewayPaymentId", "razorpay_payment_id", "gateway_payment_id")
    )
    signature: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("signature", "razorpay_signature")
    )


class OrderItemResponse(BaseModel):
    product_id: int
    variant_id: Optional[int]
    quantity: int
    unit_price: float
    
    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    """Schema for order response and notification payloads"""
    id: int
    order_number: str
    user_id: str
    customer_email: Optional[str]
    status: Literal['pending', 'paid', 'cancelled', 'refunded']
    payment_status: Literal['pending', 'success', 'failed', 'refunded']
    subtotal_amount: float
    shipping_amount: float
    discount_amount: float
    total_amount: float
    coupon_code: Optional[str]
    items: List[OrderItemResponse]
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class CreateOrderResponse(BaseModel):
    """Checkout result handed to the payment widget"""
    success: bool = True
    order_id: int
    order_number: str
    razorpay_order_id: str
    amount: float
    currency: str
    razorpay_key_id: str


class ActionResponse(BaseModel):
    """Generic handler response"""
    success: bool = True
    message: Optional[str] = None


class SweepResult(BaseModel):
    """Per-order outcome of the stale order sweep"""
    id: int
    status: Literal['cancelled', 'skipped', 'error']
    error: Optional[str] = None


class SweepResponse(BaseModel):
    success: bool = True
    count: int
    results: List[SweepResult]
