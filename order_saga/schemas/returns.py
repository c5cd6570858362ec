"""
Pydantic schemas for return requests
"""
from pydantic import BaseModel, Field, EmailStr, AliasChoices
from typing import Optional, List


class ReturnItem(BaseModel):
    product_id: int = Field(..., gt=0, validation_alias=AliasChoices("productId", "product_id"))
    variant_id: Optional[int] = Field(None, validation_alias=AliasChoices("variantId", "variant_id"))
    quantity: int = Field(..., gt=0)


class ReturnCreate(BaseModel):
    """Schema for creating a return request"""
    order_id: int = Field(..., gt=0, validation_alias=AliasChoices("orderId", "order_id"))
    items: List[ReturnItem] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=1000)
    return_type: str = Field(..., min_length=1, max_length=20, validation_alias=AliasChoices("type", "return_type"))
    email: EmailStr


class ReturnResponse(BaseModel):
    success: bool = True
    return_id: int
