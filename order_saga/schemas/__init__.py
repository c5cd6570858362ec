"""
Schemas package
"""
from order_saga.schemas.order import (
    ShippingAddress,
    OrderCreate,
    OrderAction,
    VerifyPaymentRequest,
    OrderItemResponse,
    OrderResponse,
    CreateOrderResponse,
    ActionResponse,
    SweepResult,
    SweepResponse
)
from order_saga.schemas.payment import (
    RefundRequest,
    RefundDetails,
    RefundResponse,
    FetchPaymentRequest,
    FetchPaymentResponse,
    WebhookResponse
)
from order_saga.schemas.returns import ReturnItem, ReturnCreate, ReturnResponse
from order_saga.schemas.inventory import LowStockItem, LowStockResponse

__all__ = [
    "ShippingAddress",
    "OrderCreate",
    "OrderAction",
    "VerifyPaymentRequest",
    "OrderItemResponse",
    "OrderResponse",
    "CreateOrderResponse",
    "ActionResponse",
    "SweepResult",
    "SweepResponse",
    "RefundRequest",
    "RefundDetails",
    "RefundResponse",
    "FetchPaymentRequest",
    "FetchPaymentResponse",
    "WebhookResponse",
    "ReturnItem",
    "ReturnCreate",
    "ReturnResponse",
    "LowStockItem",
    "LowStockResponse"
]
