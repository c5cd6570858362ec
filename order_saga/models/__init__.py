"""
Models package
"""
from order_saga.models.order import (
    Order,
    OrderItem,
    CartItem,
    ORDER_STATUSES,
    PAYMENT_STATUSES,
    ALLOWED_TRANSITIONS,
    can_transition,
)
from order_saga.models.payment import PaymentTransaction, Refund, Invoice, InvoiceSequence
from order_saga.models.inventory import InventoryRecord, StockMovement, Product, ProductVariant
from order_saga.models.coupon import Coupon, OrderCouponApplication
from order_saga.models.returns import Return
from order_saga.models.user import UserRole
from order_saga.models.audit import AuditLog

__all__ = [
    "Order",
    "OrderItem",
    "CartItem",
    "ORDER_STATUSES",
    "PAYMENT_STATUSES",
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "PaymentTransaction",
    "Refund",
    "Invoice",
    "InvoiceSequence",
    "InventoryRecord",
    "StockMovement",
    "Product",
    "ProductVariant",
    "Coupon",
    "OrderCouponApplication",
    "Return",
    "UserRole",
    "AuditLog",
]
