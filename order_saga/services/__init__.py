"""
Services package
"""
from order_saga.services.inventory_adjuster import InventoryAdjuster, AdjustmentResult
from order_saga.services.coupon_ledger import CouponLedger, CouponQuote
from order_saga.services.payment_gateway import RazorpayGateway, RefundResult, verify_signature, verify_webhook_signature
from order_saga.services.notifier import Notifier
from order_saga.services.order_lifecycle import OrderLifecycleService
from order_saga.services.refund_service import RefundService
from order_saga.services.stale_sweep import StaleOrderSweeper
from order_saga.services.return_service import ReturnService
from order_saga.services.notification_service import NotificationService

__all__ = [
    "InventoryAdjuster",
    "AdjustmentResult",
    "CouponLedger",
    "CouponQuote",
    "RazorpayGateway",
    "RefundResult",
    "verify_signature",
    "verify_webhook_signature",
    "Notifier",
    "OrderLifecycleService",
    "RefundService",
    "StaleOrderSweeper",
    "ReturnService",
    "NotificationService",
]
