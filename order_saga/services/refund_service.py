"""
Refund Service - gateway refunds and payment sync for admins

The gateway refund and the local bookkeeping are separate steps. Once the
gateway has accepted a refund it is reported as done even if the local writes
fail; those failures are logged for manual reconciliation and never retried or
reversed here.
"""
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from order_saga.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from order_saga.repositories.audit_repository import AuditRepository
from order_saga.repositories.order_repository import OrderRepository
from order_saga.repositories.payment_repository import PaymentRepository
from order_saga.schemas.payment import RefundResponse, RefundDetails, FetchPaymentResponse
from order_saga.services.authorization import require_admin
from order_saga.services.coupon_ledger import CouponLedger
from order_saga.services.notifier import Notifier
from order_saga.services.payment_gateway import RazorpayGateway, RefundResult

logger = logging.getLogger(__name__)

DEFAULT_REFUND_REASON = "Admin initiated refund"

# Razorpay payment status -> local transaction status
GATEWAY_STATUS_MAP = {
    "created": "created",
    "authorized": "created",
    "captured": "success",
    "refunded": "refunded",
    "failed": "failed",
}


class RefundService:
    """Service layer for refunds"""
    
    def __init__(self, db: Session, gateway: RazorpayGateway, notifier: Optional[Notifier] = None):
        self.db = db
        self.orders = OrderRepository(db)
        self.payments = PaymentRepository(db)
        self.audit = AuditRepository(db)
        self.coupons = CouponLedger(db)
        self.gateway = gateway
        self.notifier = notifier or Notifier()
    
    async def process_refund(self, admin_id: str, payment_id: str, amount: float, reason: Optional[str] = None) -> RefundResponse:
        """
        Refund a captured payment of a paid order
        
        Raises:
            AuthorizationError, NotFoundError, InvalidTransitionError,
            ValidationError, RefundFailed, GatewayTimeout, GatewayError
        """
        require_admin(self.db, admin_id)
        reason = reason or DEFAULT_REFUND_REASON
        
        transaction = self.payments.get_by_payment_id(payment_id)
        if not transaction:
            raise NotFoundError("Payment not found")
        if transaction.status != "success":
            raise InvalidTransitionError("Only captured payments can be refunded")
        
        order = self.orders.get_by_id(transaction.order_id)
        if order is None or order.status != "paid":
            raise InvalidTransitionError("Only paid orders can be refunded")
        
        remaining = round(transaction.amount - self.payments.refunded_total(payment_id), 2)
        if amount > remaining:
            raise ValidationError(f"Refund amount exceeds the refundable balance of {remaining:.2f}")
        
        context = {
            "admin_id": admin_id,
            "transaction_id": transaction.id,
            "transaction_amount": transaction.amount,
            "order_id": order.id,
            "user_id": order.user_id,
            "customer_email": order.customer_email,
            "coupon_code": order.coupon_code,
        }
        logger.info("Processing refund for payment %s, amount %s (order %s)", payment_id, amount, context["order_id"])
        
        refund = await self.gateway.refund(payment_id, amount)
        
        recorded = self._record_refund(payment_id, amount, reason, refund, context)
        
        self.notifier.send_refund_receipt({
            "order_id": context["order_id"],
            "customer_email": context["customer_email"],
            "payment_id": payment_id,
            "gateway_refund_id": refund.gateway_refund_id,
            "amount": refund.amount,
        })
        
        return RefundResponse(
            refund=RefundDetails(
                gateway_refund_id=refund.gateway_refund_id,
                status=refund.status,
                amount=refund.amount
            ),
            recorded=recorded
        )
    
    def _record_refund(self, payment_id: str, amount: float, reason: str, refund: RefundResult, context: Dict) -> bool:
        """Best-effort local bookkeeping after a successful gateway refund"""
        order_id = context["order_id"]
        try:
            self.payments.create_refund({
                "payment_transaction_id": context["transaction_id"],
                "order_id": order_id,
                "razorpay_payment_id": payment_id,
                "gateway_refund_id": refund.gateway_refund_id,
                "amount": amount,
                "reason": reason,
                "status": "processed",
            })
            self.audit.record(
                "refund_processed",
                "payment",
                context["transaction_id"],
                actor_id=context["admin_id"],
                details={"amount": amount, "gateway_refund_id": refund.gateway_refund_id, "reason": reason}
            )
            
            fully_refunded = self.payments.refunded_total(payment_id) >= context["transaction_amount"] - 0.005
            if fully_refunded:
                # Partially refunded transactions stay success
                self.payments.mark_refunded(payment_id)
                self.orders.transition(order_id, "paid", "refunded", payment_status="refunded")
                if context["coupon_code"]:
                    self.coupons.restore(order_id)
            else:
                self.orders.set_payment_status(order_id, "refunded", expected_status="paid")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "RECONCILE: gateway refund %s of %s for payment %s (order %s) succeeded but local update failed: %s",
                refund.gateway_refund_id, amount, payment_id, order_id, e
            )
            return False
        
        logger.info("Refund %s recorded for order %s", refund.gateway_refund_id, order_id)
        return True
    
    async def fetch_payment(self, admin_id: str, payment_id: str) -> FetchPaymentResponse:
        """Fetch a payment from the gateway and sync the local transaction"""
        require_admin(self.db, admin_id)
        
        payment = await self.gateway.fetch_payment(payment_id)
        status = GATEWAY_STATUS_MAP.get(payment.get("status"))
        if status is None:
            logger.warning("Unknown gateway status %s for payment %s", payment.get("status"), payment_id)
            return FetchPaymentResponse(payment=payment, updated=False)
        
        updated = self.payments.sync_from_gateway(
            payment_id,
            status=status,
            payment_method=payment.get("method"),
            amount=payment.get("amount", 0) / 100
        )
        return FetchPaymentResponse(payment=payment, updated=updated > 0)
