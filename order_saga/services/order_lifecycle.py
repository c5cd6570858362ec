"""
Order Lifecycle Service - saga steps that move an order through its states

States: pending -> paid | cancelled, paid -> refunded. Every status change is a
conditional update on the expected current status, so when two handlers race on
the same order exactly one wins and the other observes the result.

Each step commits on its own. When a later step fails, the earlier ones are
compensated (release inventory, restore coupon, cancel order) and every step is
logged with the order reference so a partial run can be reconciled by hand.
"""
import logging
import time
import uuid
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from order_saga.config import settings
from order_saga.exceptions import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    PaymentVerificationFailed,
    RateLimitExceeded,
    ValidationError,
)
from order_saga.models.order import Order
from order_saga.repositories.order_repository import OrderRepository, CartRepository
from order_saga.repositories.payment_repository import PaymentRepository, InvoiceRepository
from order_saga.repositories.inventory_repository import InventoryRepository
from order_saga.schemas.order import OrderCreate, OrderResponse, CreateOrderResponse, VerifyPaymentRequest
from order_saga.services.authorization import require_admin
from order_saga.services.coupon_ledger import CouponLedger
from order_saga.services.inventory_adjuster import InventoryAdjuster
from order_saga.services.notifier import Notifier
from order_saga.services.payment_gateway import RazorpayGateway, verify_signature
from order_saga.timeutils import utcnow

logger = logging.getLogger(__name__)

BYPASS_PAYMENT_ID = "bypass_test_payment"


def order_snapshot(order: Order) -> Dict:
    """JSON-safe view of an order for responses and notification events"""
    return OrderResponse.model_validate(order).model_dump(mode="json")


class OrderLifecycleService:
    """Service layer for the order state machine"""
    
    def __init__(self, db: Session, gateway: Optional[RazorpayGateway] = None, notifier: Optional[Notifier] = None):
        self.db = db
        self.orders = OrderRepository(db)
        self.carts = CartRepository(db)
        self.payments = PaymentRepository(db)
        self.invoices = InvoiceRepository(db)
        self.catalog = InventoryRepository(db)
        self.inventory = InventoryAdjuster(db)
        self.coupons = CouponLedger(db)
        self.gateway = gateway
        self.notifier = notifier or Notifier()
    
    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------
    
    def _price_cart(self, cart_items) -> List[dict]:
        """Price cart lines from the catalog; client-side prices are never trusted"""
        lines = []
        for item in cart_items:
            product = self.catalog.get_product(item.product_id)
            if not product:
                raise ValidationError("Unable to process order. Some items in your cart are no longer available.")
            
            unit_price = product.discount_price or product.base_price
            if item.variant_id:
                variant = self.catalog.get_variant(item.variant_id)
                if variant:
                    if variant.absolute_price:
                        unit_price = variant.absolute_price
                    elif variant.price_adjustment:
                        unit_price = product.base_price + variant.price_adjustment
            
            lines.append({
                "product_id": item.product_id,
                "variant_id": item.variant_id,
                "quantity": item.quantity,
                "unit_price": unit_price,
                "category": product.category,
            })
        return lines
    
    async def create_order(self, user_id: str, order_data: OrderCreate) -> CreateOrderResponse:
        """
        Checkout the caller's cart
        
        Steps:
        1. Rate limit and validate the cart
        2. Price items and quote the coupon (no side effects yet)
        3. Reserve inventory (all-or-nothing)
        4. Insert the order and its items
        5. Take a coupon use
        6. Create the gateway order and the payment transaction
        
        A failure in steps 4-6 releases the reservation, restores the coupon
        and cancels the order before the error propagates.
        
        Raises:
            RateLimitExceeded, ValidationError, CouponError, OversellError,
            GatewayError
        """
        since = utcnow() - timedelta(minutes=settings.PENDING_ORDER_WINDOW_MINUTES)
        pending = self.orders.count_pending_since(user_id, since)
        if pending >= settings.PENDING_ORDER_LIMIT:
            logger.warning("Rate limit exceeded for user %s: %s pending orders", user_id, pending)
            raise RateLimitExceeded()
        
        cart_items = self.carts.get_items(user_id)
        if not cart_items:
            raise ValidationError("Unable to process order. Your cart is empty.")
        
        lines = self._price_cart(cart_items)
        subtotal = round(sum(line["unit_price"] * line["quantity"] for line in lines), 2)
        email = order_data.customer_email
        
        quote = None
        if order_data.coupon_code:
            quote = self.coupons.evaluate(order_data.coupon_code, user_id, email, subtotal, lines)
        
        discount = quote.discount_amount if quote else 0.0
        free_shipping = quote.free_shipping if quote else False
        shipping = 0.0 if (subtotal >= settings.FREE_SHIPPING_THRESHOLD or free_shipping) else settings.SHIPPING_COST
        total = float(round(max(0.0, subtotal + shipping - discount)))
        
        order_number = f"ORD-{int(time.time() * 1000)}-{uuid.uuid4().hex[:4].upper()}"
        stock_lines = [
            {"product_id": line["product_id"], "variant_id": line["variant_id"], "quantity": line["quantity"]}
            for line in lines
        ]
        
        self.inventory.reserve(stock_lines, reference_id=order_number)
        logger.info("Reserved inventory for %s: %s", order_number, stock_lines)
        
        try:
            order = self.orders.create(
                {
                    "order_number": order_number,
                    "user_id": user_id,
                    "customer_email": email,
                    "status": "pending",
                    "payment_status": "pending",
                    "subtotal_amount": subtotal,
                    "shipping_amount": shipping,
                    "discount_amount": discount,
                    "total_amount": total,
                    "coupon_code": quote.code if quote else None,
                    "shipping_address": order_data.shipping_address.model_dump(),
                },
                [
                    {
                        "product_id": line["product_id"],
                        "variant_id": line["variant_id"],
                        "quantity": line["quantity"],
                        "unit_price": line["unit_price"],
                    }
                    for line in lines
                ]
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Order insert failed for %s, rolling back inventory", order_number)
            self.inventory.release(stock_lines, reference_id=order_number, reason="order_creation_failed")
            raise
        
        order_id = order.id
        step = "apply_coupon"
        try:
            if quote:
                self.coupons.apply(quote.code, user_id, order_id, email, subtotal, lines)
            
            step = "create_gateway_order"
            gateway_order = await self.gateway.create_order(
                total,
                receipt=order_number,
                notes={"order_id": str(order_id), "user_id": user_id}
            )
            
            step = "create_payment_transaction"
            self.payments.create_transaction({
                "order_id": order_id,
                "razorpay_order_id": gateway_order["id"],
                "amount": total,
                "currency": settings.CURRENCY,
                "status": "created",
            })
        except Exception:
            self.db.rollback()
            logger.exception("Checkout of order %s (%s) failed at step %s, compensating", order_id, order_number, step)
            self._compensate(order_id, reason="checkout_failed", notify=False)
            raise
        
        logger.info("Order %s (%s) created with total %s", order_id, order_number, total)
        return CreateOrderResponse(
            order_id=order_id,
            order_number=order_number,
            razorpay_order_id=gateway_order["id"],
            amount=total,
            currency=settings.CURRENCY,
            razorpay_key_id=self.gateway.key_id
        )
    
    # ------------------------------------------------------------------
    # Verify payment
    # ------------------------------------------------------------------
    
    def _get_order(self, order_id: int) -> Order:
        order = self.orders.get_by_id(order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order
    
    def _get_owned_order(self, order_id: int, user_id: str) -> Order:
        order = self._get_order(order_id)
        if order.user_id != user_id:
            logger.warning("User %s attempted to access order %s owned by another user", user_id, order_id)
            raise AuthorizationError("Unauthorized access to order")
        return order
    
    def verify_payment(self, user_id: str, request: VerifyPaymentRequest) -> Dict:
        """
        Confirm a payment reported by the client after checkout
        
        A signature mismatch changes nothing; the gateway remains the source
        of truth for whether money moved.
        
        Raises:
            NotFoundError, AuthorizationError, PaymentVerificationFailed,
            InvalidTransitionError
        """
        order = self._get_owned_order(request.order_id, user_id)
        
        signature_ok = verify_signature(
            request.gateway_order_id,
            request.gateway_payment_id,
            request.signature,
            settings.RAZORPAY_KEY_SECRET
        )
        transaction = self.payments.get_by_gateway_order_id(request.gateway_order_id)
        if not signature_ok or transaction is None or transaction.order_id != order.id:
            logger.error(
                "Payment verification failed: order=%s gateway_order=%s payment=%s user=%s signature_ok=%s",
                order.id, request.gateway_order_id, request.gateway_payment_id, user_id, signature_ok
            )
            raise PaymentVerificationFailed()
        
        logger.info("Payment signature verified for order %s", order.id)
        outcome = self._mark_paid(
            order,
            request.gateway_order_id,
            request.gateway_payment_id,
            signature=request.signature
        )
        message = "Payment verified successfully" if outcome == "paid" else "Payment already verified"
        return {"success": True, "message": message}
    
    def capture_from_webhook(self, gateway_order_id: str, gateway_payment_id: str, payment_method: Optional[str] = None) -> str:
        """
        Apply a provider `payment.captured` event
        
        Returns:
            "paid", "already_paid", "ignored" or "reconciliation_required"
        """
        transaction = self.payments.get_by_gateway_order_id(gateway_order_id)
        if not transaction:
            logger.warning("Webhook capture for unknown gateway order %s", gateway_order_id)
            return "ignored"
        
        order = self.orders.get_by_id(transaction.order_id)
        if not order:
            logger.error("Webhook capture for gateway order %s references missing order %s", gateway_order_id, transaction.order_id)
            return "reconciliation_required"
        
        try:
            return self._mark_paid(order, gateway_order_id, gateway_payment_id, payment_method=payment_method)
        except InvalidTransitionError:
            return "reconciliation_required"
    
    def fail_from_webhook(self, gateway_order_id: str) -> str:
        """Apply a provider `payment.failed` event; the order stays pending for a retry"""
        updated = self.payments.mark_failed_by_gateway_order(gateway_order_id)
        logger.info("Webhook payment failure for gateway order %s (%s transactions updated)", gateway_order_id, updated)
        return "failed" if updated else "ignored"
    
    def _mark_paid(
        self,
        order: Order,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: Optional[str] = None,
        payment_method: Optional[str] = None
    ) -> str:
        order_id = order.id
        user_id = order.user_id
        
        self.payments.mark_captured(order_id, gateway_order_id, gateway_payment_id, signature, payment_method)
        
        if not self.orders.transition(order_id, "pending", "paid", payment_status="success"):
            order = self.orders.reload(order)
            if order.status == "paid":
                logger.info("Order %s already paid; ignoring duplicate confirmation", order_id)
                return "already_paid"
            logger.error(
                "RECONCILE: payment %s captured for order %s but order is %s; refund or reinstate manually",
                gateway_payment_id, order_id, order.status
            )
            raise InvalidTransitionError(
                "Order is no longer pending. Please contact support if amount was deducted."
            )
        
        logger.info("Order %s paid with payment %s", order_id, gateway_payment_id)
        self._clear_cart(user_id, order_id)
        self.notifier.send_order_confirmation(order_snapshot(self.orders.reload(order)))
        return "paid"
    
    def _clear_cart(self, user_id: str, order_id: int) -> None:
        try:
            self.carts.clear(user_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to clear cart of user %s after order %s: %s", user_id, order_id, e)
    
    # ------------------------------------------------------------------
    # Cancel / expire
    # ------------------------------------------------------------------
    
    def cancel_order(self, user_id: str, order_id: int) -> Dict:
        """
        Cancel the caller's pending order
        
        Orders that are not pending (already paid or cancelled) are left as
        they are and reported as success.
        """
        order = self._get_owned_order(order_id, user_id)
        if order.status != "pending":
            return {"success": True, "message": "Order already processed"}
        
        if not self._compensate(order_id, reason="order_cancelled"):
            return {"success": True, "message": "Order already processed"}
        return {"success": True, "message": "Order cancelled"}
    
    def expire_order(self, order_id: int) -> str:
        """
        Cancel a stale pending order (same effects as a user cancel)
        
        Returns:
            "cancelled", or "skipped" if the order left pending meanwhile
        """
        if self._compensate(order_id, reason="order_expired"):
            return "cancelled"
        return "skipped"
    
    def _compensate(self, order_id: int, reason: str, notify: bool = True) -> bool:
        """
        Cancel a pending order and undo its reservations
        
        Only the caller whose conditional update wins performs the release,
        so repeated or concurrent calls release stock and coupons once.
        
        Returns:
            True if this call cancelled the order
        """
        if not self.orders.transition(order_id, "pending", "cancelled", payment_status="failed"):
            logger.info("Order %s is no longer pending; %s skipped", order_id, reason)
            return False
        
        order = self._get_order(order_id)
        reference = order.order_number
        logger.info("Order %s (%s) cancelled: %s", order_id, reference, reason)
        
        self.inventory.release([item.as_stock_line() for item in order.items], reference_id=reference, reason=reason)
        
        try:
            self.payments.mark_failed_for_order(order_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to mark payment transactions failed for order %s: %s", order_id, e)
        
        if order.coupon_code:
            try:
                self.coupons.restore(order_id)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error("Failed to restore coupon %s for order %s: %s", order.coupon_code, order_id, e)
        
        if notify:
            self.notifier.send_cancellation_notice(order_snapshot(self.orders.reload(order)))
        return True
    
    # ------------------------------------------------------------------
    # Admin override
    # ------------------------------------------------------------------
    
    def admin_override(self, admin_id: str, order_id: int) -> Dict:
        """
        Mark a pending order paid without gateway confirmation (support/test use)
        
        Raises:
            AuthorizationError: Before any write when the caller is not an admin
            NotFoundError, InvalidTransitionError
        """
        require_admin(self.db, admin_id)
        order = self._get_order(order_id)
        owner_id = order.user_id
        
        logger.warning("Bypassing payment for order %s by admin %s", order_id, admin_id)
        if not self.orders.transition(order_id, "pending", "paid", payment_status="success"):
            order = self.orders.reload(order)
            if order.status != "paid":
                raise InvalidTransitionError(f"Order is {order.status} and cannot be marked paid")
            message = "Order already paid"
        else:
            self.payments.force_success(order_id, BYPASS_PAYMENT_ID)
            message = "Payment bypassed successfully"
        
        invoice_number = self.ensure_invoice(order_id)
        self._clear_cart(owner_id, order_id)
        return {"success": True, "message": message, "invoice_number": invoice_number}
    
    def ensure_invoice(self, order_id: int) -> Optional[str]:
        """Create the order's invoice once; returns its number"""
        existing = self.invoices.get_by_order(order_id)
        if existing:
            return existing.invoice_number
        
        try:
            invoice_number = self.invoices.generate_invoice_number()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to generate invoice number for order %s: %s", order_id, e)
            return None
        
        order = self._get_order(order_id)
        try:
            invoice = self.invoices.create({
                "order_id": order_id,
                "invoice_number": invoice_number,
                "total_amount": order.total_amount or 0,
                "tax_amount": 0,
                "status": "issued",
            })
        except IntegrityError:
            self.db.rollback()
            existing = self.invoices.get_by_order(order_id)
            return existing.invoice_number if existing else None
        
        logger.info("Invoice generated: %s for order %s", invoice.invoice_number, order_id)
        return invoice.invoice_number
