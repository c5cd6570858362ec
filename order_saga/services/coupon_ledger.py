"""
Coupon Ledger - coupon eligibility, usage counting and idempotent restoration
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from order_saga.exceptions import CouponNotFound, CouponExpired, CouponLimitReached, CouponNotEligible
from order_saga.models.coupon import Coupon, OrderCouponApplication
from order_saga.repositories.coupon_repository import CouponRepository
from order_saga.timeutils import utcnow, as_utc

logger = logging.getLogger(__name__)


@dataclass
class CouponQuote:
    """Discount a coupon would give an order"""
    code: str
    discount_amount: float
    free_shipping: bool


class CouponLedger:
    """Apply and restore coupon usage"""
    
    def __init__(self, db: Session):
        self.repository = CouponRepository(db)
    
    def evaluate(
        self,
        code: str,
        user_id: str,
        email: Optional[str] = None,
        subtotal: float = 0.0,
        items: Iterable[dict] = ()
    ) -> CouponQuote:
        """
        Check a coupon against an order without taking a use
        
        Checks run in order and stop at the first failure: expiry, usage
        limits, then eligibility (email, products, categories, minimum value).
        
        Raises:
            CouponNotFound, CouponExpired, CouponLimitReached, CouponNotEligible
        """
        coupon = self.repository.get_by_code(code)
        if not coupon or not coupon.is_active:
            raise CouponNotFound()
        
        if coupon.valid_until is not None and as_utc(coupon.valid_until) < utcnow():
            raise CouponExpired()
        
        if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
            raise CouponLimitReached()
        if coupon.per_user_limit is not None:
            if self.repository.count_active_applications(code, user_id) >= coupon.per_user_limit:
                raise CouponLimitReached()
        
        self._check_eligibility(coupon, email, subtotal, list(items))
        
        return self._quote(coupon, subtotal)
    
    def _check_eligibility(self, coupon: Coupon, email: Optional[str], subtotal: float, items: list) -> None:
        if coupon.allowed_emails:
            allowed = {e.lower() for e in coupon.allowed_emails}
            if not email or email.lower() not in allowed:
                raise CouponNotEligible()
        
        if coupon.restricted_products:
            product_ids = {item.get("product_id") for item in items}
            if not product_ids.intersection(coupon.restricted_products):
                raise CouponNotEligible()
        
        if coupon.restricted_categories:
            categories = {item.get("category") for item in items}
            if not categories.intersection(coupon.restricted_categories):
                raise CouponNotEligible()
        
        if subtotal < (coupon.min_order_value or 0):
            raise CouponNotEligible("Minimum order value not met for this coupon")
    
    @staticmethod
    def _quote(coupon: Coupon, subtotal: float) -> CouponQuote:
        discount = 0.0
        free_shipping = False
        if coupon.discount_type == "percentage":
            discount = subtotal * (coupon.discount_value / 100)
            if coupon.max_discount_amount:
                discount = min(discount, coupon.max_discount_amount)
        elif coupon.discount_type == "fixed":
            discount = min(coupon.discount_value, subtotal)
        elif coupon.discount_type == "free_shipping":
            free_shipping = True
        return CouponQuote(code=coupon.code, discount_amount=round(discount, 2), free_shipping=free_shipping)
    
    def apply(
        self,
        code: str,
        user_id: str,
        order_id: int,
        email: Optional[str] = None,
        subtotal: float = 0.0,
        items: Iterable[dict] = ()
    ) -> OrderCouponApplication:
        """
        Take one use of `code` for `order_id`
        
        Applying the same order twice returns the existing application
        without taking another use.
        
        Raises:
            CouponError subclasses, see `evaluate`
        """
        existing = self.repository.get_application(order_id)
        if existing:
            return existing
        
        quote = self.evaluate(code, user_id, email, subtotal, items)
        
        # Conditional increment; losing a race for the last use surfaces here
        if not self.repository.increment_usage(code):
            raise CouponLimitReached()
        
        try:
            application = self.repository.create_application({
                "order_id": order_id,
                "coupon_code": code,
                "user_id": user_id,
                "discount_amount": quote.discount_amount,
            })
        except IntegrityError:
            self.repository.db.rollback()
            self.repository.decrement_usage(code)
            logger.info("Coupon %s already applied to order %s", code, order_id)
            return self.repository.get_application(order_id)
        
        logger.info("Coupon %s applied to order %s for user %s", code, order_id, user_id)
        return application
    
    def restore(self, order_id: int) -> bool:
        """
        Give back the use taken for `order_id`
        
        Idempotent: only the first call for an order decrements `used_count`.
        
        Returns:
            True if a use was returned by this call
        """
        application = self.repository.get_application(order_id)
        if not application:
            return False
        
        code = application.coupon_code
        if not self.repository.mark_restored(order_id):
            logger.info("Coupon %s for order %s already restored", code, order_id)
            return False
        
        if not self.repository.decrement_usage(code):
            logger.warning("Coupon %s used_count already zero while restoring order %s", code, order_id)
        logger.info("Coupon %s restored for order %s", code, order_id)
        return True
