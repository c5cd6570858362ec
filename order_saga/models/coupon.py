"""
SQLAlchemy Coupon and OrderCouponApplication models
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, JSON, CheckConstraint

from order_saga.database import Base
from order_saga.timeutils import utcnow


class Coupon(Base):
    """Discount coupon with global and per-user usage limits"""
    
    __tablename__ = "coupons"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True, index=True)
    discount_type = Column(String(20), nullable=False)  # percentage, fixed, free_shipping
    discount_value = Column(Float, nullable=False, default=0)
    max_discount_amount = Column(Float, nullable=True)
    min_order_value = Column(Float, nullable=False, default=0)
    usage_limit = Column(Integer, nullable=True)
    per_user_limit = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)
    allowed_emails = Column(JSON, nullable=True)
    restricted_products = Column(JSON, nullable=True)
    restricted_categories = Column(JSON, nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    
    __table_args__ = (
        CheckConstraint("used_count >= 0", name="check_used_count_non_negative"),
        CheckConstraint(
            "discount_type IN ('percentage', 'fixed', 'free_shipping')",
            name="check_discount_type_valid",
        ),
    )
    
    def __repr__(self):
        return f"<Coupon(code='{self.code}', used_count={self.used_count}, usage_limit={self.usage_limit})>"


class OrderCouponApplication(Base):
    """One coupon application per order; `restored` guards against double restoration"""
    
    __tablename__ = "order_coupon_applications"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, nullable=False, unique=True)
    coupon_code = Column(String(50), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    discount_amount = Column(Float, nullable=False, default=0)
    restored = Column(Boolean, nullable=False, default=False)
    applied_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    restored_at = Column(DateTime(timezone=True), nullable=True)
    
    def __repr__(self):
        return f"<OrderCouponApplication(order_id={self.order_id}, coupon_code='{self.coupon_code}', restored={self.restored})>"
