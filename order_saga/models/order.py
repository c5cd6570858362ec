"""
SQLAlchemy Order, OrderItem and CartItem models
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, JSON, CheckConstraint
from sqlalchemy.orm import relationship

from order_saga.database import Base
from order_saga.timeutils import utcnow


ORDER_STATUSES = ("pending", "paid", "cancelled", "refunded")
PAYMENT_STATUSES = ("pending", "success", "failed", "refunded")


class Order(Base):
    """Order database model; rows are never deleted"""
    
    __tablename__ = "orders"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_number = Column(String(50), nullable=False, unique=True)
    user_id = Column(String(64), nullable=False, index=True)
    customer_email = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_status = Column(String(20), nullable=False, default="pending")
    subtotal_amount = Column(Float, nullable=False, default=0)
    shipping_amount = Column(Float, nullable=False, default=0)
    discount_amount = Column(Float, nullable=False, default=0)
    total_amount = Column(Float, nullable=False)
    coupon_code = Column(String(50), nullable=True)
    shipping_address = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy="selectin",
    )
    
    # Constraints
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'paid', 'cancelled', 'refunded')", name="check_order_status_valid"),
        CheckConstraint(
            "payment_status IN ('pending', 'success', 'failed', 'refunded')",
            name="check_payment_status_valid",
        ),
        CheckConstraint("total_amount >= 0", name="check_total_non_negative"),
    )
    
    def __repr__(self):
        return f"<Order(id={self.id}, user_id='{self.user_id}', status='{self.status}', payment_status='{self.payment_status}')>"


class OrderItem(Base):
    """Line item fixed at order creation time"""
    
    __tablename__ = "order_items"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)
    variant_id = Column(Integer, nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    
    order = relationship("Order", back_populates="items")
    
    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_item_quantity_positive"),
    )
    
    def as_stock_line(self) -> dict:
        return {"product_id": self.product_id, "variant_id": self.variant_id, "quantity": self.quantity}
    
    def __repr__(self):
        return f"<OrderItem(order_id={self.order_id}, product_id={self.product_id}, variant_id={self.variant_id}, quantity={self.quantity})>"


class CartItem(Base):
    """Shopping cart row; checkout reads it and payment confirmation clears it"""
    
    __tablename__ = "cart_items"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)
    variant_id = Column(Integer, nullable=True)
    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_cart_quantity_positive"),
    )
    
    def __repr__(self):
        return f"<CartItem(user_id='{self.user_id}', product_id={self.product_id}, quantity={self.quantity})>"


# Allowed order status transitions; cancelled and refunded are terminal
ALLOWED_TRANSITIONS = {
    "pending": frozenset({"paid", "cancelled"}),
    "paid": frozenset({"refunded"}),
    "cancelled": frozenset(),
    "refunded": frozenset(),
}


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, ())
