"""
Order Repository - Data Access Layer
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy import update, func
from sqlalchemy.orm import Session

from order_saga.models.order import Order, OrderItem, CartItem, can_transition


class OrderRepository:
    """Repository for Order reads, inserts and conditional status transitions"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def get_by_id(self, order_id: int) -> Optional[Order]:
        """Get order by ID"""
        return self.db.query(Order).filter(Order.id == order_id).first()
    
    def reload(self, order: Order) -> Order:
        """Re-read an order after a conditional update"""
        self.db.refresh(order)
        return order
    
    def create(self, order_data: dict, items: List[dict]) -> Order:
        """
        Create new order together with its items
        
        Args:
            order_data: Dictionary with order fields
            items: List of dictionaries with order item fields
        
        Returns:
            Created order
        """
        order = Order(**order_data)
        order.items = [OrderItem(**item) for item in items]
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order
    
    def count_pending_since(self, user_id: str, since: datetime) -> int:
        """Count a user's pending orders created after `since`"""
        return self.db.query(func.count(Order.id)).filter(
            Order.user_id == user_id,
            Order.status == "pending",
            Order.created_at > since
        ).scalar()
    
    def get_stale_pending(self, cutoff: datetime) -> List[Order]:
        """Get pending orders created before `cutoff`, oldest first"""
        return self.db.query(Order).filter(
            Order.status == "pending",
            Order.created_at < cutoff
        ).order_by(Order.created_at).all()
    
    def transition(self, order_id: int, from_status: str, to_status: str, **values) -> bool:
        """
        Move an order from `from_status` to `to_status` with a conditional update
        
        Returns:
            True if this call performed the transition, False if the order was
            no longer in `from_status` (another handler got there first)
        
        Raises:
            ValueError: If the transition is not part of the order state machine
        """
        if not can_transition(from_status, to_status):
            raise ValueError(f"Illegal order transition {from_status} -> {to_status}")
        
        table = Order.__table__
        stmt = (
            update(table)
            .where(table.c.id == order_id, table.c.status == from_status)
            .values(status=to_status, **values)
            .returning(table.c.id)
        )
        row = self.db.execute(stmt).first()
        self.db.commit()
        return row is not None
    
    def set_payment_status(self, order_id: int, payment_status: str, expected_status: str) -> bool:
        """Update payment_status while the order is still in `expected_status`"""
        table = Order.__table__
        stmt = (
            update(table)
            .where(table.c.id == order_id, table.c.status == expected_status)
            .values(payment_status=payment_status)
            .returning(table.c.id)
        )
        row = self.db.execute(stmt).first()
        self.db.commit()
        return row is not None


class CartRepository:
    """Repository for the user's cart"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def get_items(self, user_id: str) -> List[CartItem]:
        return self.db.query(CartItem).filter(
            CartItem.user_id == user_id
        ).order_by(CartItem.id).all()
    
    def clear(self, user_id: str) -> int:
        """Delete all cart rows for a user; returns number of rows removed"""
        deleted = self.db.query(CartItem).filter(
            CartItem.user_id == user_id
        ).delete(synchronize_session=False)
        self.db.commit()
        return deleted
