"""
SQLAlchemy Return model
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, CheckConstraint

from order_saga.database import Base
from order_saga.timeutils import utcnow


class Return(Base):
    """Return request; reviewed by a separate downstream workflow"""
    
    __tablename__ = "returns"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, nullable=False, index=True)  # weak reference to orders.id
    user_id = Column(String(64), nullable=True)  # null for guest checkout
    items = Column(JSON, nullable=False)
    return_reason = Column(Text, nullable=False)
    return_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'approved', 'rejected', 'completed')", name="check_return_status_valid"),
    )
    
    def __repr__(self):
        return f"<Return(id={self.id}, order_id={self.order_id}, status='{self.status}')>"
