"""
SQLAlchemy audit log model
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON

from order_saga.database import Base
from order_saga.timeutils import utcnow


class AuditLog(Base):
    """Administrative actions, kept for reconciliation"""
    
    __tablename__ = "audit_logs"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String(50), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=False)
    actor_id = Column(String(64), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', {self.entity_type}={self.entity_id})>"
