"""
SQLAlchemy role assignment model
"""
from sqlalchemy import Column, Integer, String, UniqueConstraint

from order_saga.database import Base


class UserRole(Base):
    __tablename__ = "user_roles"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    role = Column(String(20), nullable=False)
    
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_role"),
    )
