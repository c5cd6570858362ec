"""
Role Repository - Data Access Layer
"""
from sqlalchemy.orm import Session

from order_saga.models.user import UserRole


class RoleRepository:
    """Repository for role assignments"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def has_role(self, user_id: str, role: str) -> bool:
        return self.db.query(UserRole).filter(
            UserRole.user_id == user_id,
            UserRole.role == role
        ).first() is not None
