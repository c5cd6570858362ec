"""
Audit Log Repository - Data Access Layer
"""
from typing import Dict, Optional

from sqlalchemy.orm import Session

from order_saga.models.audit import AuditLog


class AuditRepository:
    """Repository for audit log entries"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def record(self, action: str, entity_type: str, entity_id: int, actor_id: Optional[str] = None, details: Optional[Dict] = None) -> AuditLog:
        entry = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            details=details
        )
        self.db.add(entry)
        self.db.commit()
        return entry
