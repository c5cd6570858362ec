"""
Return Repository - Data Access Layer
"""
from sqlalchemy.orm import Session

from order_saga.models.returns import Return


class ReturnRepository:
    """Repository for return requests"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def create(self, return_data: dict) -> Return:
        return_request = Return(**return_data)
        self.db.add(return_request)
        self.db.commit()
        self.db.refresh(return_request)
        return return_request
