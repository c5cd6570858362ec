"""
Role checks shared by privileged handlers
"""
from sqlalchemy.orm import Session

from order_saga.exceptions import AuthorizationError
from order_saga.repositories.user_repository import RoleRepository


def require_admin(db: Session, user_id: str) -> None:
    """Raise AuthorizationError unless `user_id` holds the admin role"""
    if not user_id or not RoleRepository(db).has_role(user_id, "admin"):
        raise AuthorizationError("Unauthorized: Admin access required")
