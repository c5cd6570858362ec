"""
Return Service - return requests within the return window
"""
import logging
from collections import defaultdict
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from order_saga.config import settings
from order_saga.exceptions import AuthorizationError, NotFoundError, ValidationError
from order_saga.repositories.order_repository import OrderRepository
from order_saga.repositories.return_repository import ReturnRepository
from order_saga.schemas.returns import ReturnCreate, ReturnResponse
from order_saga.services.notifier import Notifier
from order_saga.timeutils import utcnow, as_utc

logger = logging.getLogger(__name__)


class ReturnService:
    """Service layer for return requests"""
    
    def __init__(self, db: Session, notifier: Optional[Notifier] = None):
        self.orders = OrderRepository(db)
        self.repository = ReturnRepository(db)
        self.notifier = notifier or Notifier()
    
    def create_return(self, request: ReturnCreate, user_id: Optional[str] = None) -> ReturnResponse:
        """
        Create a pending return for items of an order
        
        Guests (no user id) must supply the email the order was placed with.
        
        Raises:
            NotFoundError, AuthorizationError, ValidationError
        """
        order = self.orders.get_by_id(request.order_id)
        if not order:
            raise NotFoundError("Order not found")
        
        if user_id is not None:
            if order.user_id != user_id:
                raise AuthorizationError("Unauthorized access to order")
        elif not order.customer_email or order.customer_email.lower() != request.email.lower():
            raise AuthorizationError("Unauthorized access to order")
        
        age = utcnow() - as_utc(order.created_at)
        if age > timedelta(days=settings.RETURN_WINDOW_DAYS):
            raise ValidationError(f"Return window has expired ({settings.RETURN_WINDOW_DAYS} days)")
        
        ordered = defaultdict(int)
        for item in order.items:
            ordered[(item.product_id, item.variant_id)] += item.quantity
        requested = defaultdict(int)
        for item in request.items:
            requested[(item.product_id, item.variant_id)] += item.quantity
        for key, quantity in requested.items():
            if quantity > ordered.get(key, 0):
                raise ValidationError(f"Return quantity for product {key[0]} exceeds the ordered quantity")
        
        return_request = self.repository.create({
            "order_id": order.id,
            "user_id": user_id,
            "items": [item.model_dump() for item in request.items],
            "return_reason": request.reason,
            "return_type": request.return_type,
            "status": "pending",
        })
        logger.info("Return %s created for order %s", return_request.id, order.id)
        
        self.notifier.send_return_received({
            "return_id": return_request.id,
            "order_id": order.id,
            "order_number": order.order_number,
            "customer_email": request.email,
            "return_type": request.return_type,
            "reason": request.reason,
        })
        return ReturnResponse(return_id=return_request.id)
