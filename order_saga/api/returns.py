"""
Return endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from order_saga.api.dependencies import get_optional_user_id, get_notifier
from order_saga.database import get_db
from order_saga.schemas.returns import ReturnCreate, ReturnResponse
from order_saga.services.notifier import Notifier
from order_saga.services.return_service import ReturnService

router = APIRouter(tags=["returns"])


def get_return_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
) -> ReturnService:
    """Dependency to get ReturnService instance"""
    return ReturnService(db, notifier=notifier)


@router.post("/create-return", response_model=ReturnResponse, status_code=status.HTTP_201_CREATED, summary="Request a return")
def create_return(
    request: ReturnCreate,
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: ReturnService = Depends(get_return_service)
):
    """
    Create a return request within the return window
    
    - **orderId**: Order ID
    - **items**: Items to return (product_id, variant_id, quantity)
    - **reason**: Return reason
    - **type**: Return type
    - **email**: Contact email
    """
    return service.create_return(request, user_id)
