"""
Inventory report endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from order_saga.api.dependencies import get_notifier, verify_cron_secret
from order_saga.database import get_db
from order_saga.schemas.inventory import LowStockItem, LowStockResponse
from order_saga.services.inventory_adjuster import InventoryAdjuster
from order_saga.services.notifier import Notifier

router = APIRouter(tags=["inventory"])


@router.post(
    "/check-low-stock",
    response_model=LowStockResponse,
    dependencies=[Depends(verify_cron_secret)],
    summary="Report low stock items"
)
def check_low_stock(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    """
    Scheduler entry point. Lists items at or below their low stock threshold
    and alerts the admin when there are any.
    """
    items = [LowStockItem.model_validate(record) for record in InventoryAdjuster(db).low_stock_report()]
    if items:
        notifier.send_low_stock_alert([item.model_dump() for item in items])
    return LowStockResponse(count=len(items), items=items, alert_sent=bool(items))
