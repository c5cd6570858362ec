"""
Inventory Adjuster - the only code path that mutates stock levels
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from order_saga.exceptions import OversellError, ValidationError
from order_saga.models.inventory import InventoryRecord
from order_saga.repositories.inventory_repository import InventoryRepository

logger = logging.getLogger(__name__)


@dataclass
class AdjustmentResult:
    """Outcome of an adjustment; `applied` items were written, `failed` were not"""
    applied: List[dict] = field(default_factory=list)
    failed: List[dict] = field(default_factory=list)
    
    @property
    def ok(self) -> bool:
        return not self.failed


def _stock_line(item) -> dict:
    """Normalize an item (dict or object) to product_id / variant_id / quantity"""
    if isinstance(item, dict):
        line = {
            "product_id": item.get("product_id"),
            "variant_id": item.get("variant_id"),
            "quantity": item.get("quantity"),
        }
    else:
        line = {
            "product_id": item.product_id,
            "variant_id": getattr(item, "variant_id", None),
            "quantity": item.quantity,
        }
    if not line["product_id"] or not isinstance(line["quantity"], int) or line["quantity"] <= 0:
        raise ValidationError(f"Invalid inventory item: {line}")
    return line


class InventoryAdjuster:
    """Reserve and release stock for order items"""
    
    def __init__(self, db: Session):
        self.repository = InventoryRepository(db)
    
    def adjust(self, items: Iterable, sign: int, reason: str, reference_id: Optional[str] = None) -> AdjustmentResult:
        """
        Apply `sign * quantity` to every item, one conditional update per item
        
        Args:
            items: Items with product_id, variant_id (optional) and quantity
            sign: -1 to reserve, +1 to release
            reason: Audit reason stored on each stock movement
            reference_id: Order number or id stored on each stock movement
        
        Returns:
            AdjustmentResult listing written and skipped items
        
        Raises:
            OversellError: On reservation, when an item would go below zero.
                Items adjusted before the failing one stay adjusted; they are
                listed on the exception as `applied`.
        """
        if sign not in (-1, 1):
            raise ValueError("sign must be +1 or -1")
        
        lines = [_stock_line(item) for item in items]
        result = AdjustmentResult()
        
        for line in lines:
            change = sign * line["quantity"]
            if sign < 0:
                try:
                    new_quantity = self.repository.adjust_stock(
                        line["product_id"], line["variant_id"], change, reason, reference_id
                    )
                except SQLAlchemyError as e:
                    e.applied = list(result.applied)
                    raise
                if new_quantity is None:
                    logger.warning(
                        "Oversell rejected for product %s variant %s (requested %s, ref %s); already reserved: %s",
                        line["product_id"], line["variant_id"], line["quantity"], reference_id, result.applied
                    )
                    error = OversellError(line["product_id"], line["variant_id"], line["quantity"])
                    error.applied = list(result.applied)
                    raise error
                result.applied.append(line)
                continue
            
            # Releasing stock cannot oversell; a failure here is logged and skipped
            try:
                new_quantity = self.repository.adjust_stock(
                    line["product_id"], line["variant_id"], change, reason, reference_id
                )
            except SQLAlchemyError as e:
                logger.error(
                    "Failed to release %s of product %s variant %s (ref %s): %s",
                    line["quantity"], line["product_id"], line["variant_id"], reference_id, e
                )
                result.failed.append(line)
                continue
            
            if new_quantity is None:
                logger.error(
                    "No inventory record for product %s variant %s while releasing %s (ref %s)",
                    line["product_id"], line["variant_id"], line["quantity"], reference_id
                )
                result.failed.append(line)
            else:
                result.applied.append(line)
        
        return result
    
    def reserve(self, items: Iterable, reference_id: Optional[str] = None) -> AdjustmentResult:
        """
        Reserve stock for every item or for none of them
        
        When any item would oversell, the items already decremented are
        released again before OversellError propagates.
        """
        try:
            return self.adjust(items, -1, "order_reserved", reference_id)
        except (OversellError, SQLAlchemyError) as e:
            applied = getattr(e, "applied", [])
            if applied:
                rollback = self.adjust(applied, 1, "reservation_rollback", reference_id)
                if not rollback.ok:
                    logger.error(
                        "Reservation rollback incomplete for %s; items still held: %s",
                        reference_id, rollback.failed
                    )
            raise
    
    def release(self, items: Iterable, reference_id: Optional[str] = None, reason: str = "order_cancelled") -> AdjustmentResult:
        """Return stock for every item; never raises for individual items"""
        result = self.adjust(items, 1, reason, reference_id)
        if result.failed:
            logger.error("Inventory release incomplete for %s; not returned: %s", reference_id, result.failed)
        else:
            logger.info("Released inventory for %s: %s", reference_id, result.applied)
        return result
    
    def low_stock_report(self) -> List[InventoryRecord]:
        return self.repository.get_low_stock()
