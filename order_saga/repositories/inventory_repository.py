"""
Inventory Repository - Data Access Layer
"""
from typing import List, Optional
from sqlalchemy import update
from sqlalchemy.orm import Session

from order_saga.models.inventory import InventoryRecord, StockMovement, Product, ProductVariant


class InventoryRepository:
    """Repository for stock levels, stock movements and catalog prices"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def _match(self, product_id: int, variant_id: Optional[int]):
        table = InventoryRecord.__table__
        if variant_id is None:
            return [table.c.product_id == product_id, table.c.variant_id.is_(None)]
        return [table.c.product_id == product_id, table.c.variant_id == variant_id]
    
    def get(self, product_id: int, variant_id: Optional[int] = None) -> Optional[InventoryRecord]:
        query = self.db.query(InventoryRecord).filter(InventoryRecord.product_id == product_id)
        if variant_id is None:
            query = query.filter(InventoryRecord.variant_id.is_(None))
        else:
            query = query.filter(InventoryRecord.variant_id == variant_id)
        return query.first()
    
    def adjust_stock(
        self,
        product_id: int,
        variant_id: Optional[int],
        quantity_change: int,
        reason: str,
        reference_id: Optional[str] = None
    ) -> Optional[int]:
        """
        Atomically apply `quantity_change` and record the movement
        
        The update only matches while the resulting stock stays non-negative,
        so concurrent decrements can never oversell.
        
        Returns:
            New stock quantity, or None if no row matched (missing record or
            insufficient stock)
        """
        table = InventoryRecord.__table__
        stmt = (
            update(table)
            .where(*self._match(product_id, variant_id))
            .where(table.c.stock_quantity + quantity_change >= 0)
            .values(stock_quantity=table.c.stock_quantity + quantity_change)
            .returning(table.c.stock_quantity)
        )
        try:
            row = self.db.execute(stmt).first()
            if row is None:
                self.db.rollback()
                return None
            
            new_quantity = row[0]
            self.db.add(StockMovement(
                product_id=product_id,
                variant_id=variant_id,
                quantity_change=quantity_change,
                previous_quantity=new_quantity - quantity_change,
                new_quantity=new_quantity,
                reason=reason,
                reference_id=reference_id
            ))
            self.db.commit()
            return new_quantity
        except Exception:
            self.db.rollback()
            raise
    
    def get_low_stock(self) -> List[InventoryRecord]:
        """Records at or below their low stock threshold"""
        return self.db.query(InventoryRecord).filter(
            InventoryRecord.stock_quantity <= InventoryRecord.low_stock_threshold
        ).order_by(InventoryRecord.stock_quantity, InventoryRecord.product_id).all()
    
    def get_product(self, product_id: int) -> Optional[Product]:
        return self.db.query(Product).filter(Product.id == product_id).first()
    
    def get_variant(self, variant_id: int) -> Optional[ProductVariant]:
        return self.db.query(ProductVariant).filter(ProductVariant.id == variant_id).first()
