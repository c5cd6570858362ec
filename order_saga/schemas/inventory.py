"""
Pydantic schemas for inventory reports
"""
from pydantic import BaseModel, ConfigDict
from typing import Optional, List


class LowStockItem(BaseModel):
    product_id: int
    variant_id: Optional[int]
    stock_quantity: int
    low_stock_threshold: int
    reorder_quantity: Optional[int]
    
    model_config = ConfigDict(from_attributes=True)


class LowStockResponse(BaseModel):
    success: bool = True
    count: int
    items: List[LowStockItem]
    alert_sent: bool
