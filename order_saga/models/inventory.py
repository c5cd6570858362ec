"""
SQLAlchemy inventory and catalog models
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, CheckConstraint, UniqueConstraint

from order_saga.database import Base
from order_saga.timeutils import utcnow


class InventoryRecord(Base):
    """Stock level per product and, where applicable, per variant"""
    
    __tablename__ = "inventory_records"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, nullable=False, index=True)
    variant_id = Column(Integer, nullable=True, index=True)
    stock_quantity = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=5)
    reorder_quantity = Column(Integer, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    
    # Constraints
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="check_stock_non_negative"),
        UniqueConstraint("product_id", "variant_id", name="uq_inventory_product_variant"),
    )
    
    def __repr__(self):
        return f"<InventoryRecord(product_id={self.product_id}, variant_id={self.variant_id}, stock_quantity={self.stock_quantity})>"


class StockMovement(Base):
    """Audit trail of every inventory adjustment"""
    
    __tablename__ = "stock_movements"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, nullable=False, index=True)
    variant_id = Column(Integer, nullable=True)
    quantity_change = Column(Integer, nullable=False)
    previous_quantity = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)
    reason = Column(String(100), nullable=False)
    reference_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    def __repr__(self):
        return f"<StockMovement(product_id={self.product_id}, change={self.quantity_change}, reason='{self.reason}')>"


class Product(Base):
    """Catalog product; read-only here, used for server-side pricing"""
    
    __tablename__ = "products"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True, index=True)
    base_price = Column(Float, nullable=False)
    discount_price = Column(Float, nullable=True)
    
    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', base_price={self.base_price})>"


class ProductVariant(Base):
    """Catalog variant with optional price override"""
    
    __tablename__ = "product_variants"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, nullable=False, index=True)
    name = Column(String(100), nullable=True)
    absolute_price = Column(Float, nullable=True)
    price_adjustment = Column(Float, nullable=True)
