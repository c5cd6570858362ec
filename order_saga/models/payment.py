"""
SQLAlchemy payment, refund and invoice models
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, CheckConstraint
from sqlalchemy.sql import func

from order_saga.database import Base
from order_saga.timeutils import utcnow


class PaymentTransaction(Base):
    """One row per order per gateway order id"""
    
    __tablename__ = "payment_transactions"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, nullable=False, index=True)  # weak reference to orders.id
    razorpay_order_id = Column(String(64), nullable=False, index=True)
    razorpay_payment_id = Column(String(64), nullable=True, index=True)
    razorpay_signature = Column(String(128), nullable=True)
    status = Column(String(20), nullable=False, default="created")
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    payment_method = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    
    __table_args__ = (
        CheckConstraint("status IN ('created', 'success', 'failed', 'refunded')", name="check_transaction_status_valid"),
    )
    
    def __repr__(self):
        return f"<PaymentTransaction(id={self.id}, order_id={self.order_id}, razorpay_order_id='{self.razorpay_order_id}', status='{self.status}')>"


class Refund(Base):
    """Local record of a gateway refund"""
    
    __tablename__ = "refunds"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_transaction_id = Column(Integer, nullable=True, index=True)
    order_id = Column(Integer, nullable=True, index=True)
    razorpay_payment_id = Column(String(64), nullable=False)
    gateway_refund_id = Column(String(64), nullable=False, unique=True)
    amount = Column(Float, nullable=False)
    reason = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="processed")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    def __repr__(self):
        return f"<Refund(id={self.id}, gateway_refund_id='{self.gateway_refund_id}', amount={self.amount})>"


class Invoice(Base):
    """Invoice issued once per order"""
    
    __tablename__ = "invoices"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, nullable=False, unique=True)
    invoice_number = Column(String(32), nullable=False, unique=True)
    total_amount = Column(Float, nullable=False, default=0)
    tax_amount = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="issued")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    def __repr__(self):
        return f"<Invoice(order_id={self.order_id}, invoice_number='{self.invoice_number}')>"


class InvoiceSequence(Base):
    """Monotonic sequence backing generate_invoice_number()"""
    
    __tablename__ = "invoice_sequence"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    issued_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
