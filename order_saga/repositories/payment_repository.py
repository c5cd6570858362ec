"""
Payment Repository - Data Access Layer
"""
from typing import List, Optional
from sqlalchemy import update
from sqlalchemy.orm import Session

from order_saga.models.payment import PaymentTransaction, Refund, Invoice, InvoiceSequence
from order_saga.timeutils import utcnow


class PaymentRepository:
    """Repository for payment transactions and refund records"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def create_transaction(self, transaction_data: dict) -> PaymentTransaction:
        transaction = PaymentTransaction(**transaction_data)
        self.db.add(transaction)
        self.db.commit()
        self.db.refresh(transaction)
        return transaction
    
    def get_by_order(self, order_id: int) -> List[PaymentTransaction]:
        return self.db.query(PaymentTransaction).filter(
            PaymentTransaction.order_id == order_id
        ).order_by(PaymentTransaction.id).all()
    
    def get_by_gateway_order_id(self, razorpay_order_id: str) -> Optional[PaymentTransaction]:
        return self.db.query(PaymentTransaction).filter(
            PaymentTransaction.razorpay_order_id == razorpay_order_id
        ).first()
    
    def get_by_payment_id(self, razorpay_payment_id: str) -> Optional[PaymentTransaction]:
        return self.db.query(PaymentTransaction).filter(
            PaymentTransaction.razorpay_payment_id == razorpay_payment_id
        ).first()
    
    def _update(self, *criteria, **values) -> int:
        table = PaymentTransaction.__table__
        stmt = update(table).where(*criteria).values(**values).returning(table.c.id)
        rows = self.db.execute(stmt).fetchall()
        self.db.commit()
        return len(rows)
    
    def mark_captured(
        self,
        order_id: int,
        razorpay_order_id: str,
        razorpay_payment_id: str,
        razorpay_signature: Optional[str] = None,
        payment_method: Optional[str] = None
    ) -> int:
        """Record a captured payment; refunded transactions are left alone"""
        table = PaymentTransaction.__table__
        values = {
            "razorpay_payment_id": razorpay_payment_id,
            "status": "success",
        }
        if razorpay_signature is not None:
            values["razorpay_signature"] = razorpay_signature
        if payment_method is not None:
            values["payment_method"] = payment_method
        return self._update(
            table.c.order_id == order_id,
            table.c.razorpay_order_id == razorpay_order_id,
            table.c.status != "refunded",
            **values
        )
    
    def force_success(self, order_id: int, razorpay_payment_id: str) -> int:
        """Mark every open transaction of an order successful (admin override)"""
        table = PaymentTransaction.__table__
        return self._update(
            table.c.order_id == order_id,
            table.c.status.in_(("created", "failed")),
            razorpay_payment_id=razorpay_payment_id,
            status="success"
        )
    
    def mark_failed_for_order(self, order_id: int) -> int:
        """Fail transactions that never captured money"""
        table = PaymentTransaction.__table__
        return self._update(
            table.c.order_id == order_id,
            table.c.status == "created",
            status="failed"
        )
    
    def mark_failed_by_gateway_order(self, razorpay_order_id: str) -> int:
        table = PaymentTransaction.__table__
        return self._update(
            table.c.razorpay_order_id == razorpay_order_id,
            table.c.status == "created",
            status="failed"
        )
    
    def mark_refunded(self, razorpay_payment_id: str) -> int:
        table = PaymentTransaction.__table__
        return self._update(
            table.c.razorpay_payment_id == razorpay_payment_id,
            table.c.status == "success",
            status="refunded"
        )
    
    def sync_from_gateway(self, razorpay_payment_id: str, status: str, payment_method: Optional[str], amount: float) -> int:
        table = PaymentTransaction.__table__
        return self._update(
            table.c.razorpay_payment_id == razorpay_payment_id,
            status=status,
            payment_method=payment_method,
            amount=amount
        )
    
    def create_refund(self, refund_data: dict) -> Refund:
        refund = Refund(**refund_data)
        self.db.add(refund)
        self.db.commit()
        self.db.refresh(refund)
        return refund
    
    def refunded_total(self, razorpay_payment_id: str) -> float:
        refunds = self.db.query(Refund).filter(
            Refund.razorpay_payment_id == razorpay_payment_id
        ).all()
        return sum(r.amount for r in refunds)


class InvoiceRepository:
    """Repository for invoices and the invoice number sequence"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def get_by_order(self, order_id: int) -> Optional[Invoice]:
        return self.db.query(Invoice).filter(Invoice.order_id == order_id).first()
    
    def generate_invoice_number(self) -> str:
        """Allocate the next invoice number, e.g. INV-2026-000042"""
        entry = InvoiceSequence()
        self.db.add(entry)
        self.db.commit()
        return f"INV-{utcnow().year}-{entry.id:06d}"
    
    def create(self, invoice_data: dict) -> Invoice:
        invoice = Invoice(**invoice_data)
        self.db.add(invoice)
        self.db.commit()
        self.db.refresh(invoice)
        return invoice
