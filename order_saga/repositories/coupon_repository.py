"""
Coupon Repository - Data Access Layer
"""
from typing import Optional
from sqlalchemy import update, or_, func
from sqlalchemy.orm import Session

from order_saga.models.coupon import Coupon, OrderCouponApplication
from order_saga.timeutils import utcnow


class CouponRepository:
    """Repository for coupons and per-order coupon applications"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def get_by_code(self, code: str) -> Optional[Coupon]:
        return self.db.query(Coupon).filter(Coupon.code == code).first()
    
    def increment_usage(self, code: str) -> bool:
        """Take one use of the coupon if the usage limit still allows it"""
        table = Coupon.__table__
        stmt = (
            update(table)
            .where(
                table.c.code == code,
                or_(table.c.usage_limit.is_(None), table.c.used_count < table.c.usage_limit)
            )
            .values(used_count=table.c.used_count + 1)
            .returning(table.c.id)
        )
        row = self.db.execute(stmt).first()
        self.db.commit()
        return row is not None
    
    def decrement_usage(self, code: str) -> bool:
        table = Coupon.__table__
        stmt = (
            update(table)
            .where(table.c.code == code, table.c.used_count > 0)
            .values(used_count=table.c.used_count - 1)
            .returning(table.c.id)
        )
        row = self.db.execute(stmt).first()
        self.db.commit()
        return row is not None
    
    def count_active_applications(self, code: str, user_id: str) -> int:
        return self.db.query(func.count(OrderCouponApplication.id)).filter(
            OrderCouponApplication.coupon_code == code,
            OrderCouponApplication.user_id == user_id,
            OrderCouponApplication.restored.is_(False)
        ).scalar()
    
    def get_application(self, order_id: int) -> Optional[OrderCouponApplication]:
        return self.db.query(OrderCouponApplication).filter(
            OrderCouponApplication.order_id == order_id
        ).first()
    
    def create_application(self, application_data: dict) -> OrderCouponApplication:
        application = OrderCouponApplication(**application_data)
        self.db.add(application)
        self.db.commit()
        self.db.refresh(application)
        return application
    
    def mark_restored(self, order_id: int) -> bool:
        """Flip `restored` once; False if it was already restored or never applied"""
        table = OrderCouponApplication.__table__
        stmt = (
            update(table)
            .where(table.c.order_id == order_id, table.c.restored.is_(False))
            .values(restored=True, restored_at=utcnow())
            .returning(table.c.id)
        )
        row = self.db.execute(stmt).first()
        self.db.commit()
        return row is not None
