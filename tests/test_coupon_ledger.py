"""
Coupon Ledger: eligibility, usage limits and idempotent restoration
"""
from datetime import timedelta

import pytest

from order_saga.exceptions import CouponExpired, CouponLimitReached, CouponNotEligible, CouponNotFound
from order_saga.models import Coupon
from order_saga.services.coupon_ledger import CouponLedger
from order_saga.timeutils import utcnow


def used_count(db, code):
    db.expire_all()
    return db.query(Coupon).filter(Coupon.code == code).one().used_count


def test_single_use_coupon_can_be_restored_and_reused(db, seed):
    seed.coupon("SAVE10", usage_limit=1)
    ledger = CouponLedger(db)

    ledger.apply("SAVE10", "user-1", order_id=1, subtotal=200)
    with pytest.raises(CouponLimitReached):
        ledger.apply("SAVE10", "user-2", order_id=2, subtotal=200)
    assert used_count(db, "SAVE10") == 1

    assert ledger.restore(1) is True
    assert used_count(db, "SAVE10") == 0

    ledger.apply("SAVE10", "user-2", order_id=2, subtotal=200)
    assert used_count(db, "SAVE10") == 1


def test_restore_is_idempotent(db, seed):
    seed.coupon("SAVE10", usage_limit=5)
    ledger = CouponLedger(db)
    ledger.apply("SAVE10", "user-1", order_id=1, subtotal=200)

    assert ledger.restore(1) is True
    assert ledger.restore(1) is False
    assert used_count(db, "SAVE10") == 0


def test_restore_without_application_is_a_no_op(db):
    assert CouponLedger(db).restore(42) is False


def test_apply_same_order_twice_takes_one_use(db, seed):
    seed.coupon("SAVE10", usage_limit=5)
    ledger = CouponLedger(db)

    first = ledger.apply("SAVE10", "user-1", order_id=1, subtotal=200)
    second = ledger.apply("SAVE10", "user-1", order_id=1, subtotal=200)

    assert first.id == second.id
    assert used_count(db, "SAVE10") == 1


def test_per_user_limit_counts_unrestored_applications(db, seed):
    seed.coupon("ONCE", per_user_limit=1)
    ledger = CouponLedger(db)
    ledger.apply("ONCE", "user-1", order_id=1, subtotal=100)

    with pytest.raises(CouponLimitReached):
        ledger.evaluate("ONCE", "user-1", subtotal=100)
    ledger.evaluate("ONCE", "user-2", subtotal=100)

    ledger.restore(1)
    ledger.evaluate("ONCE", "user-1", subtotal=100)


def test_percentage_discount_is_capped(db, seed):
    seed.coupon("BIG50", discount_value=50, max_discount_amount=100)

    quote = CouponLedger(db).evaluate("BIG50", "user-1", subtotal=1000)

    assert quote.discount_amount == 100


def test_fixed_discount_never_exceeds_subtotal(db, seed):
    seed.coupon("FLAT500", discount_type="fixed", discount_value=500)

    quote = CouponLedger(db).evaluate("FLAT500", "user-1", subtotal=300)

    assert quote.discount_amount == 300


def test_free_shipping_coupon(db, seed):
    seed.coupon("SHIPFREE", discount_type="free_shipping", discount_value=0)

    quote = CouponLedger(db).evaluate("SHIPFREE", "user-1", subtotal=100)

    assert quote.free_shipping is True
    assert quote.discount_amount == 0


def test_unknown_and_inactive_coupons(db, seed):
    seed.coupon("OFF", is_active=False)
    ledger = CouponLedger(db)

    with pytest.raises(CouponNotFound):
        ledger.evaluate("NOPE", "user-1", subtotal=100)
    with pytest.raises(CouponNotFound):
        ledger.evaluate("OFF", "user-1", subtotal=100)


def test_expired_coupon(db, seed):
    seed.coupon("OLD", valid_until=utcnow() - timedelta(days=1))

    with pytest.raises(CouponExpired):
        CouponLedger(db).evaluate("OLD", "user-1", subtotal=100)


def test_eligibility_rules(db, seed):
    seed.coupon("VIP", allowed_emails=["vip@example.com"])
    seed.coupon("SHOES", restricted_categories=["shoes"])
    seed.coupon("MIN500", min_order_value=500)
    ledger = CouponLedger(db)
    items = [{"product_id": 1, "category": "shirts"}]

    with pytest.raises(CouponNotEligible):
        ledger.evaluate("VIP", "user-1", email="other@example.com", subtotal=100)
    ledger.evaluate("VIP", "user-1", email="VIP@example.com", subtotal=100)

    with pytest.raises(CouponNotEligible):
        ledger.evaluate("SHOES", "user-1", subtotal=100, items=items)

    with pytest.raises(CouponNotEligible):
        ledger.evaluate("MIN500", "user-1", subtotal=499)
