"""
Stale order sweep: timeout selection and per-order failure isolation
"""
from datetime import timedelta

from order_saga.config import settings
from order_saga.models import Coupon, Order
from order_saga.services.notifier import Notifier
from order_saga.services.order_lifecycle import OrderLifecycleService
from order_saga.services.stale_sweep import StaleOrderSweeper
from order_saga.timeutils import utcnow


def test_sweep_cancels_only_old_orders_and_isolates_failures(client, seed, publisher, monkeypatch, caplog):
    product_id = seed.product(stock=20)
    first = seed.order("user-1", [(product_id, 2)], age=timedelta(hours=7))
    second = seed.order("user-2", [(product_id, 2)], age=timedelta(hours=6))
    third = seed.order("user-3", [(product_id, 2)], age=timedelta(hours=5))
    young = seed.order("user-4", [(product_id, 2)], age=timedelta(hours=1))
    assert seed.stock(product_id) == 12

    expire_order = OrderLifecycleService.expire_order

    def flaky_expire(self, order_id):
        if order_id == second:
            raise RuntimeError("lock timeout")
        return expire_order(self, order_id)

    monkeypatch.setattr(OrderLifecycleService, "expire_order", flaky_expire)

    response = client.post("/cleanup-stale-orders")

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 3
    assert body["results"] == [
        {"id": first, "status": "cancelled", "error": None},
        {"id": second, "status": "error", "error": "Failed to cancel order"},
        {"id": third, "status": "cancelled", "error": None},
    ]
    assert seed.get(Order, first).status == "cancelled"
    assert seed.get(Order, second).status == "pending"
    assert seed.get(Order, third).status == "cancelled"
    assert seed.get(Order, young).status == "pending"
    assert seed.stock(product_id) == 16
    assert seed.transactions(first)[0].status == "failed"
    assert publisher.types().count("OrderCancelled") == 2
    assert "lock timeout" in caplog.text


def test_sweep_with_nothing_stale(client, seed):
    product_id = seed.product(stock=5)
    seed.order("user-1", [(product_id, 1)], age=timedelta(hours=3))

    response = client.post("/cleanup-stale-orders")

    assert response.json() == {"success": True, "count": 0, "results": []}


def test_paid_orders_are_never_swept(session_factory, seed, publisher):
    product_id = seed.product(stock=5)
    paid = seed.order("user-1", [(product_id, 1)], status="paid", transaction_status="success", age=timedelta(hours=10))

    sweeper = StaleOrderSweeper(session_factory, notifier=Notifier(publisher), timeout_hours=4, max_workers=2)

    assert sweeper.sweep() == []
    assert seed.get(Order, paid).status == "paid"


def test_expire_skips_order_that_left_pending(db, seed):
    product_id = seed.product(stock=5)
    paid = seed.paid_order("user-1", [(product_id, 1)])

    assert OrderLifecycleService(db).expire_order(paid) == "skipped"
    assert seed.stock(product_id) == 4


def test_cron_secret_is_enforced_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")

    assert client.post("/cleanup-stale-orders").status_code == 403
    assert client.post("/cleanup-stale-orders", headers={"X-Cron-Secret": "wrong"}).status_code == 403
    assert client.post("/cleanup-stale-orders", headers={"X-Cron-Secret": "s3cret"}).status_code == 200


def test_sweep_does_not_publish_before_returning(session_factory, seed, publisher):
    product_id = seed.product(stock=20)
    for user in ("user-1", "user-2", "user-3", "user-4"):
        seed.order(user, [(product_id, 1)], age=timedelta(hours=8))
    deferred = []

    def schedule(func, *args):
        deferred.append((func, args))

    sweeper = StaleOrderSweeper(session_factory, notifier=Notifier(publisher, schedule=schedule), max_workers=1)

    results = sweeper.sweep()

    assert [r.status for r in results] == ["cancelled"] * 4
    assert publisher.events == []
    for func, args in deferred:
        func(*args)
    assert publisher.types() == ["OrderCancelled"] * 4


def test_sweep_restores_checkout_coupon_once(client, seed, db, shipping_address):
    product_id = seed.product(price=300.0, stock=5)
    seed.coupon("SAVE10", usage_limit=10)
    seed.cart("user-1", product_id, quantity=1)
    created = client.post(
        "/create-order",
        json={"shippingAddress": shipping_address, "couponCode": "SAVE10"},
        headers={"X-User-Id": "user-1"}
    ).json()
    db.query(Order).filter(Order.id == created["order_id"]).update(
        {Order.created_at: utcnow() - timedelta(hours=10)}
    )
    db.commit()

    def used_count():
        db.expire_all()
        return db.query(Coupon).filter(Coupon.code == "SAVE10").one().used_count

    assert used_count() == 1

    first = client.post("/cleanup-stale-orders").json()
    second = client.post("/cleanup-stale-orders").json()

    assert first["results"] == [{"id": created["order_id"], "status": "cancelled", "error": None}]
    assert second["count"] == 0
    assert OrderLifecycleService(db).expire_order(created["order_id"]) == "skipped"
    assert used_count() == 0
    assert seed.stock(product_id) == 5
