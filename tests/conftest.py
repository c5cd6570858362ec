"""
Shared fixtures: a SQLite database per test, a mocked Razorpay API and a
recording event publisher wired into the FastAPI app through dependency
overrides.
"""
import json
import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite:///./order_saga_test.db"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test_key_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test_webhook_secret"
os.environ["CRON_SECRET"] = ""

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from order_saga.api.dependencies import get_event_publisher, get_gateway
from order_saga.database import build_engine, get_db, get_session_factory, init_db
from order_saga.main import app
from order_saga.models import (
    CartItem,
    Coupon,
    InventoryRecord,
    Order,
    OrderItem,
    PaymentTransaction,
    Product,
    UserRole,
)
from order_saga.repositories.inventory_repository import InventoryRepository
from order_saga.services.inventory_adjuster import InventoryAdjuster
from order_saga.services.payment_gateway import RazorpayGateway, compute_signature
from order_saga.timeutils import utcnow

KEY_SECRET = "test_key_secret"
WEBHOOK_SECRET = "test_webhook_secret"


class RecordingPublisher:
    """Stands in for EventPublisher; keeps every published event"""

    def __init__(self):
        self.events = []
        self.fail = False

    def publish(self, event_type, routing_key, data):
        if self.fail:
            raise RuntimeError("broker unreachable")
        self.events.append({"event_type": event_type, "routing_key": routing_key, "data": data})
        return True

    def types(self):
        return [event["event_type"] for event in self.events]


class FakeRazorpay:
    """httpx MockTransport handler emulating the Razorpay endpoints used here"""

    def __init__(self):
        self.requests = []
        self.order_error = None
        self.refund_error = None
        self.payments = {}
        self._counter = 0

    def _next_id(self, prefix):
        self._counter += 1
        return f"{prefix}_{self._counter:04d}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path.endswith("/orders"):
            if self.order_error is not None:
                raise self.order_error
            body = json.loads(request.content)
            return httpx.Response(200, json={
                "id": self._next_id("order"),
                "entity": "order",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
            })

        if request.method == "POST" and path.endswith("/refund"):
            if isinstance(self.refund_error, Exception):
                raise self.refund_error
            if self.refund_error is not None:
                return httpx.Response(400, json={"error": {"code": "BAD_REQUEST_ERROR", "description": self.refund_error}})
            body = json.loads(request.content)
            return httpx.Response(200, json={
                "id": self._next_id("rfnd"),
                "entity": "refund",
                "amount": body["amount"],
                "status": "processed",
            })

        if request.method == "GET" and "/payments/" in path:
            payment_id = path.rsplit("/", 1)[-1]
            payment = self.payments.get(payment_id)
            if payment is None:
                return httpx.Response(404, json={"error": {"description": "The id provided does not exist"}})
            return httpx.Response(200, json=payment)

        return httpx.Response(404, json={"error": {"description": "not found"}})

    def posted(self, suffix):
        return [json.loads(r.content) for r in self.requests if r.method == "POST" and r.url.path.endswith(suffix)]


class Seeder:
    """Helpers that write fixture rows and read back current state"""

    def __init__(self, db):
        self.db = db

    def _add(self, row):
        self.db.add(row)
        self.db.commit()
        return row

    def product(self, price=100.0, stock=10, category="general", discount_price=None, threshold=5, reorder=None):
        product = self._add(Product(name=f"Product {price}", category=category, base_price=price, discount_price=discount_price))
        self._add(InventoryRecord(
            product_id=product.id,
            variant_id=None,
            stock_quantity=stock,
            low_stock_threshold=threshold,
            reorder_quantity=reorder
        ))
        return product.id

    def cart(self, user_id, product_id, quantity=1, variant_id=None):
        return self._add(CartItem(user_id=user_id, product_id=product_id, variant_id=variant_id, quantity=quantity))

    def coupon(self, code, discount_type="percentage", discount_value=10, **fields):
        return self._add(Coupon(code=code, discount_type=discount_type, discount_value=discount_value, **fields))

    def admin(self, user_id="admin-1"):
        self._add(UserRole(user_id=user_id, role="admin"))
        return user_id

    def order(self, user_id, items, status="pending", age=None, email=None, payment_status=None, transaction_status="created"):
        """
        Insert an order whose stock is already reserved, with one payment transaction

        `items` is a list of (product_id, quantity); prices come from the catalog.
        """
        order_number = f"ORD-TEST-{self.db.query(Order).count() + 1:04d}"
        lines = [{"product_id": pid, "variant_id": None, "quantity": qty} for pid, qty in items]
        InventoryAdjuster(self.db).reserve(lines, reference_id=order_number)

        total = 0.0
        order_items = []
        for pid, qty in items:
            price = self.db.get(Product, pid).base_price
            total += price * qty
            order_items.append(OrderItem(product_id=pid, variant_id=None, quantity=qty, unit_price=price))

        created_at = utcnow() - age if age is not None else utcnow()
        order = Order(
            order_number=order_number,
            user_id=user_id,
            customer_email=email,
            status=status,
            payment_status=payment_status or {"paid": "success"}.get(status, "pending"),
            subtotal_amount=total,
            shipping_amount=0,
            discount_amount=0,
            total_amount=total,
            created_at=created_at,
        )
        order.items = order_items
        self._add(order)
        self._add(PaymentTransaction(
            order_id=order.id,
            razorpay_order_id=f"order_seed_{order.id}",
            razorpay_payment_id=f"pay_seed_{order.id}" if transaction_status in ("success", "refunded") else None,
            status=transaction_status,
            amount=total,
            currency="INR",
        ))
        return order.id

    def paid_order(self, user_id, items, email=None):
        return self.order(user_id, items, status="paid", email=email, transaction_status="success")

    def stock(self, product_id, variant_id=None):
        self.db.expire_all()
        return InventoryRepository(self.db).get(product_id, variant_id).stock_quantity

    def get(self, model, row_id):
        self.db.expire_all()
        return self.db.get(model, row_id)

    def transactions(self, order_id):
        self.db.expire_all()
        return self.db.query(PaymentTransaction).filter(PaymentTransaction.order_id == order_id).all()


def sign(gateway_order_id, gateway_payment_id):
    return compute_signature(gateway_order_id, gateway_payment_id, KEY_SECRET)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'orders.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seed(db):
    return Seeder(db)


@pytest.fixture
def razorpay():
    return FakeRazorpay()


@pytest.fixture
def gateway(razorpay):
    return RazorpayGateway(
        key_id="rzp_test_key",
        key_secret=KEY_SECRET,
        base_url="https://api.razorpay.test/v1",
        timeout=2.0,
        transport=httpx.MockTransport(razorpay.handler)
    )


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def client(session_factory, gateway, publisher):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def shipping_address():
    return {"address_line_1": "12 MG Road", "city": "Bengaluru", "pincode": "560001"}


