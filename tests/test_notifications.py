"""
Notifications: fire-and-forget publishing, email rendering and the consumer
"""
import json
import logging
from types import SimpleNamespace

from order_saga.consumers.notification_consumer import callback
from order_saga.models import Order
from order_saga.services import notification_service
from order_saga.services.notification_service import NotificationService
from order_saga.services.notifier import Notifier


class FakeChannel:
    def __init__(self):
        self.acked = []
        self.nacked = []

    def basic_ack(self, delivery_tag):
        self.acked.append(delivery_tag)

    def basic_nack(self, delivery_tag, requeue):
        self.nacked.append((delivery_tag, requeue))


ORDER = {
    "order_number": "ORD-1",
    "customer_email": "buyer@example.com",
    "total_amount": 250.0,
    "items": [{"product_id": 1, "variant_id": None, "quantity": 2, "unit_price": 100.0}],
}


def test_broker_failure_does_not_fail_cancel(client, seed, publisher):
    product_id = seed.product(stock=5)
    order_id = seed.order("user-1", [(product_id, 2)])
    publisher.fail = True

    response = client.post("/cancel-order", json={"orderId": order_id}, headers={"X-User-Id": "user-1"})

    assert response.status_code == 200
    assert seed.get(Order, order_id).status == "cancelled"
    assert seed.stock(product_id) == 5


def test_notifier_swallows_scheduling_errors(publisher):
    def broken_schedule(*args):
        raise RuntimeError("queue full")

    Notifier(publisher, schedule=broken_schedule).send_order_confirmation(ORDER)

    assert publisher.events == []


def test_notifier_defers_to_scheduler(publisher):
    scheduled = []
    notifier = Notifier(publisher, schedule=lambda fn, *args: scheduled.append((fn, args)))

    notifier.send_cancellation_notice(ORDER)
    assert publisher.events == []

    fn, args = scheduled[0]
    assert fn(*args) is True
    assert publisher.events[0]["routing_key"] == "order.cancelled"


def test_order_confirmation_email(caplog):
    caplog.set_level(logging.INFO, logger="order_saga.services.notification_service")

    assert NotificationService("console").handle_event("OrderConfirmed", ORDER) is True

    assert "To: buyer@example.com" in caplog.text
    assert "Order ORD-1 Confirmed" in caplog.text
    assert "Total: 250.00 INR" in caplog.text


def test_rendered_subjects():
    service = NotificationService("console")

    assert service.render_cancellation_notice(ORDER)[1] == "Order ORD-1 Cancelled"
    assert service.render_refund_receipt({"order_id": 7, "amount": 10})[1] == "Refund for Order #7"
    assert service.render_return_received({"order_number": "ORD-1"})[1] == "Return Request Received - Order ORD-1"
    to, subject, body = service.render_low_stock_alert({
        "items": [{"product_id": 3, "variant_id": 9, "stock_quantity": 1, "reorder_quantity": 20}]
    })
    assert subject == "Inventory Alert: 1 items low on stock"
    assert "Product 3 / variant 9: 1 left (reorder 20)" in body


def test_missing_recipient_is_skipped_and_unknown_event_fails():
    service = NotificationService("console")

    assert service.handle_event("OrderCancelled", {"order_number": "ORD-1"}) is True
    assert service.handle_event("SomethingElse", {}) is False


def test_unknown_email_service_fails():
    assert NotificationService("pigeon").handle_event("OrderConfirmed", ORDER) is False


def test_consumer_acks_handled_events():
    channel = FakeChannel()
    body = json.dumps({"event_id": "e1", "event_type": "OrderConfirmed", "data": ORDER})

    callback(channel, SimpleNamespace(delivery_tag=1), None, body)

    assert channel.acked == [1]


def test_consumer_rejects_bad_messages_without_requeue():
    channel = FakeChannel()

    callback(channel, SimpleNamespace(delivery_tag=1), None, "not json")
    callback(channel, SimpleNamespace(delivery_tag=2), None, json.dumps({"event_type": "Unknown", "data": {}}))

    assert channel.acked == []
    assert channel.nacked == [(1, False), (2, False)]


def test_sendgrid_transport_sends_mail(monkeypatch):
    sent = []

    class FakeSendGrid:
        def __init__(self, api_key):
            self.api_key = api_key

        def send(self, message):
            sent.append(message.get())
            return SimpleNamespace(status_code=202)

    monkeypatch.setattr(notification_service, "SendGridAPIClient", FakeSendGrid)

    assert NotificationService("sendgrid").handle_event("OrderConfirmed", ORDER) is True
    assert sent[0]["personalizations"][0]["to"] == [{"email": "buyer@example.com"}]
    assert sent[0]["subject"] == "Order ORD-1 Confirmed"


def test_sendgrid_rejection_fails_delivery(monkeypatch):
    class Unauthorized(notification_service.SendGridHTTPError):
        def __init__(self):
            Exception.__init__(self, "Unauthorized")
            self.status_code = 401
            self.body = b"invalid api key"

    class RejectingSendGrid:
        def __init__(self, api_key):
            pass

        def send(self, message):
            raise Unauthorized()

    monkeypatch.setattr(notification_service, "SendGridAPIClient", RejectingSendGrid)

    assert NotificationService("sendgrid").handle_event("OrderConfirmed", ORDER) is False


def test_smtp_transport_sends_message(monkeypatch):
    messages = []

    class FakeSMTP:
        def __init__(self, host, port, timeout=None):
            self.host = host

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self):
            pass

        def login(self, username, password):
            pass

        def send_message(self, message):
            messages.append(message)

    monkeypatch.setattr(notification_service.smtplib, "SMTP", FakeSMTP)

    assert NotificationService("smtp").handle_event("OrderCancelled", ORDER) is True
    assert messages[0]["To"] == "buyer@example.com"
    assert messages[0]["Subject"] == "Order ORD-1 Cancelled"
