"""
Order status transitions
"""
import pytest

from order_saga.models import ALLOWED_TRANSITIONS, ORDER_STATUSES, Order, can_transition
from order_saga.repositories.order_repository import OrderRepository

LEGAL = {("pending", "paid"), ("pending", "cancelled"), ("paid", "refunded")}


@pytest.mark.parametrize("from_status", ORDER_STATUSES)
@pytest.mark.parametrize("to_status", ORDER_STATUSES)
def test_only_three_transitions_are_allowed(from_status, to_status):
    assert can_transition(from_status, to_status) == ((from_status, to_status) in LEGAL)


def test_terminal_states():
    assert not ALLOWED_TRANSITIONS["cancelled"]
    assert not ALLOWED_TRANSITIONS["refunded"]


def test_illegal_transition_is_refused_before_writing(db, seed):
    product_id = seed.product(stock=5)
    order_id = seed.order("user-1", [(product_id, 1)], status="cancelled")

    with pytest.raises(ValueError):
        OrderRepository(db).transition(order_id, "cancelled", "paid")

    assert seed.get(Order, order_id).status == "cancelled"


def test_transition_only_applies_from_expected_status(db, seed):
    product_id = seed.product(stock=5)
    order_id = seed.order("user-1", [(product_id, 1)])
    orders = OrderRepository(db)

    assert orders.transition(order_id, "pending", "cancelled", payment_status="failed") is True
    assert orders.transition(order_id, "pending", "paid", payment_status="success") is False
    order = seed.get(Order, order_id)
    assert (order.status, order.payment_status) == ("cancelled", "failed")
