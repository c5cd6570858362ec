"""
Inventory Adjuster: all-or-nothing reservation and release
"""
import pytest

from order_saga.exceptions import OversellError, ValidationError
from order_saga.models import InventoryRecord, StockMovement
from order_saga.services.inventory_adjuster import InventoryAdjuster


def test_reserve_then_release_restores_stock(db, seed):
    first = seed.product(stock=10)
    second = seed.product(stock=3)
    items = [{"product_id": first, "quantity": 4}, {"product_id": second, "quantity": 3}]
    adjuster = InventoryAdjuster(db)

    adjuster.reserve(items, reference_id="ORD-1")
    assert (seed.stock(first), seed.stock(second)) == (6, 0)

    result = adjuster.release(items, reference_id="ORD-1")
    assert result.ok
    assert (seed.stock(first), seed.stock(second)) == (10, 3)


def test_reserve_is_all_or_nothing(db, seed):
    first = seed.product(stock=10)
    second = seed.product(stock=2)
    items = [{"product_id": first, "quantity": 4}, {"product_id": second, "quantity": 5}]

    with pytest.raises(OversellError) as excinfo:
        InventoryAdjuster(db).reserve(items, reference_id="ORD-2")

    assert excinfo.value.product_id == second
    assert excinfo.value.requested == 5
    assert (seed.stock(first), seed.stock(second)) == (10, 2)


def test_stock_never_goes_negative(db, seed):
    product_id = seed.product(stock=1)
    adjuster = InventoryAdjuster(db)

    adjuster.reserve([{"product_id": product_id, "quantity": 1}])
    with pytest.raises(OversellError):
        adjuster.reserve([{"product_id": product_id, "quantity": 1}])

    assert seed.stock(product_id) == 0


def test_movements_record_previous_and_new_quantity(db, seed):
    product_id = seed.product(stock=8)

    InventoryAdjuster(db).reserve([{"product_id": product_id, "quantity": 3}], reference_id="ORD-3")

    [movement] = db.query(StockMovement).filter(StockMovement.reference_id == "ORD-3").all()
    assert (movement.previous_quantity, movement.new_quantity, movement.quantity_change) == (8, 5, -3)
    assert movement.reason == "order_reserved"


def test_variant_stock_is_tracked_separately(db, seed):
    product_id = seed.product(stock=5)
    db.add(InventoryRecord(product_id=product_id, variant_id=7, stock_quantity=2))
    db.commit()

    InventoryAdjuster(db).reserve([{"product_id": product_id, "variant_id": 7, "quantity": 2}])

    assert seed.stock(product_id, 7) == 0
    assert seed.stock(product_id) == 5


def test_release_reports_missing_records_and_continues(db, seed):
    product_id = seed.product(stock=5)

    result = InventoryAdjuster(db).release([
        {"product_id": 999, "quantity": 1},
        {"product_id": product_id, "quantity": 2},
    ])

    assert not result.ok
    assert result.failed == [{"product_id": 999, "variant_id": None, "quantity": 1}]
    assert seed.stock(product_id) == 7


@pytest.mark.parametrize("item", [
    {"product_id": None, "quantity": 1},
    {"product_id": 1, "quantity": 0},
    {"product_id": 1, "quantity": -2},
])
def test_invalid_items_are_rejected(db, item):
    with pytest.raises(ValidationError):
        InventoryAdjuster(db).reserve([item])


def test_low_stock_report(db, seed):
    low = seed.product(stock=2, threshold=5)
    seed.product(stock=50, threshold=5)

    records = InventoryAdjuster(db).low_stock_report()

    assert [r.product_id for r in records] == [low]
