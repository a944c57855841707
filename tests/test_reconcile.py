from decimal import Decimal

import pytest

from ordermgmt import models
from ordermgmt.errors import (
    DuplicateLineItem,
    InsufficientStock,
    InvalidQuantity,
    ProductInactive,
    ProductNotFound,
)
from ordermgmt.reconcile import RequestedLine, previous_quantities, reconcile
from ordermgmt.stock import StockAdjustment


def product(pid, price="10.00", stock=10, active=True):
    return models.Product(id=pid, name=f"P{pid}", price=Decimal(price), stock=stock, is_active=active)


def test_new_order_allocates_and_totals():
    products = {1: product(1, "2.50", 5), 2: product(2, "4.00", 3)}
    plan = reconcile({}, [RequestedLine(1, 5), RequestedLine(2, 1)], products)
    assert plan.total == Decimal("16.50")
    assert [(l.product_id, l.quantity, l.subtotal) for l in plan.lines] == [
        (1, 5, Decimal("12.50")),
        (2, 1, Decimal("4.00")),
    ]
    assert sorted(plan.adjustments) == [StockAdjustment(1, -5), StockAdjustment(2, -1)]


def test_duplicate_lines_rejected_first():
    # the duplicate is reported even though product 9 does not exist
    with pytest.raises(DuplicateLineItem):
        reconcile({}, [RequestedLine(9, 3), RequestedLine(9, 3)], {})


def test_reducing_quantity_restores_difference():
    plan = reconcile({1: 5}, [RequestedLine(1, 2)], {1: product(1, stock=0)})
    assert plan.adjustments == [StockAdjustment(1, 3)]
    assert plan.total == Decimal("20.00")


def test_held_units_count_as_available():
    plan = reconcile({1: 5}, [RequestedLine(1, 7)], {1: product(1, stock=2)})
    assert plan.adjustments == [StockAdjustment(1, -2)]


def test_held_units_not_enough():
    with pytest.raises(InsufficientStock):
        reconcile({1: 5}, [RequestedLine(1, 8)], {1: product(1, stock=2)})


def test_removed_line_restored():
    products = {1: product(1), 2: product(2)}
    plan = reconcile({1: 2, 2: 4}, [RequestedLine(1, 2)], products)
    assert plan.adjustments == [StockAdjustment(2, 4)]


def test_unchanged_line_is_repriced():
    p = product(1, price="12.00", stock=0)
    plan = reconcile({1: 3}, [RequestedLine(1, 3)], {1: p})
    assert plan.adjustments == []
    assert plan.lines[0].unit_price == Decimal("12.00")
    assert plan.total == Decimal("36.00")


def test_missing_product():
    with pytest.raises(ProductNotFound):
        reconcile({}, [RequestedLine(1, 1)], {})


def test_inactive_only_blocks_allocation():
    p = product(1, active=False, stock=0)
    with pytest.raises(ProductInactive):
        reconcile({}, [RequestedLine(1, 1)], {1: p})
    # keeping or lowering an existing line on an inactive product is fine
    plan = reconcile({1: 3}, [RequestedLine(1, 1)], {1: p})
    assert plan.adjustments == [StockAdjustment(1, 2)]


def test_inactive_checked_before_stock():
    with pytest.raises(ProductInactive):
        reconcile({}, [RequestedLine(1, 50)], {1: product(1, active=False, stock=0)})


@pytest.mark.parametrize("qty", [0, -2])
def test_non_positive_quantity(qty):
    with pytest.raises(InvalidQuantity):
        reconcile({}, [RequestedLine(1, qty)], {1: product(1)})


def test_previous_quantities():
    items = [models.OrderItem(product_id=1, quantity=2), models.OrderItem(product_id=3, quantity=1)]
    assert previous_quantities(items) == {1: 2, 3: 1}
