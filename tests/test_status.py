from decimal import Decimal

import pytest

from ordermgmt import models
from ordermgmt.errors import InvalidTransition
from ordermgmt.models import OrderStatus
from ordermgmt.status import ALLOWED_TRANSITIONS, can_transition, transition


def make_order(db, user, status, lines):
    order = models.Order(user_id=user.id, status=status, total=Decimal("0.00"))
    for product, qty in lines:
        order.items.append(
            models.OrderItem(product_id=product.id, quantity=qty, unit_price=product.price, subtotal=product.price * qty)
        )
    db.add(order)
    db.commit()
    return order


def test_happy_path_sequence():
    path = [OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED]
    for current, nxt in zip(path, path[1:]):
        assert can_transition(current, nxt)


def test_cancel_reachable_from_every_live_status():
    for status in OrderStatus:
        if status == OrderStatus.CANCELLED:
            continue
        assert can_transition(status, OrderStatus.CANCELLED)
    assert ALLOWED_TRANSITIONS[OrderStatus.CANCELLED] == frozenset()


@pytest.mark.parametrize(
    "current,new",
    [
        (OrderStatus.SHIPPED, OrderStatus.PROCESSING),
        (OrderStatus.PENDING, OrderStatus.SHIPPED),
        (OrderStatus.DELIVERED, OrderStatus.PENDING),
        (OrderStatus.PENDING, OrderStatus.PENDING),
        (OrderStatus.CANCELLED, OrderStatus.PENDING),
    ],
)
def test_illegal_transitions(current, new):
    assert not can_transition(current, new)


def test_shipped_to_processing_keeps_status(db_session, customer, make_product):
    p = make_product(stock=4)
    order = make_order(db_session, customer, OrderStatus.SHIPPED, [(p, 1)])
    with pytest.raises(InvalidTransition):
        transition(db_session, order, OrderStatus.PROCESSING)
    assert order.status == OrderStatus.SHIPPED
    assert p.stock == 4


def test_non_cancel_transition_leaves_stock(db_session, customer, make_product):
    p = make_product(stock=4)
    order = make_order(db_session, customer, OrderStatus.PENDING, [(p, 2)])
    transition(db_session, order, OrderStatus.PROCESSING)
    assert order.status == OrderStatus.PROCESSING
    assert p.stock == 4


def test_cancel_restores_every_line(db_session, customer, make_product):
    p1 = make_product(name="Alpha", stock=0)
    p2 = make_product(name="Beta", stock=5)
    order = make_order(db_session, customer, OrderStatus.DELIVERED, [(p1, 2), (p2, 1)])
    transition(db_session, order, OrderStatus.CANCELLED)
    db_session.commit()
    db_session.refresh(p1)
    db_session.refresh(p2)
    assert (p1.stock, p2.stock) == (2, 6)
    assert order.status == OrderStatus.CANCELLED
    assert order.updated_at is not None
