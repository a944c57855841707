from datetime import datetime
from decimal import Decimal

from ordermgmt import crud, orders, schemas
from ordermgmt.utils import sanitize_input, sanitize_optional


def test_sanitize_strips_every_tag():
    out = sanitize_input('<b>Deluxe</b> <a href="http://x">Widget</a><script>x</script>')
    assert "<" not in out
    assert out.startswith("Deluxe Widget")


def test_sanitize_optional_keeps_none_and_blanks_out():
    assert sanitize_optional(None) is None
    assert sanitize_optional("<i></i> ;-- ") is None


def test_product_name_is_cleaned_on_create(db_session, employee):
    data = schemas.ProductCreate(name="<em>Gear</em> Box; --", price=Decimal("4.00"), stock=1)
    product = crud.create_product(db_session, employee, data)
    assert product.name == "Gear Box"


def test_shipping_address_is_cleaned(db_session, employee, customer, make_product):
    widget = make_product(stock=3)
    data = schemas.OrderCreate(
        user_id=customer.id,
        shipping_address="12 High St; DROP TABLE orders --",
        items=[schemas.OrderLineIn(product_id=widget.id, quantity=1)],
    )
    order = orders.create_order(db_session, employee, data).order
    assert ";" not in order.shipping_address
    assert "--" not in order.shipping_address
    assert order.shipping_address.startswith("12 High St")


def test_search_term_is_cleaned_before_matching(db_session, employee, customer, make_product):
    widget = make_product(stock=3)
    data = schemas.OrderCreate(
        user_id=customer.id,
        order_date=datetime(2024, 3, 1),
        notes="leave at door",
        items=[schemas.OrderLineIn(product_id=widget.id, quantity=1)],
    )
    order = orders.create_order(db_session, employee, data).order
    found = crud.list_orders(db_session, employee, schemas.OrderFilter(search="<b>door</b>;--"))
    assert [o.id for o in found] == [order.id]
