import json
import logging

import pytest

from ordermgmt import orders, schemas
from ordermgmt.errors import InsufficientStock
from ordermgmt.logging_config import JSONFormatter


def test_json_formatter_redacts_and_carries_context():
    record = logging.LogRecord("ordermgmt.test", logging.INFO, __file__, 1, {"password": "hunter2", "user": "ada"}, None, None)
    record.order_id = 7
    out = json.loads(JSONFormatter().format(record))
    assert "hunter2" not in out["msg"]
    assert out["order_id"] == 7
    assert out["lvl"] == "INFO"


def test_rejected_operation_logs_warning(db_session, employee, customer, make_product, caplog):
    p1 = make_product(stock=1)
    data = schemas.OrderCreate(user_id=customer.id, items=[schemas.OrderLineIn(product_id=p1.id, quantity=2)])
    with caplog.at_level(logging.WARNING, logger="ordermgmt.orders"):
        with pytest.raises(InsufficientStock):
            orders.create_order(db_session, employee, data)
    assert any("create order rejected" in r.getMessage() for r in caplog.records)
