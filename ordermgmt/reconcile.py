"""Order line reconciliation.

Turns an order's previous line set and a requested line set into the new
line records, the stock adjustments that move the ledger from one to the
other, and the new order total. Pure: nothing here touches the session.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, NamedTuple, Sequence

from . import models
from .errors import (
    DuplicateLineItem,
    InsufficientStock,
    InvalidQuantity,
    ProductInactive,
    ProductNotFound,
)
from .stock import StockAdjustment
from .utils import round_amount


class RequestedLine(NamedTuple):
    product_id: int
    quantity: int


class ReconciledLine(NamedTuple):
    product_id: int
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class Reconciliation(NamedTuple):
    lines: List[ReconciledLine]
    adjustments: List[StockAdjustment]
    total: Decimal


def previous_quantities(items: Iterable) -> Dict[int, int]:
    """Map product id -> quantity for an existing line set."""
    quantities: Dict[int, int] = {}
    for item in items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
    return quantities


def reconcile(
    previous: Mapping[int, int],
    requested: Sequence[RequestedLine],
    products: Mapping[int, models.Product],
) -> Reconciliation:
    """Validate ``requested`` against ``previous`` and the current products.

    ``previous`` maps product id to the quantity the order already holds
    (empty for a new order). The first violation raises and nothing is
    returned, so callers never see a partial result.
    """
    seen = set()
    for line in requested:
        if line.product_id in seen:
            raise DuplicateLineItem(line.product_id)
        seen.add(line.product_id)

    lines: List[ReconciledLine] = []
    adjustments: List[StockAdjustment] = []

    for line in requested:
        product = products.get(line.product_id)
        if product is None:
            raise ProductNotFound(line.product_id)
        held = previous.get(line.product_id, 0)
        allocating = line.quantity > held
        if allocating and not product.is_active:
            raise ProductInactive(product.id, product.name)
        if line.quantity <= 0:
            raise InvalidQuantity(product.id, line.quantity, product.name)
        # units already held by this order count as available
        if product.stock + held - line.quantity < 0:
            raise InsufficientStock(product.id, product.stock + held, line.quantity, product.name)

        unit_price = round_amount(product.price)
        lines.append(ReconciledLine(product.id, line.quantity, unit_price, round_amount(unit_price * line.quantity)))
        if line.quantity != held:
            adjustments.append(StockAdjustment(product.id, held - line.quantity))

    # lines dropped from the order give all their units back
    for product_id, held in previous.items():
        if product_id in seen or held == 0:
            continue
        if product_id not in products:
            raise ProductNotFound(product_id)
        adjustments.append(StockAdjustment(product_id, held))

    total = round_amount(sum((line.subtotal for line in lines), Decimal("0.00")))
    return Reconciliation(lines, adjustments, total)
