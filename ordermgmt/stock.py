"""Stock ledger: the only code path allowed to change Product.stock."""
import logging
from typing import Iterable, List, NamedTuple

from sqlalchemy.orm import Session

from . import models
from .errors import InsufficientStock, ProductInactive, ProductNotFound
from .utils import utcnow

logger = logging.getLogger(__name__)


class StockAdjustment(NamedTuple):
    product_id: int
    # negative allocates, positive restores
    delta: int


def adjust(db: Session, product_id: int, delta: int) -> models.Product:
    """Apply ``delta`` to a product's stock inside the caller's transaction.

    Inactive products may be restored to but not allocated from. Nothing is
    written when a check fails; the change only becomes durable when the
    enclosing unit of work commits.
    """
    product = db.get(models.Product, product_id, with_for_update=True)
    if product is None:
        raise ProductNotFound(product_id)
    if delta < 0 and not product.is_active:
        raise ProductInactive(product_id, product.name)
    new_stock = product.stock + delta
    if new_stock < 0:
        raise InsufficientStock(product_id, product.stock, -delta, product.name)
    if delta:
        product.stock = new_stock
        product.updated_at = utcnow()
        logger.debug("stock adjusted product=%s delta=%+d stock=%d", product_id, delta, new_stock)
    return product


def apply_adjustments(db: Session, adjustments: Iterable[StockAdjustment]) -> List[models.Product]:
    # lock rows in a stable order so concurrent writers cannot deadlock
    ordered = sorted(adjustments, key=lambda a: a.product_id)
    return [adjust(db, a.product_id, a.delta) for a in ordered]


def restoration_for(items: Iterable[models.OrderItem]) -> List[StockAdjustment]:
    """Adjustments that give back every unit an order's lines hold."""
    return [StockAdjustment(item.product_id, item.quantity) for item in items]
