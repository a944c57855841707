import logging
from typing import Dict, FrozenSet

from sqlalchemy.orm import Session

from . import models, stock
from .errors import InvalidTransition
from .models import OrderStatus
from .utils import utcnow

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.CANCELLED: frozenset(),
}

# edits and deletes are refused once an order reaches one of these
LOCKED_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.DELIVERED})


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]


def transition(db: Session, order: models.Order, new_status: OrderStatus, clock=utcnow) -> models.Order:
    """Move ``order`` to ``new_status``.

    Entering CANCELLED gives every line's quantity back to its product
    before the status is written. The caller owns the transaction.
    """
    current = order.status
    if not can_transition(current, new_status):
        raise InvalidTransition(current, new_status)

    if new_status == OrderStatus.CANCELLED:
        stock.apply_adjustments(db, stock.restoration_for(order.items))

    order.status = new_status
    order.updated_at = clock()
    logger.debug("order %s status %s -> %s", order.id, current.value, new_status.value)
    return order
