"""Order transaction orchestration.

Every entry point checks the caller's capability, then performs its whole
read/validate/write cycle inside a single unit of work: either every stock
and order row change commits, or none does.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from . import models, schemas, stock
from .auth import Actor, can_view_order, require_admin, require_privileged
from .db import unit_of_work
from .errors import CustomerNotFound, OrderError, OrderLocked, OrderNotFound, PermissionDenied
from .models import OrderStatus
from .reconcile import RequestedLine, previous_quantities, reconcile
from .status import LOCKED_STATUSES, transition
from .utils import sanitize_optional, utcnow
from .validation import ensure_valid, validate_order_header

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    OrderStatus.PROCESSING: ("info", "The order is being prepared."),
    OrderStatus.SHIPPED: ("info", "The order has been shipped to the customer."),
    OrderStatus.DELIVERED: ("success", "The order was delivered."),
    OrderStatus.CANCELLED: ("warning", "The order was cancelled and its stock restored."),
}


@dataclass
class OperationResult:
    order: Optional[models.Order]
    messages: List[schemas.Notification] = field(default_factory=list)

    def add(self, level: str, message: str) -> None:
        self.messages.append(schemas.Notification(level=level, message=message))


def load_order(db: Session, order_id: int) -> models.Order:
    stmt = (
        select(models.Order)
        .where(models.Order.id == order_id)
        .options(selectinload(models.Order.items))
    )
    order = db.execute(stmt).scalar_one_or_none()
    if order is None:
        raise OrderNotFound(order_id)
    return order


def _load_products(db: Session, product_ids: Iterable[int]) -> Dict[int, models.Product]:
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    rows = db.execute(select(models.Product).where(models.Product.id.in_(ids))).scalars()
    return {p.id: p for p in rows}


def _check_customer(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if user is None or not user.is_active:
        raise CustomerNotFound(user_id)
    return user


def _requested_lines(data: schemas.OrderCreate) -> List[RequestedLine]:
    return [RequestedLine(line.product_id, line.quantity) for line in data.items]


def _replace_lines(db: Session, order: models.Order, lines) -> None:
    order.items.clear()
    # old rows must be gone before the (order_id, product_id) unique index sees the new ones
    db.flush()
    for line in lines:
        order.items.append(
            models.OrderItem(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                subtotal=line.subtotal,
            )
        )


def _rejected(action: str, order_id, err: OrderError) -> None:
    logger.warning("%s rejected: %s", action, err.message, extra={"order_id": order_id, "code": err.code})


def create_order(db: Session, actor: Actor, data: schemas.OrderCreate, clock=utcnow) -> OperationResult:
    require_privileged(actor)
    ensure_valid(validate_order_header(data))
    try:
        with unit_of_work(db):
            _check_customer(db, data.user_id)
            requested = _requested_lines(data)
            products = _load_products(db, (line.product_id for line in requested))
            plan = reconcile({}, requested, products)
            stock.apply_adjustments(db, plan.adjustments)

            now = clock()
            order = models.Order(
                user_id=data.user_id,
                order_date=data.order_date or now,
                status=OrderStatus.PENDING,
                total=plan.total,
                notes=sanitize_optional(data.notes),
                shipping_address=sanitize_optional(data.shipping_address),
                created_at=now,
            )
            db.add(order)
            _replace_lines(db, order, plan.lines)
    except OrderError as e:
        _rejected("create order", None, e)
        raise
    db.refresh(order)
    logger.info("order created", extra={"order_id": order.id, "user_id": actor.user_id})
    result = OperationResult(order)
    result.add("success", "Order created successfully.")
    return result


def update_order(db: Session, actor: Actor, order_id: int, data: schemas.OrderUpdate, clock=utcnow) -> OperationResult:
    require_privileged(actor)
    ensure_valid(validate_order_header(data))
    try:
        with unit_of_work(db):
            order = load_order(db, order_id)
            if order.status in LOCKED_STATUSES:
                raise OrderLocked(order.id, order.status)
            if data.user_id != order.user_id:
                _check_customer(db, data.user_id)

            previous = previous_quantities(order.items)
            requested = _requested_lines(data)
            products = _load_products(db, list(previous) + [line.product_id for line in requested])
            plan = reconcile(previous, requested, products)
            stock.apply_adjustments(db, plan.adjustments)

            _replace_lines(db, order, plan.lines)
            order.user_id = data.user_id
            if data.order_date is not None:
                order.order_date = data.order_date
            order.notes = sanitize_optional(data.notes)
            order.shipping_address = sanitize_optional(data.shipping_address)
            order.total = plan.total
            order.updated_at = clock()
    except OrderError as e:
        _rejected("update order", order_id, e)
        raise
    db.refresh(order)
    logger.info("order updated", extra={"order_id": order.id, "user_id": actor.user_id})
    result = OperationResult(order)
    result.add("success", "Order updated successfully.")
    return result


def delete_order(db: Session, actor: Actor, order_id: int) -> OperationResult:
    require_admin(actor)
    try:
        with unit_of_work(db):
            order = load_order(db, order_id)
            if order.status in LOCKED_STATUSES:
                raise OrderLocked(order.id, order.status)
            stock.apply_adjustments(db, stock.restoration_for(order.items))
            db.delete(order)
    except OrderError as e:
        _rejected("delete order", order_id, e)
        raise
    logger.info("order deleted", extra={"order_id": order_id, "user_id": actor.user_id})
    result = OperationResult(None)
    result.add("success", "Order deleted successfully.")
    return result


def change_status(db: Session, actor: Actor, order_id: int, new_status: OrderStatus, clock=utcnow) -> OperationResult:
    require_privileged(actor)
    try:
        with unit_of_work(db):
            order = load_order(db, order_id)
            old_status = order.status
            transition(db, order, new_status, clock=clock)
    except OrderError as e:
        _rejected("status change", order_id, e)
        raise
    db.refresh(order)
    logger.info(
        "order status changed %s -> %s",
        old_status.value,
        new_status.value,
        extra={"order_id": order.id, "user_id": actor.user_id},
    )
    result = OperationResult(order)
    if new_status == OrderStatus.CANCELLED:
        result.add("info", "Stock restored for every product in the order.")
    result.add("success", f"Order status updated from {old_status.value} to {new_status.value}.")
    level, message = STATUS_MESSAGES[new_status]
    result.add(level, message)
    return result


def cancel_order(db: Session, actor: Actor, order_id: int, clock=utcnow) -> OperationResult:
    return change_status(db, actor, order_id, OrderStatus.CANCELLED, clock=clock)


def get_order(db: Session, actor: Actor, order_id: int) -> models.Order:
    order = load_order(db, order_id)
    if not can_view_order(actor, order.user_id):
        raise PermissionDenied("you may only view your own orders")
    return order
