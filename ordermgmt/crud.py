import logging
from typing import List

from sqlalchemy import exists, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from . import models, schemas, stock
from .auth import Actor, hash_password, require_admin, require_privileged
from .db import unit_of_work
from .errors import DuplicateEmail, DuplicateSku, ProductInUse, ProductNotFound
from .utils import round_amount, sanitize_input, sanitize_optional, utcnow
from .validation import (
    ensure_valid,
    validate_product,
    validate_product_update,
    validate_user,
    validate_user_update,
)

logger = logging.getLogger(__name__)

ORDER_SORTS = {
    "date_asc": models.Order.order_date.asc(),
    "date_desc": models.Order.order_date.desc(),
    "total_asc": models.Order.total.asc(),
    "total_desc": models.Order.total.desc(),
    "status_asc": models.Order.status.asc(),
    "status_desc": models.Order.status.desc(),
    "customer_asc": models.User.name.asc(),
    "customer_desc": models.User.name.desc(),
}


# -------------------- Users --------------------

def get_user_by_email(db: Session, email: str) -> models.User | None:
    stmt = select(models.User).where(func.lower(models.User.email) == email.strip().lower())
    return db.execute(stmt).scalar_one_or_none()


def create_user(db: Session, actor: Actor, user: schemas.UserCreate) -> models.User:
    require_admin(actor)
    ensure_valid(validate_user(user))
    if get_user_by_email(db, user.email):
        raise DuplicateEmail(f"email {user.email} is already registered")

    db_user = models.User(
        name=sanitize_input(user.name),
        email=user.email.strip().lower(),
        role=user.role,
        password_hash=hash_password(user.password) if user.password else None,
        phone_number=user.phone_number,
        address=sanitize_optional(user.address),
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateEmail(f"email {user.email} is already registered") from e
    db.refresh(db_user)
    return db_user


def list_users(db: Session, actor: Actor, active_only: bool = False) -> List[models.User]:
    require_admin(actor)
    stmt = select(models.User).order_by(models.User.name, models.User.id)
    if active_only:
        stmt = stmt.where(models.User.is_active.is_(True))
    return list(db.execute(stmt).scalars())


def update_user(db: Session, actor: Actor, user_id: int, data: schemas.UserUpdate) -> models.User | None:
    require_admin(actor)
    ensure_valid(validate_user_update(data))
    user = db.get(models.User, user_id)
    if not user:
        return None
    if data.email is not None:
        other = get_user_by_email(db, data.email)
        if other is not None and other.id != user.id:
            raise DuplicateEmail(f"email {data.email} is already registered")
        user.email = data.email.strip().lower()
    if data.name is not None:
        user.name = sanitize_input(data.name)
    if data.role is not None:
        user.role = data.role
    if data.password:
        user.password_hash = hash_password(data.password)
    if data.phone_number is not None:
        user.phone_number = data.phone_number or None
    if data.address is not None:
        user.address = sanitize_optional(data.address)
    if data.is_active is not None:
        user.is_active = data.is_active
    user.updated_at = utcnow()
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateEmail(f"email {data.email} is already registered") from e
    db.refresh(user)
    logger.info("user %s updated", user.id, extra={"user_id": actor.user_id})
    return user


def ensure_initial_admin(db: Session, email: str, password: str) -> models.User | None:
    """Create the first administrator of an empty database.

    Returns None without touching anything once any user exists.
    """
    if db.execute(select(models.User.id).limit(1)).first() is not None:
        return None
    data = schemas.UserCreate(name="Administrator", email=email, role=models.UserRole.ADMIN, password=password)
    user = create_user(db, Actor(None, models.UserRole.ADMIN), data)
    logger.info("initial administrator created id=%s", user.id)
    return user


def deactivate_user(db: Session, actor: Actor, user_id: int) -> models.User | None:
    require_admin(actor)
    user = db.get(models.User, user_id)
    if not user:
        return None
    user.is_active = False
    user.updated_at = utcnow()
    db.commit()
    db.refresh(user)
    return user


# -------------------- Products --------------------

def get_product(db: Session, product_id: int) -> models.Product:
    product = db.get(models.Product, product_id)
    if product is None:
        raise ProductNotFound(product_id)
    return product


def _sku_taken(db: Session, sku: str, exclude_id: int | None = None) -> bool:
    stmt = select(models.Product.id).where(func.lower(models.Product.sku) == sku.lower())
    if exclude_id is not None:
        stmt = stmt.where(models.Product.id != exclude_id)
    return db.execute(stmt).first() is not None


def create_product(db: Session, actor: Actor, data: schemas.ProductCreate) -> models.Product:
    require_privileged(actor)
    ensure_valid(validate_product(data))
    if data.sku and _sku_taken(db, data.sku):
        raise DuplicateSku(f"sku {data.sku} is already in use")

    with unit_of_work(db):
        product = models.Product(
            name=sanitize_input(data.name),
            description=sanitize_optional(data.description),
            price=round_amount(data.price),
            stock=0,
            sku=data.sku or None,
            is_active=data.is_active,
        )
        db.add(product)
        db.flush()
        # opening stock is recorded through the ledger like any other change
        if data.stock:
            stock.adjust(db, product.id, data.stock)
    db.refresh(product)
    logger.info("product created id=%s stock=%s", product.id, product.stock)
    return product


def update_product(db: Session, actor: Actor, product_id: int, data: schemas.ProductUpdate) -> models.Product:
    require_privileged(actor)
    ensure_valid(validate_product_update(data))
    with unit_of_work(db):
        product = get_product(db, product_id)
        if data.sku and _sku_taken(db, data.sku, exclude_id=product.id):
            raise DuplicateSku(f"sku {data.sku} is already in use")
        if data.name is not None:
            product.name = sanitize_input(data.name)
        if data.description is not None:
            product.description = sanitize_optional(data.description)
        if data.price is not None:
            product.price = round_amount(data.price)
        if data.sku is not None:
            product.sku = data.sku or None
        # reactivation applies before the stock change, deactivation after it
        if data.is_active:
            product.is_active = True
        if data.stock is not None and data.stock != product.stock:
            # restocking an inactive product is allowed, drawing it down is not
            stock.adjust(db, product.id, data.stock - product.stock)
        if data.is_active is False:
            product.is_active = False
        product.updated_at = utcnow()
    db.refresh(product)
    return product


def delete_product(db: Session, actor: Actor, product_id: int) -> bool:
    require_admin(actor)
    with unit_of_work(db):
        product = db.get(models.Product, product_id)
        if not product:
            return False
        referenced = db.execute(
            select(exists().where(models.OrderItem.product_id == product_id))
        ).scalar()
        if referenced:
            raise ProductInUse(product_id)
        db.delete(product)
    return True


def list_products(db: Session, active_only: bool = False, in_stock_only: bool = False) -> List[models.Product]:
    stmt = select(models.Product).order_by(models.Product.name, models.Product.id)
    if active_only:
        stmt = stmt.where(models.Product.is_active.is_(True))
    if in_stock_only:
        stmt = stmt.where(models.Product.stock > 0)
    return list(db.execute(stmt).scalars())


# -------------------- Orders (read side) --------------------

def list_orders(db: Session, actor: Actor, filters: schemas.OrderFilter | None = None) -> List[models.Order]:
    filters = filters or schemas.OrderFilter()
    stmt = (
        select(models.Order)
        .join(models.User, models.Order.user_id == models.User.id)
        .options(selectinload(models.Order.items))
    )

    # customers only ever see their own orders
    if not actor.is_privileged:
        stmt = stmt.where(models.Order.user_id == actor.user_id)
    elif filters.user_id is not None:
        stmt = stmt.where(models.Order.user_id == filters.user_id)

    if filters.search:
        term = f"%{sanitize_input(filters.search)}%"
        line_match = (
            select(models.OrderItem.id)
            .join(models.Product, models.OrderItem.product_id == models.Product.id)
            .where(models.OrderItem.order_id == models.Order.id)
            .where(or_(models.Product.name.like(term), models.Product.sku.like(term)))
            .exists()
        )
        stmt = stmt.where(
            or_(
                models.User.name.like(term),
                line_match,
                models.Order.notes.like(term),
                models.Order.shipping_address.like(term),
            )
        )
    if filters.status is not None:
        stmt = stmt.where(models.Order.status == filters.status)
    if filters.start_date is not None:
        stmt = stmt.where(models.Order.order_date >= filters.start_date)
    if filters.end_date is not None:
        stmt = stmt.where(models.Order.order_date <= filters.end_date)
    if filters.min_total is not None:
        stmt = stmt.where(models.Order.total >= filters.min_total)
    if filters.max_total is not None:
        stmt = stmt.where(models.Order.total <= filters.max_total)

    order_by = ORDER_SORTS.get((filters.sort_by or "").lower(), ORDER_SORTS["date_desc"])
    stmt = stmt.order_by(order_by, models.Order.id.desc())
    return list(db.execute(stmt).scalars())
