"""Per-entity validation run before any persistence call.

Each function returns a list of field-tagged errors; an empty list means the
input is acceptable. Callers turn a non-empty list into ValidationFailed.
"""
import re
from decimal import Decimal
from typing import List, Optional

from . import schemas
from .errors import FieldError, ValidationFailed

SKU_RE = re.compile(r"^[A-Za-z0-9\-]+$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PRICE = Decimal("0.01")
MAX_PRICE = Decimal("999999.99")


def _length(errors: List[FieldError], field: str, value: Optional[str], lo: int, hi: int, required: bool = True):
    if value is None or value == "":
        if required:
            errors.append(FieldError(field, "is required"))
        return
    if not lo <= len(value) <= hi:
        errors.append(FieldError(field, f"must be between {lo} and {hi} characters"))


def validate_price(price: Optional[Decimal]) -> List[FieldError]:
    if price is None:
        return [FieldError("price", "is required")]
    errors = []
    if not MIN_PRICE <= price <= MAX_PRICE:
        errors.append(FieldError("price", f"must be between {MIN_PRICE} and {MAX_PRICE}"))
    if price != price.quantize(Decimal("0.01")):
        errors.append(FieldError("price", "must have at most 2 decimal places"))
    return errors


def validate_product(data: schemas.ProductCreate) -> List[FieldError]:
    errors: List[FieldError] = []
    _length(errors, "name", data.name, 3, 100)
    _length(errors, "description", data.description, 10, 500, required=False)
    errors.extend(validate_price(data.price))
    if data.stock is None or data.stock < 0:
        errors.append(FieldError("stock", "cannot be negative"))
    if data.sku:
        _length(errors, "sku", data.sku, 3, 50)
        if not SKU_RE.match(data.sku):
            errors.append(FieldError("sku", "may only contain letters, digits and hyphens"))
    return errors


def validate_product_update(data: schemas.ProductUpdate) -> List[FieldError]:
    errors: List[FieldError] = []
    if data.name is not None:
        _length(errors, "name", data.name, 3, 100)
    _length(errors, "description", data.description, 10, 500, required=False)
    if data.price is not None:
        errors.extend(validate_price(data.price))
    if data.stock is not None and data.stock < 0:
        errors.append(FieldError("stock", "cannot be negative"))
    if data.sku:
        _length(errors, "sku", data.sku, 3, 50)
        if not SKU_RE.match(data.sku):
            errors.append(FieldError("sku", "may only contain letters, digits and hyphens"))
    return errors


def validate_user(data: schemas.UserCreate) -> List[FieldError]:
    errors: List[FieldError] = []
    _length(errors, "name", data.name, 3, 100)
    _length(errors, "email", data.email, 3, 150)
    if data.email and not EMAIL_RE.match(data.email):
        errors.append(FieldError("email", "is not a valid email address"))
    _length(errors, "password", data.password, 6, 100, required=False)
    _length(errors, "phone_number", data.phone_number, 1, 15, required=False)
    _length(errors, "address", data.address, 1, 200, required=False)
    return errors


def validate_user_update(data: schemas.UserUpdate) -> List[FieldError]:
    errors: List[FieldError] = []
    if data.name is not None:
        _length(errors, "name", data.name, 3, 100)
    if data.email is not None:
        _length(errors, "email", data.email, 3, 150)
        if data.email and not EMAIL_RE.match(data.email):
            errors.append(FieldError("email", "is not a valid email address"))
    _length(errors, "password", data.password, 6, 100, required=False)
    _length(errors, "phone_number", data.phone_number, 1, 15, required=False)
    _length(errors, "address", data.address, 1, 200, required=False)
    return errors


def validate_order_header(data: schemas.OrderCreate) -> List[FieldError]:
    errors: List[FieldError] = []
    if not data.user_id:
        errors.append(FieldError("user_id", "is required"))
    _length(errors, "notes", data.notes, 0, 500, required=False)
    _length(errors, "shipping_address", data.shipping_address, 0, 200, required=False)
    if not data.items:
        errors.append(FieldError("items", "at least one product must be added to the order"))
    return errors


def ensure_valid(errors: List[FieldError]) -> None:
    if errors:
        raise ValidationFailed(errors)
