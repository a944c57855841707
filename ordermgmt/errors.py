from typing import List, NamedTuple


class FieldError(NamedTuple):
    field: str
    message: str


class OrderError(Exception):
    """Base class for every error surfaced to callers of the order core."""

    code = "order_error"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class ProductNotFound(OrderError):
    code = "product_not_found"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"product not found (id: {product_id})")


class ProductInactive(OrderError):
    code = "product_inactive"

    def __init__(self, product_id: int, name: str = ""):
        self.product_id = product_id
        super().__init__(f"product {name or product_id} is not active")


class InsufficientStock(OrderError):
    code = "insufficient_stock"

    def __init__(self, product_id: int, available: int, requested: int, name: str = ""):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(f"insufficient stock for {name or product_id}: available {available}, requested {requested}")


class DuplicateLineItem(OrderError):
    code = "duplicate_line_item"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"product {product_id} appears more than once in the order")


class InvalidQuantity(OrderError):
    code = "invalid_quantity"

    def __init__(self, product_id: int, quantity: int, name: str = ""):
        self.product_id = product_id
        self.quantity = quantity
        super().__init__(f"quantity must be greater than 0 for {name or product_id} (got {quantity})")


class InvalidTransition(OrderError):
    code = "invalid_transition"

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f"status transition from {current.value} to {requested.value} is not allowed")


class OrderLocked(OrderError):
    code = "order_locked"

    def __init__(self, order_id: int, status):
        self.order_id = order_id
        self.status = status
        super().__init__(f"order {order_id} is {status.value} and can no longer be modified")


class OrderNotFound(OrderError):
    code = "order_not_found"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"order not found (id: {order_id})")


class CustomerNotFound(OrderError):
    code = "customer_not_found"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"customer not found or inactive (id: {user_id})")


class ProductInUse(OrderError):
    code = "product_in_use"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"product {product_id} is referenced by existing orders and cannot be deleted")


class DuplicateEmail(OrderError):
    code = "duplicate_email"


class DuplicateSku(OrderError):
    code = "duplicate_sku"


class PermissionDenied(OrderError):
    code = "forbidden"


class ValidationFailed(OrderError):
    code = "validation_failed"

    def __init__(self, errors: List[FieldError]):
        self.errors = list(errors)
        super().__init__("; ".join(f"{e.field}: {e.message}" for e in self.errors))


class ConcurrencyConflict(OrderError):
    code = "concurrency_conflict"


class PersistenceFailure(OrderError):
    code = "persistence_failure"
