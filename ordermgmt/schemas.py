from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, PositiveInt
from pydantic.config import ConfigDict

from .models import OrderStatus, UserRole


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=1, max_length=150)
    role: UserRole = UserRole.CUSTOMER
    password: Optional[str] = Field(default=None)
    phone_number: Optional[str] = Field(default=None)
    address: Optional[str] = Field(default=None)


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[UserRole] = None
    # a new password is re-hashed; omitted keeps the current one
    password: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    is_active: Optional[bool] = None


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class ProductCreate(BaseModel):
    name: str
    description: Optional[str] = None
    price: Decimal
    stock: int = 0
    sku: Optional[str] = None
    is_active: bool = True


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    # target stock level; the difference is applied as a ledger adjustment
    stock: Optional[int] = None
    sku: Optional[str] = None
    is_active: Optional[bool] = None


class ProductRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    stock: int
    sku: Optional[str] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class OrderLineIn(BaseModel):
    product_id: PositiveInt
    # not constrained here: non-positive quantities are reported by the reconciler
    quantity: int


class OrderCreate(BaseModel):
    user_id: PositiveInt
    order_date: Optional[datetime] = None
    notes: Optional[str] = None
    shipping_address: Optional[str] = None
    items: List[OrderLineIn] = Field(default_factory=list)


class OrderUpdate(OrderCreate):
    pass


class StatusChange(BaseModel):
    status: OrderStatus


class OrderItemRead(BaseModel):
    id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderRead(BaseModel):
    id: int
    user_id: int
    order_date: datetime
    status: OrderStatus
    total: Decimal
    notes: Optional[str] = None
    shipping_address: Optional[str] = None
    items: List[OrderItemRead] = []

    model_config = ConfigDict(from_attributes=True)


class Notification(BaseModel):
    level: str = "info"
    message: str


class OrderResult(BaseModel):
    order: Optional[OrderRead] = None
    messages: List[Notification] = []


class OrderFilter(BaseModel):
    search: Optional[str] = None
    status: Optional[OrderStatus] = None
    user_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_total: Optional[Decimal] = None
    max_total: Optional[Decimal] = None
    sort_by: str = "date_desc"
