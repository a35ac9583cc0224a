"""
Domain models for billsync.

Products and Bills are immutable pydantic models; mutations produce a new
validated instance (see RecordStore.update_product). Money is Decimal and
every timestamp is timezone-aware: naive datetimes are read as local time,
which is how the point-of-sale terminal records them.
"""
from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List

from pydantic import BaseModel, Field, field_validator

ZERO = Decimal("0")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.astimezone()
    return value


class Product(BaseModel):
    """
    A sellable item with its stock level.
    """

    id: str = Field(default_factory=new_id, min_length=1, description="Stable unique identifier.")
    code: str = Field("", description="Optional shop code / barcode.")
    name: str = Field(..., min_length=1, description="Display name; required.")
    price: Decimal = Field(ZERO, ge=0, description="Unit price.")
    stock: int = Field(0, description="Units on hand.")
    unit: str = Field("", description="Unit of measure (kg, cm, litre...).")
    created_at: datetime = Field(default_factory=utcnow, description="Immutable once set.")
    updated_at: datetime = Field(default_factory=utcnow, description="Advanced on every local change.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "str_strip_whitespace": True,
    }

    @field_validator("created_at", "updated_at")
    @classmethod
    def aware_timestamps(cls, value: datetime) -> datetime:
        return _ensure_aware(value)


class LineItem(BaseModel):
    """
    One row of a bill. Manual items are ad-hoc entries without a backing Product.
    """

    product_id: str
    name: str
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., gt=0)
    total: Decimal
    manual: bool = False

    model_config = {"frozen": True}


class Bill(BaseModel):
    """
    A finalized sale. `bill_number` is the business key; `id` is internal.

    `items` and the tax/discount breakdown only exist locally: the remote sheet
    stores subtotal, discount and total, plus `item_ids` as a flat string.
    """

    id: str = Field(default_factory=new_id, min_length=1)
    bill_number: str = Field(..., min_length=1)
    customer_name: str = ""
    customer_phone: str = ""
    items: List[LineItem] = Field(default_factory=list)
    item_ids: str = ""
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax: Decimal = Field(ZERO, description="Tax rate in percent.")
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO
    created_at: datetime = Field(default_factory=utcnow)

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "str_strip_whitespace": True,
    }

    @field_validator("created_at")
    @classmethod
    def aware_created_at(cls, value: datetime) -> datetime:
        return _ensure_aware(value)


class DashboardStats(BaseModel):
    today_revenue: Decimal = ZERO
    today_bills: int = 0
    total_revenue: Decimal = ZERO
    total_products: int = 0
    low_stock: int = 0


class RevenuePoint(BaseModel):
    day: date
    revenue: Decimal = ZERO
    bills: int = 0


class UserRole(str, Enum):
    STORE_USER = "StoreUser"
    ADMIN = "Admin"


class User(BaseModel):
    """
    A login account kept in the sheet's users table. Passwords are never read back.
    """

    id: str = ""
    username: str = Field(..., min_length=1)
    full_name: str = ""
    role: str = UserRole.STORE_USER.value
    shop_name: str = ""
    email: str = ""
    phone: str = ""
    status: str = "active"

    model_config = {"frozen": True, "str_strip_whitespace": True}


class NewUser(User):
    """Account creation request; the web app assigns the id."""

    full_name: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1, repr=False)


__all__ = [
    "Bill",
    "DashboardStats",
    "LineItem",
    "NewUser",
    "Product",
    "RevenuePoint",
    "User",
    "UserRole",
    "new_id",
    "utcnow",
]
