"""
Mapping between raw remote sheet rows and domain models.

Remote rows are loose dicts keyed by sheet column headers; values arrive as
strings, numbers or blanks depending on how the sheet was edited. Every
mapping here is total: unparsable numbers become 0, unparsable dates become
"now", missing identifiers are synthesized, and a row that still cannot form
a valid model is dropped (logged) instead of failing the whole sync.

Synthesized identifiers are derived from the row itself (table, position and
content), so the same sheet row maps to the same id on every fetch.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from billsync.domain.models import ZERO, Bill, NewUser, Product, User, UserRole, utcnow
from billsync.utils.logging import get_logger

log = get_logger(__name__)

RawRow = Dict[str, Any]

# Sheet column headers. Alternatives are tried in order.
PRODUCT_ID_COLUMNS = ("Id", "ID")
PRODUCT_UNIT_COLUMN = "Unit(kg,cm,litter)"
PRODUCT_STOCK_COLUMNS = ("Available Qty", "Quantity")
BILL_ID_COLUMNS = ("Id", "ID")
BILL_NUMBER_COLUMNS = ("Bill Number", "Bill No")

_ROW_ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "billsync/sheet-row")

_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y",
)


def _first(row: Mapping[str, Any], columns: Iterable[str]) -> Any:
    for column in columns:
        value = row.get(column)
        if value is not None and value != "":
            return value
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def row_id(table: str, index: int, *parts: Any) -> str:
    """Stable id for a sheet row that has none."""
    key = "|".join([table, str(index), *(_text(part) for part in parts)])
    return str(uuid.uuid5(_ROW_ID_NAMESPACE, key))


def parse_number(value: Any) -> Decimal:
    """Parse a sheet cell as a finite Decimal, falling back to 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    return number if number.is_finite() else ZERO


def parse_timestamp(value: Any, default: Optional[datetime] = None) -> datetime:
    """Parse a sheet date cell; anything unreadable maps to `default` (now)."""
    fallback = default or utcnow()
    if isinstance(value, datetime):
        return value
    text = _text(value)
    if not text:
        return fallback
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return fallback


def map_remote_products(rows: Optional[Iterable[RawRow]]) -> List[Product]:
    """
    Normalize remote product rows. Rows without a name are discarded.
    """
    if not rows:
        return []
    now = utcnow()
    products: List[Product] = []
    for index, row in enumerate(rows):
        if not isinstance(row, Mapping):
            log.warning("Discarding non-object product row", extra={"row_index": index})
            continue
        name = _text(row.get("Name"))
        if not name:
            continue
        code = _text(row.get("Code"))
        try:
            products.append(
                Product(
                    id=_text(_first(row, PRODUCT_ID_COLUMNS))
                    or row_id("products", index, name, code),
                    name=name,
                    code=code,
                    price=parse_number(row.get("Price")),
                    stock=int(parse_number(_first(row, PRODUCT_STOCK_COLUMNS))),
                    unit=_text(row.get(PRODUCT_UNIT_COLUMN)),
                    created_at=now,
                    updated_at=now,
                )
            )
        except ValidationError as exc:
            log.warning(
                "Discarding malformed product row",
                extra={"row_index": index, "error": str(exc)},
            )
    return products


def map_remote_bills(rows: Optional[Iterable[RawRow]]) -> List[Bill]:
    """
    Normalize remote bill rows. A row without a bill number keys on its id.
    """
    if not rows:
        return []
    bills: List[Bill] = []
    for index, row in enumerate(rows):
        if not isinstance(row, Mapping):
            log.warning("Discarding non-object bill row", extra={"row_index": index})
            continue
        bill_id = _text(_first(row, BILL_ID_COLUMNS)) or row_id(
            "bills",
            index,
            _first(row, BILL_NUMBER_COLUMNS),
            row.get("Date"),
            row.get("Customer Name"),
            row.get("Total Tendered"),
        )
        discount = parse_number(row.get("Discount"))
        try:
            bills.append(
                Bill(
                    id=bill_id,
                    bill_number=_text(_first(row, BILL_NUMBER_COLUMNS)) or bill_id,
                    customer_name=_text(row.get("Customer Name")),
                    customer_phone=_text(row.get("Phone")),
                    items=[],
                    item_ids=_text(row.get("Item Id")),
                    subtotal=parse_number(row.get("Sub total")),
                    discount=discount,
                    discount_amount=discount,
                    tax=ZERO,
                    tax_amount=ZERO,
                    total=parse_number(row.get("Total Tendered")),
                    created_at=parse_timestamp(row.get("Date")),
                )
            )
        except ValidationError as exc:
            log.warning(
                "Discarding malformed bill row",
                extra={"row_index": index, "error": str(exc)},
            )
    return bills


def map_remote_users(rows: Optional[Iterable[RawRow]]) -> List[User]:
    """
    Normalize rows of the users table. Rows without a username are discarded;
    the password column is never carried over.
    """
    if not rows:
        return []
    users: List[User] = []
    for row in rows:
        if not isinstance(row, Mapping) or not _text(row.get("Username")):
            continue
        users.append(
            User(
                id=_text(_first(row, ("Id", "ID"))),
                username=_text(row.get("Username")),
                full_name=_text(row.get("Full Name")),
                role=_text(row.get("Role")) or UserRole.STORE_USER.value,
                shop_name=_text(row.get("Shop Name")),
                email=_text(row.get("Email")),
                phone=_text(row.get("Phone")),
                status=_text(row.get("Status")),
            )
        )
    return users


def user_to_row(user: NewUser) -> RawRow:
    return {
        "Username": user.username,
        "Password": user.password,
        "Full Name": user.full_name,
        "Role": user.role,
        "Shop Name": user.shop_name,
        "Email": user.email,
        "Phone": user.phone,
        "Status": user.status,
    }


def _cell(value: Decimal) -> float | int:
    """Sheets stores numbers natively; send ints as ints."""
    return int(value) if value == value.to_integral_value() else float(value)


def product_to_row(product: Product) -> RawRow:
    return {
        "Id": product.id,
        "Code": product.code,
        "Name": product.name,
        "Price": _cell(product.price),
        PRODUCT_UNIT_COLUMN: product.unit,
        "Quantity": product.stock,
        "Available Qty": product.stock,
    }


def bill_to_row(bill: Bill) -> RawRow:
    return {
        "Id": bill.id,
        "Bill Number": bill.bill_number,
        "Date": bill.created_at.isoformat(),
        "Customer Name": bill.customer_name,
        "Phone": bill.customer_phone,
        "Item Id": bill.item_ids,
        "Sub total": _cell(bill.subtotal),
        "Discount": _cell(bill.discount),
        "Total Tendered": _cell(bill.total),
    }


__all__ = [
    "RawRow",
    "bill_to_row",
    "map_remote_bills",
    "map_remote_products",
    "map_remote_users",
    "parse_number",
    "parse_timestamp",
    "product_to_row",
    "row_id",
    "user_to_row",
]
