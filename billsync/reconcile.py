"""
Reconciliation of a remote sheet snapshot with the local record store.

The remote sheet is schema-limited: it has no timestamps for products and no
line items or tax breakdown for bills. The merge therefore adopts remote
values for what the sheet can represent and keeps local values for what it
cannot. Nothing is ever dropped because it is missing remotely; such records
are kept and handed back in `to_push` so the caller can send them outward.

Both merges are pure and idempotent: merging the same snapshot twice yields
the same collections.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Iterable, List, Sequence, TypeVar

from billsync.domain.models import Bill, Product

T = TypeVar("T")

# Bill fields the sheet cannot carry faithfully; local values win when present.
LOCAL_BILL_FIELDS = (
    "items",
    "item_ids",
    "subtotal",
    "discount",
    "discount_amount",
    "tax",
    "tax_amount",
    "total",
    "customer_name",
    "customer_phone",
)

# Product fields the sheet never carries; always kept from the local record.
LOCAL_PRODUCT_FIELDS = ("created_at", "updated_at")


@dataclass(frozen=True)
class MergeResult(Generic[T]):
    """
    Output of a merge.

    Attributes
    ----------
    merged : list
        Collection to persist locally.
    to_push : list
        Local records the remote has not seen yet.
    remote_empty : bool
        True when the remote snapshot was empty while local data existed
        ("remote not yet seeded"); every local record is then in `to_push`.
    """

    merged: List[T] = field(default_factory=list)
    to_push: List[T] = field(default_factory=list)
    remote_empty: bool = False


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, tuple)):
        return len(value) > 0
    return True


def dedupe_bills(bills: Iterable[Bill]) -> List[Bill]:
    """
    Collapse bills sharing a bill_number, keeping the latest `created_at`.

    Ties go to the record seen later. The result keeps the position of the
    first occurrence of each bill number.
    """
    by_number: Dict[str, Bill] = {}
    for bill in bills:
        current = by_number.get(bill.bill_number)
        if current is None or bill.created_at >= current.created_at:
            by_number[bill.bill_number] = bill
    return list(by_number.values())


def has_duplicate_bill_numbers(bills: Sequence[Bill]) -> bool:
    return len({b.bill_number for b in bills}) != len(bills)


def dedupe_products(products: Iterable[Product]) -> List[Product]:
    """One product per id: the last one seen, at the first one's position."""
    by_id: Dict[str, Product] = {}
    for product in products:
        by_id[product.id] = product
    return list(by_id.values())


def merge_products(remote: Sequence[Product], local: Sequence[Product]) -> MergeResult[Product]:
    """
    Merge remote products into local ones, keyed by `id`.

    Remote field values win, except timestamps which come from the local
    record. Local products absent from the snapshot are appended unchanged.
    Rows sharing an id (a push that landed twice) collapse to the last one.
    """
    remote = dedupe_products(remote)
    local = dedupe_products(local)
    local_by_id = {p.id: p for p in local}
    remote_ids = set()
    merged: List[Product] = []
    for product in remote:
        remote_ids.add(product.id)
        existing = local_by_id.get(product.id)
        if existing is None:
            merged.append(product)
            continue
        merged.append(
            product.model_copy(
                update={name: getattr(existing, name) for name in LOCAL_PRODUCT_FIELDS}
            )
        )

    local_only = [p for p in local if p.id not in remote_ids]
    merged.extend(local_only)
    return MergeResult(
        merged=merged,
        to_push=local_only,
        remote_empty=not remote and bool(local),
    )


def merge_bills(remote: Sequence[Bill], local: Sequence[Bill]) -> MergeResult[Bill]:
    """
    Merge remote bills into local ones, keyed by `bill_number`.

    The remote record is the base; fields in LOCAL_BILL_FIELDS are taken from
    the local record whenever the local value is present. Local bills whose
    number is absent from the snapshot are appended. The result is deduplicated.
    """
    local_by_number: Dict[str, Bill] = {}
    for bill in dedupe_bills(local):
        local_by_number[bill.bill_number] = bill

    remote_numbers = set()
    merged: List[Bill] = []
    for bill in remote:
        remote_numbers.add(bill.bill_number)
        existing = local_by_number.get(bill.bill_number)
        if existing is None:
            merged.append(bill)
            continue
        overrides = {}
        for name in LOCAL_BILL_FIELDS:
            value = getattr(existing, name)
            if _present(value):
                overrides[name] = value
        merged.append(bill.model_copy(update=overrides))

    local_only = [b for b in local_by_number.values() if b.bill_number not in remote_numbers]
    merged.extend(local_only)
    return MergeResult(
        merged=dedupe_bills(merged),
        to_push=local_only,
        remote_empty=not remote and bool(local),
    )


__all__ = [
    "LOCAL_BILL_FIELDS",
    "LOCAL_PRODUCT_FIELDS",
    "MergeResult",
    "dedupe_bills",
    "dedupe_products",
    "has_duplicate_bill_numbers",
    "merge_bills",
    "merge_products",
]
