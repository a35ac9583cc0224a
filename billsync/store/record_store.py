"""
On-device record store for products and bills.

The store is an explicitly constructed object over a key-value backend; hosts
decide how many instances exist. Every public method takes the store's
re-entrant lock and persists before returning, so callers on other threads
never observe a half-applied change. Compound read-modify-write sequences
(the sync merge, bill allocation) hold the lock across the whole sequence via
`locked()`.
"""

from __future__ import annotations

import contextlib
import threading
from datetime import datetime
from typing import Any, Callable, Generator, Iterable, List, Mapping, Optional

from billsync.allocator import DEFAULT_PREFIX, DEFAULT_WIDTH, next_bill_number
from billsync.domain.models import ZERO, Bill, DashboardStats, Product, utcnow
from billsync.errors import RecordNotFoundError
from billsync.reconcile import dedupe_bills, has_duplicate_bill_numbers
from billsync.store.backends import KeyValueBackend, MemoryBackend
from billsync.utils.logging import get_logger

log = get_logger(__name__)

PRODUCTS_KEY = "products"
BILLS_KEY = "bills"
DEFAULT_LOW_STOCK_THRESHOLD = 10

_IMMUTABLE_PRODUCT_FIELDS = frozenset({"id", "created_at"})


class RecordStore:
    """
    Products and bills with bill-number uniqueness enforced on every write.

    Parameters
    ----------
    backend : KeyValueBackend, optional
        Persistence backend. Defaults to an in-memory backend.
    low_stock_threshold : int
        Products with `stock` strictly below this count as low stock.
    bill_prefix, bill_number_width :
        Format of allocated bill numbers (see allocator.next_bill_number).
    """

    def __init__(
        self,
        backend: Optional[KeyValueBackend] = None,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
        bill_prefix: str = DEFAULT_PREFIX,
        bill_number_width: int = DEFAULT_WIDTH,
    ) -> None:
        self.backend = backend if backend is not None else MemoryBackend()
        self.low_stock_threshold = low_stock_threshold
        self.bill_prefix = bill_prefix
        self.bill_number_width = bill_number_width
        self._lock = threading.RLock()

    @contextlib.contextmanager
    def locked(self) -> Generator["RecordStore", None, None]:
        """
        Hold the store lock across several calls.

        Example
        -------
            with store.locked():
                bills = store.get_all_bills()
                store.set_all_bills(transform(bills))
        """
        with self._lock:
            yield self

    # Products

    def _read_products(self) -> List[Product]:
        return [Product.model_validate(raw) for raw in self.backend.get(PRODUCTS_KEY) or []]

    def _write_products(self, products: Iterable[Product]) -> None:
        self.backend.set(PRODUCTS_KEY, [p.model_dump(mode="json") for p in products])

    def get_all_products(self) -> List[Product]:
        with self._lock:
            return self._read_products()

    def get_product(self, product_id: str) -> Optional[Product]:
        with self._lock:
            for product in self._read_products():
                if product.id == product_id:
                    return product
        return None

    def set_all_products(self, products: Iterable[Product]) -> None:
        with self._lock:
            self._write_products(products)

    def add_product(self, product: Product) -> Product:
        with self._lock:
            products = self._read_products()
            products.append(product)
            self._write_products(products)
        return product

    def update_product(self, product_id: str, updates: Mapping[str, Any]) -> Product:
        """
        Apply `updates` over the stored product and stamp `updated_at`.

        Raises
        ------
        ValueError
            If `updates` tries to change `id` or `created_at`.
        RecordNotFoundError
            If no product has this id.
        """
        forbidden = _IMMUTABLE_PRODUCT_FIELDS.intersection(updates)
        if forbidden:
            raise ValueError(f"Cannot update immutable product fields: {', '.join(sorted(forbidden))}")

        with self._lock:
            products = self._read_products()
            for index, product in enumerate(products):
                if product.id != product_id:
                    continue
                data = product.model_dump()
                data.update(updates)
                data["updated_at"] = utcnow()
                updated = Product.model_validate(data)
                products[index] = updated
                self._write_products(products)
                return updated
        raise RecordNotFoundError(f"Product {product_id!r} not found")

    def delete_product(self, product_id: str) -> bool:
        with self._lock:
            products = self._read_products()
            remaining = [p for p in products if p.id != product_id]
            if len(remaining) == len(products):
                return False
            self._write_products(remaining)
        return True

    # Bills

    def _read_bills(self) -> List[Bill]:
        return [Bill.model_validate(raw) for raw in self.backend.get(BILLS_KEY) or []]

    def _write_bills(self, bills: Iterable[Bill]) -> None:
        self.backend.set(BILLS_KEY, [b.model_dump(mode="json") for b in bills])

    def get_all_bills(self) -> List[Bill]:
        """
        Return bills unique by bill_number.

        If the persisted collection holds duplicates (older data, a crash
        between writes, a hand-edited file), the compacted form is written
        back before returning.
        """
        with self._lock:
            stored = self._read_bills()
            if not has_duplicate_bill_numbers(stored):
                return stored
            compacted = dedupe_bills(stored)
            log.warning(
                "Compacted duplicate bill numbers in store",
                extra={"stored": len(stored), "kept": len(compacted)},
            )
            self._write_bills(compacted)
            return compacted

    def get_bill(self, bill_number: str) -> Optional[Bill]:
        for bill in self.get_all_bills():
            if bill.bill_number == bill_number:
                return bill
        return None

    def set_all_bills(self, bills: Iterable[Bill]) -> None:
        with self._lock:
            self._write_bills(dedupe_bills(bills))

    def add_bill(self, bill: Bill) -> Bill:
        """Insert a bill, replacing any bill with the same number regardless of age."""
        with self._lock:
            bills = [b for b in self.get_all_bills() if b.bill_number != bill.bill_number]
            bills.append(bill)
            self._write_bills(bills)
        return bill

    def allocate_bill(self, build: Callable[[str], Bill]) -> Bill:
        """
        Allocate the next bill number and insert the bill built for it.

        Allocation and insert run under one lock hold, so two concurrent
        callers can never receive the same number.
        """
        with self._lock:
            bill_number = next_bill_number(
                self.get_all_bills(), prefix=self.bill_prefix, width=self.bill_number_width
            )
            bill = build(bill_number)
            if bill.bill_number != bill_number:
                raise ValueError(
                    f"Bill builder returned {bill.bill_number!r}, expected {bill_number!r}"
                )
            return self.add_bill(bill)

    def delete_bills(self, bill_numbers: Iterable[str]) -> int:
        """Remove the bills with these numbers; returns how many were removed."""
        doomed = set(bill_numbers)
        with self._lock:
            bills = self.get_all_bills()
            remaining = [b for b in bills if b.bill_number not in doomed]
            self._write_bills(remaining)
        return len(bills) - len(remaining)

    def clear_bills(self) -> None:
        with self._lock:
            self._write_bills([])

    # Stats

    def get_dashboard_stats(self, now: Optional[datetime] = None) -> DashboardStats:
        """
        Headline numbers for the dashboard.

        "Today" is the local calendar day containing `now` (defaults to the
        current time), 00:00:00 through 23:59:59.999999.
        """
        with self._lock:
            bills = self.get_all_bills()
            products = self._read_products()

        today = (now or datetime.now()).astimezone().date()
        today_bills = [b for b in bills if b.created_at.astimezone().date() == today]

        return DashboardStats(
            today_revenue=sum((b.total for b in today_bills), ZERO),
            today_bills=len(today_bills),
            total_revenue=sum((b.total for b in bills), ZERO),
            total_products=len(products),
            low_stock=sum(1 for p in products if p.stock < self.low_stock_threshold),
        )


__all__ = ["BILLS_KEY", "PRODUCTS_KEY", "RecordStore"]
