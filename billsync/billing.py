"""
Product and bill mutation flows.

These are the write paths the point-of-sale screens use: every change is
applied to the local store first and then pushed to the remote sheet without
waiting for it. A failed push shows up on the PushQueue's failure channel;
the local change stands.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from billsync.domain.models import ZERO, Bill, LineItem, Product, new_id
from billsync.domain.rows import bill_to_row, parse_number, product_to_row
from billsync.errors import BillingError, EmptyBillError, InsufficientStockError
from billsync.gateway.abstract import PushMode, RowKind
from billsync.store.record_store import RecordStore
from billsync.sync.driver import SyncDriver, SyncTrigger
from billsync.sync.pusher import PushQueue
from billsync.utils.logging import get_logger

log = get_logger(__name__)

CENT = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class BillTotals:
    subtotal: Decimal
    discount: Decimal
    discount_amount: Decimal
    tax: Decimal
    tax_amount: Decimal
    total: Decimal


def line_item(product: Product, quantity: int) -> LineItem:
    if quantity <= 0:
        raise BillingError("Quantity must be positive")
    return LineItem(
        product_id=product.id,
        name=product.name,
        price=product.price,
        quantity=quantity,
        total=product.price * quantity,
    )


def manual_item(name: str, price: Any, quantity: int) -> LineItem:
    """An ad-hoc line not backed by a product; it never touches stock."""
    amount = parse_number(price)
    if not name.strip() or amount <= 0 or quantity <= 0:
        raise BillingError("Manual items need a name, a positive price and a positive quantity")
    return LineItem(
        product_id=new_id(),
        name=name.strip(),
        price=amount,
        quantity=quantity,
        total=amount * quantity,
        manual=True,
    )


def combine_items(items: Iterable[LineItem]) -> List[LineItem]:
    """Fold repeated lines of the same product into one, keeping first position."""
    combined: Dict[str, LineItem] = {}
    for item in items:
        current = combined.get(item.product_id)
        if current is None or item.manual:
            combined[item.product_id] = item
            continue
        quantity = current.quantity + item.quantity
        combined[item.product_id] = current.model_copy(
            update={"quantity": quantity, "total": current.price * quantity}
        )
    return list(combined.values())


def compute_totals(items: Iterable[LineItem], discount: Any = ZERO, tax: Any = ZERO) -> BillTotals:
    """
    Subtotal minus a flat discount, plus a percentage tax on the remainder.

    >>> from decimal import Decimal
    >>> t = compute_totals([], Decimal("0"), Decimal("0"))
    >>> t.total
    Decimal('0.00')
    """
    discount_value = parse_number(discount)
    tax_rate = parse_number(tax)
    if discount_value < 0 or tax_rate < 0:
        raise BillingError("Discount and tax must not be negative")
    subtotal = sum((item.total for item in items), ZERO)
    taxable = subtotal - discount_value
    tax_amount = _money(taxable * tax_rate / 100)
    return BillTotals(
        subtotal=_money(subtotal),
        discount=discount_value,
        discount_amount=discount_value,
        tax=tax_rate,
        tax_amount=tax_amount,
        total=_money(taxable + tax_amount),
    )


def _log_sync_crash(task: asyncio.Task[Any]) -> None:
    if task.cancelled() or task.exception() is None:
        return
    exc = task.exception()
    log.error(
        "[SYNC CRASHED] mutation",
        exc_info=exc,
        extra={"error": str(exc), "error_type": type(exc).__name__},
    )


class BillingService:
    """
    Local-first mutations with fire-and-forget remote pushes.

    Parameters
    ----------
    store : RecordStore
        Local working copy.
    pusher : PushQueue
        Outward push scheduler.
    driver : SyncDriver, optional
        When given, each mutation also schedules an opportunistic sync.
    """

    def __init__(
        self,
        store: RecordStore,
        pusher: PushQueue,
        driver: Optional[SyncDriver] = None,
    ) -> None:
        self.store = store
        self.pusher = pusher
        self.driver = driver
        self._background: Set[asyncio.Task[Any]] = set()

    def _after_mutation(self) -> None:
        if self.driver is None:
            return
        task = asyncio.get_running_loop().create_task(self.driver.sync(SyncTrigger.MUTATION))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        task.add_done_callback(_log_sync_crash)

    async def add_product(
        self,
        name: str,
        price: Any,
        stock: int,
        code: str = "",
        unit: str = "",
    ) -> Product:
        product = self.store.add_product(
            Product(name=name, code=code, price=parse_number(price), stock=stock, unit=unit)
        )
        log.info("Product added", extra={"product_id": product.id, "product_name": product.name})
        self.pusher.submit(RowKind.PRODUCTS, [product_to_row(product)], PushMode.APPEND)
        self._after_mutation()
        return product

    async def update_product(self, product_id: str, updates: Mapping[str, Any]) -> Product:
        product = self.store.update_product(product_id, updates)
        self.pusher.submit(RowKind.PRODUCTS, [product_to_row(product)], PushMode.UPSERT)
        self._after_mutation()
        return product

    async def delete_product(self, product_id: str) -> bool:
        removed = self.store.delete_product(product_id)
        if removed:
            self.pusher.submit(RowKind.PRODUCTS, [{"Id": product_id}], PushMode.DELETE)
            self._after_mutation()
        return removed

    async def create_bill(
        self,
        items: Iterable[LineItem],
        discount: Any = ZERO,
        tax: Any = ZERO,
        customer_name: str = "",
        customer_phone: str = "",
    ) -> Bill:
        """
        Record a sale: allocate a bill number, store the bill, take the sold
        quantities out of stock, then push the bill and the touched products.

        Raises
        ------
        EmptyBillError
            If there are no items.
        InsufficientStockError
            If a product line asks for more than is on hand. Nothing is
            written in that case.
        """
        lines = combine_items(items)
        if not lines:
            raise EmptyBillError("Add at least one item")
        totals = compute_totals(lines, discount, tax)

        def build(bill_number: str) -> Bill:
            return Bill(
                bill_number=bill_number,
                customer_name=customer_name,
                customer_phone=customer_phone,
                items=lines,
                item_ids=",".join(item.product_id for item in lines),
                **asdict(totals),
            )

        touched: List[Product] = []
        with self.store.locked():
            stock = {p.id: p.stock for p in self.store.get_all_products()}
            for item in lines:
                if item.manual:
                    continue
                available = stock.get(item.product_id, 0)
                if item.product_id not in stock or available < item.quantity:
                    raise InsufficientStockError(item.product_id, available, item.quantity)

            bill = self.store.allocate_bill(build)
            for item in lines:
                if not item.manual:
                    touched.append(
                        self.store.update_product(
                            item.product_id, {"stock": stock[item.product_id] - item.quantity}
                        )
                    )

        log.info(
            "Bill created",
            extra={"bill_number": bill.bill_number, "total": str(bill.total), "items": len(lines)},
        )
        self.pusher.submit(RowKind.BILLS, [bill_to_row(bill)], PushMode.APPEND)
        if touched:
            self.pusher.submit(
                RowKind.PRODUCTS, [product_to_row(p) for p in touched], PushMode.UPSERT
            )
        self._after_mutation()
        return bill

    async def clear_bills(self) -> int:
        """
        Delete every bill remotely, then the same bills locally.

        Unlike other mutations this one waits for the remote: if the delete
        fails the GatewayError propagates and local bills are kept. Bills
        created while the delete is in flight were not sent and are kept.
        """
        bills = self.store.get_all_bills()
        if not bills:
            return 0
        await self.pusher.gateway.push_rows(
            RowKind.BILLS, [{"Id": bill.id} for bill in bills], PushMode.DELETE
        )
        removed = self.store.delete_bills(bill.bill_number for bill in bills)
        log.info("Bills cleared", extra={"bills": removed})
        return removed


__all__ = [
    "BillTotals",
    "BillingService",
    "combine_items",
    "compute_totals",
    "line_item",
    "manual_item",
]
