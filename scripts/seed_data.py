"""
Demo data seeding script for billsync.

Generates a deterministic pseudo-random catalogue and sales history, writes it
into the local record store, and can export the sheet-shaped rows as CSV for
importing into a fresh spreadsheet.
"""

from __future__ import annotations

import csv
import random
import sys
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

import typer

from billsync.allocator import next_bill_number
from billsync.billing import compute_totals, line_item
from billsync.config import get_settings
from billsync.domain.models import Bill, Product
from billsync.domain.rows import RawRow, bill_to_row, product_to_row
from billsync.store.backends import JsonFileBackend
from billsync.store.record_store import RecordStore

app = typer.Typer(help="Generate demo products and bills into the local store.")

_NAMES = [
    "Bangles",
    "Hair Clip",
    "Bindi Pack",
    "Kajal",
    "Nail Polish",
    "Earrings",
    "Comb",
    "Lipstick",
    "Hand Mirror",
    "Safety Pins",
]


def _generate_products(count: int, seed: int) -> List[Product]:
    rng = random.Random(seed)
    now = datetime.now(timezone.utc)
    products = []
    for i in range(count):
        base = _NAMES[i % len(_NAMES)]
        suffix = f" {i // len(_NAMES) + 1}" if i >= len(_NAMES) else ""
        products.append(
            Product(
                id=f"demo-prod-{i + 1:04d}",
                code=f"P{i + 1:03d}",
                name=f"{base}{suffix}",
                price=Decimal(rng.randint(10, 500)),
                stock=rng.randint(0, 60),
                created_at=now,
                updated_at=now,
            )
        )
    return products


def _generate_bills(products: List[Product], count: int, days: int, seed: int) -> List[Bill]:
    rng = random.Random(seed + 1)
    now = datetime.now(timezone.utc)
    bills: List[Bill] = []
    for i in range(count):
        picks = rng.sample(products, k=min(len(products), rng.randint(1, 4)))
        items = [line_item(p, rng.randint(1, 3)) for p in picks]
        totals = compute_totals(items, discount=rng.choice([0, 0, 5, 10]), tax=rng.choice([0, 5]))
        bills.append(
            Bill(
                id=f"demo-bill-{i + 1:04d}",
                bill_number=next_bill_number(bills),
                items=items,
                item_ids=",".join(item.product_id for item in items),
                subtotal=totals.subtotal,
                discount=totals.discount,
                discount_amount=totals.discount_amount,
                tax=totals.tax,
                tax_amount=totals.tax_amount,
                total=totals.total,
                created_at=now - timedelta(days=rng.randint(0, days), minutes=rng.randint(0, 600)),
            )
        )
    return bills


def _write_rows_csv(csv_path: Path, rows: List[RawRow]) -> None:
    if not rows:
        return
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)


@app.command()
def main(
    products: int = typer.Option(20, "--products", "-p", help="Number of products."),
    bills: int = typer.Option(50, "--bills", "-b", help="Number of bills."),
    days: int = typer.Option(30, "--days", help="Spread bills over this many past days."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    store_path: Optional[Path] = typer.Option(
        None, "--store", help="Store file (default from settings)."
    ),
    export_dir: Optional[Path] = typer.Option(
        None, "--export", "-o", help="Also write products.csv and bills.csv here."
    ),
) -> None:
    """
    Replace the local store contents with generated demo data.
    """
    start = time.perf_counter()
    path = store_path or get_settings().store_path
    catalogue = _generate_products(products, seed)
    sales = _generate_bills(catalogue, bills, days, seed) if catalogue else []

    store = RecordStore(JsonFileBackend(path))
    store.set_all_products(catalogue)
    store.set_all_bills(sales)
    typer.echo(
        f"Seeded {len(catalogue)} products and {len(sales)} bills -> {path} "
        f"in {time.perf_counter() - start:.2f}s"
    )

    if export_dir:
        export_dir.mkdir(parents=True, exist_ok=True)
        _write_rows_csv(export_dir / "products.csv", [product_to_row(p) for p in catalogue])
        _write_rows_csv(export_dir / "bills.csv", [bill_to_row(b) for b in sales])
        typer.echo(f"Exported sheet rows to {export_dir}")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
