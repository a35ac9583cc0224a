from __future__ import annotations

import asyncio
import sys
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import typer
from pydantic import ValidationError

from billsync.allocator import next_bill_number
from billsync.analytics import PERIODS, period_range, revenue_by_day, search_bills
from billsync.billing import BillingService, line_item, manual_item
from billsync.config import Settings, get_settings
from billsync.domain.models import LineItem, NewUser, Product, UserRole
from billsync.errors import BillingError, BillsyncError, RecordNotFoundError
from billsync.gateway.sheets import SheetsGateway
from billsync.reporter import (
    print_bill_receipt,
    print_bill_summary,
    print_bills,
    print_dashboard,
    print_products,
    print_revenue,
    print_sync_report,
    print_users,
)
from billsync.store.backends import JsonFileBackend
from billsync.store.record_store import RecordStore
from billsync.sync.driver import SyncDriver, SyncTrigger
from billsync.sync.pusher import PushQueue
from billsync.utils.logging import configure_logging

app = typer.Typer(help="billsync: local-first billing with spreadsheet sync.")


def build_store(settings: Settings) -> RecordStore:
    return RecordStore(
        JsonFileBackend(settings.store_path),
        low_stock_threshold=settings.low_stock_threshold,
        bill_prefix=settings.bill_prefix,
        bill_number_width=settings.bill_number_width,
    )


def build_gateway(settings: Settings) -> SheetsGateway:
    return SheetsGateway(
        url=settings.sheets_web_app_url,
        timeout=settings.request_timeout,
        fetch_attempts=settings.fetch_attempts,
    )


def _setup() -> Settings:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return settings


def _report_push_failures(pusher: PushQueue) -> None:
    for failure in pusher.failures:
        typer.echo(
            f"Push failed ({failure.kind.value}/{failure.mode.value}, {failure.rows} row(s)): "
            f"{failure.error}",
            err=True,
        )


def _find_product(products: List[Product], key: str) -> Product:
    for product in products:
        if key in (product.id, product.code):
            return product
    raise typer.BadParameter(f"No product with id or code {key!r}", param_hint="--item")


def _parse_items(
    store: RecordStore, items: Optional[List[str]], manual: Optional[List[str]]
) -> List[LineItem]:
    """Turn `CODE[:QTY]` and `NAME:PRICE[:QTY]` options into line items."""
    products = store.get_all_products()
    lines: List[LineItem] = []
    try:
        for entry in items or []:
            key, _, quantity = entry.rpartition(":") if ":" in entry else (entry, "", "1")
            lines.append(line_item(_find_product(products, key), int(quantity)))
        for entry in manual or []:
            parts = entry.split(":")
            if len(parts) not in (2, 3):
                raise typer.BadParameter(
                    f"Expected NAME:PRICE[:QTY], got {entry!r}", param_hint="--manual"
                )
            quantity = int(parts[2]) if len(parts) == 3 else 1
            lines.append(manual_item(parts[0], parts[1], quantity))
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return lines


def _price(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise typer.BadParameter(f"Not a number: {value!r}", param_hint="--price") from exc


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"store={settings.store_path} | remote={settings.sheets_web_app_url or '<unset>'} | "
        f"interval={settings.sync_interval_seconds}s batch={settings.push_batch_size} "
        f"bill_prefix={settings.bill_prefix}"
    )


@app.command()
def sync() -> None:
    """
    Run one sync cycle and wait for its pushes to finish.
    """
    settings = _setup()
    store = build_store(settings)

    async def _run() -> bool:
        gateway = build_gateway(settings)
        try:
            driver = SyncDriver(store, gateway, push_batch_size=settings.push_batch_size)
            report = await driver.sync(SyncTrigger.MANUAL)
            await driver.pusher.drain()
        finally:
            await gateway.aclose()
        print_sync_report(report)
        _report_push_failures(driver.pusher)
        return report.ok

    if not asyncio.run(_run()):
        raise typer.Exit(code=1)


@app.command()
def watch(
    interval: Optional[float] = typer.Option(
        None, "--interval", "-i", help="Seconds between cycles (default from settings)."
    ),
    cycles: Optional[int] = typer.Option(
        None, "--cycles", "-n", help="Stop after this many cycles."
    ),
) -> None:
    """
    Sync periodically until interrupted.
    """
    settings = _setup()
    store = build_store(settings)

    async def _run() -> int:
        gateway = build_gateway(settings)
        driver = SyncDriver(store, gateway, push_batch_size=settings.push_batch_size)
        try:
            return await driver.run_periodic(
                interval=interval or settings.sync_interval_seconds, max_cycles=cycles
            )
        finally:
            await driver.pusher.drain()
            await gateway.aclose()

    ran = asyncio.run(_run())
    typer.echo(f"Completed {ran} sync cycle(s).")


@app.command()
def stats() -> None:
    """
    Show today's and overall revenue, product count and low stock.
    """
    settings = _setup()
    print_dashboard(build_store(settings).get_dashboard_stats())


@app.command()
def products() -> None:
    """
    List products in the local store.
    """
    settings = _setup()
    print_products(
        build_store(settings).get_all_products(),
        low_stock_threshold=settings.low_stock_threshold,
    )


@app.command()
def bills(
    search: str = typer.Option("", "--search", "-q", help="Match bill number, customer or phone."),
    date_from: Optional[datetime] = typer.Option(None, "--from", formats=["%Y-%m-%d"]),
    date_to: Optional[datetime] = typer.Option(None, "--to", formats=["%Y-%m-%d"]),
) -> None:
    """
    List bills, newest first.
    """
    settings = _setup()
    found = search_bills(
        build_store(settings).get_all_bills(),
        term=search,
        date_from=date_from.date() if date_from else None,
        date_to=date_to.date() if date_to else None,
    )
    print_bills(found)
    print_bill_summary(found)


@app.command("show-bill")
def show_bill(bill_number: str = typer.Argument(..., help="Bill number, e.g. SS07.")) -> None:
    """
    Print one bill as a receipt, line items included.
    """
    settings = _setup()
    bill = build_store(settings).get_bill(bill_number.strip())
    if bill is None:
        typer.echo(f"No bill {bill_number!r}", err=True)
        raise typer.Exit(code=1)
    print_bill_receipt(bill)


@app.command()
def revenue(
    period: str = typer.Option(
        "this_month", "--period", "-p", help=f"One of: {', '.join(PERIODS)}."
    ),
) -> None:
    """
    Revenue per day for a reporting period.
    """
    settings = _setup()
    try:
        start, end = period_range(period)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--period") from exc
    points = revenue_by_day(build_store(settings).get_all_bills(), start, end)
    print_revenue(points, title=f"Revenue ({period})")


@app.command("next-bill")
def next_bill() -> None:
    """
    Show the bill number the next sale will receive.
    """
    settings = _setup()
    typer.echo(
        next_bill_number(
            build_store(settings).get_all_bills(),
            prefix=settings.bill_prefix,
            width=settings.bill_number_width,
        )
    )


@app.command("create-bill")
def create_bill(
    items: Optional[List[str]] = typer.Option(
        None, "--item", help="Product id or code, optionally :QTY. Repeatable."
    ),
    manual: Optional[List[str]] = typer.Option(
        None, "--manual", help="Ad-hoc line NAME:PRICE[:QTY]. Repeatable."
    ),
    discount: str = typer.Option("0", "--discount", help="Flat discount."),
    tax: str = typer.Option("0", "--tax", help="Tax rate in percent."),
    customer: str = typer.Option("", "--customer", help="Customer name."),
    phone: str = typer.Option("", "--phone", help="Customer phone."),
) -> None:
    """
    Record a sale, take it out of stock and push it to the sheet.
    """
    settings = _setup()
    store = build_store(settings)
    lines = _parse_items(store, items, manual)

    async def _run():
        gateway = build_gateway(settings)
        try:
            pusher = PushQueue(gateway)
            service = BillingService(store, pusher)
            bill = await service.create_bill(
                lines, discount=discount, tax=tax, customer_name=customer, customer_phone=phone
            )
            await pusher.drain()
        finally:
            await gateway.aclose()
        return bill, pusher

    try:
        bill, pusher = asyncio.run(_run())
    except BillingError as exc:
        typer.echo(f"Bill rejected: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    print_bill_receipt(bill)
    _report_push_failures(pusher)


@app.command("add-product")
def add_product(
    name: str = typer.Argument(..., help="Product name."),
    price: str = typer.Option(..., "--price", help="Unit price."),
    stock: int = typer.Option(0, "--stock", help="Units on hand."),
    code: str = typer.Option("", "--code", help="Shop code."),
    unit: str = typer.Option("", "--unit", help="Unit of measure."),
) -> None:
    """
    Add a product locally and push it to the sheet.
    """
    settings = _setup()
    store = build_store(settings)

    async def _run() -> None:
        gateway = build_gateway(settings)
        try:
            pusher = PushQueue(gateway)
            service = BillingService(store, pusher)
            product = await service.add_product(
                name=name, price=price, stock=stock, code=code, unit=unit
            )
            await pusher.drain()
        finally:
            await gateway.aclose()
        typer.echo(f"Added {product.name} ({product.id})")
        _report_push_failures(pusher)

    asyncio.run(_run())


@app.command("update-product")
def update_product(
    product_id: str = typer.Argument(..., help="Product id."),
    name: Optional[str] = typer.Option(None, "--name"),
    price: Optional[str] = typer.Option(None, "--price"),
    stock: Optional[int] = typer.Option(None, "--stock"),
    code: Optional[str] = typer.Option(None, "--code"),
    unit: Optional[str] = typer.Option(None, "--unit"),
) -> None:
    """
    Change fields of a product and upsert it to the sheet.
    """
    updates: Dict[str, Any] = {
        field: value
        for field, value in (
            ("name", name),
            ("price", _price(price) if price is not None else None),
            ("stock", stock),
            ("code", code),
            ("unit", unit),
        )
        if value is not None
    }
    if not updates:
        raise typer.BadParameter("Nothing to update; pass at least one option")
    settings = _setup()
    store = build_store(settings)

    async def _run():
        gateway = build_gateway(settings)
        try:
            pusher = PushQueue(gateway)
            product = await BillingService(store, pusher).update_product(product_id, updates)
            await pusher.drain()
        finally:
            await gateway.aclose()
        return product, pusher

    try:
        product, pusher = asyncio.run(_run())
    except RecordNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"Updated {product.name} ({product.id})")
    _report_push_failures(pusher)


@app.command("delete-product")
def delete_product(
    product_id: str = typer.Argument(..., help="Product id."),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    """
    Delete a product locally and from the sheet.
    """
    settings = _setup()
    if not yes:
        typer.confirm(f"Delete product {product_id}?", abort=True)
    store = build_store(settings)

    async def _run():
        gateway = build_gateway(settings)
        try:
            pusher = PushQueue(gateway)
            removed = await BillingService(store, pusher).delete_product(product_id)
            await pusher.drain()
        finally:
            await gateway.aclose()
        return removed, pusher

    removed, pusher = asyncio.run(_run())
    if not removed:
        typer.echo(f"No product {product_id!r}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Deleted product {product_id}")
    _report_push_failures(pusher)


@app.command("clear-bills")
def clear_bills(
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    """
    Delete all bills from the sheet, then locally.
    """
    settings = _setup()
    if not yes:
        typer.confirm("Delete all bills from the sheet? This cannot be undone.", abort=True)
    store = build_store(settings)

    async def _run() -> int:
        gateway = build_gateway(settings)
        try:
            return await BillingService(store, PushQueue(gateway)).clear_bills()
        finally:
            await gateway.aclose()

    try:
        cleared = asyncio.run(_run())
    except BillsyncError as exc:
        typer.echo(f"Could not delete bills: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Deleted {cleared} bill(s).")


@app.command()
def users() -> None:
    """
    List the accounts registered on the sheet.
    """
    settings = _setup()

    async def _run():
        gateway = build_gateway(settings)
        try:
            return await gateway.list_users()
        finally:
            await gateway.aclose()

    try:
        found = asyncio.run(_run())
    except BillsyncError as exc:
        typer.echo(f"Could not list users: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    print_users(found)


@app.command("add-user")
def add_user(
    username: str = typer.Argument(..., help="Login name."),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True),
    full_name: str = typer.Option(..., "--full-name", help="Display name."),
    role: UserRole = typer.Option(UserRole.STORE_USER, "--role", case_sensitive=False),
    shop_name: str = typer.Option("", "--shop"),
    email: str = typer.Option("", "--email"),
    phone: str = typer.Option("", "--phone"),
) -> None:
    """
    Create an account on the sheet.
    """
    try:
        user = NewUser(
            username=username,
            password=password,
            full_name=full_name,
            role=role.value,
            shop_name=shop_name,
            email=email,
            phone=phone,
        )
    except ValidationError as exc:
        raise typer.BadParameter("Username, password and full name are required") from exc
    settings = _setup()

    async def _run() -> None:
        gateway = build_gateway(settings)
        try:
            await gateway.create_user(user)
        finally:
            await gateway.aclose()

    try:
        asyncio.run(_run())
    except BillsyncError as exc:
        typer.echo(f"Could not create user: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Created user {user.username} ({user.role})")


@app.command("delete-user")
def delete_user(
    user_id: str = typer.Argument(..., help="User id as shown by `users`."),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    """
    Delete an account from the sheet.
    """
    settings = _setup()
    if not yes:
        typer.confirm(f"Delete user {user_id}?", abort=True)

    async def _run() -> None:
        gateway = build_gateway(settings)
        try:
            await gateway.delete_user(user_id)
        finally:
            await gateway.aclose()

    try:
        asyncio.run(_run())
    except BillsyncError as exc:
        typer.echo(f"Could not delete user: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Deleted user {user_id}")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
