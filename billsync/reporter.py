from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from billsync.analytics import total_revenue
from billsync.domain.models import Bill, DashboardStats, Product, RevenuePoint, User
from billsync.sync.driver import SyncReport


def _money(value: Decimal) -> str:
    return f"{value:,.2f}"


def _console(console: Optional[Console]) -> Console:
    return console or Console()


def print_dashboard(stats: DashboardStats, console: Optional[Console] = None) -> None:
    table = Table(title="Dashboard", box=box.ROUNDED, show_header=False)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right", style="bold green")
    table.add_row("Today's revenue", _money(stats.today_revenue))
    table.add_row("Today's bills", str(stats.today_bills))
    table.add_row("Total revenue", _money(stats.total_revenue))
    table.add_row("Products", str(stats.total_products))
    low_style = "bold red" if stats.low_stock else "green"
    table.add_row("Low stock", f"[{low_style}]{stats.low_stock}[/{low_style}]")
    _console(console).print(table)


def print_products(
    products: Sequence[Product], low_stock_threshold: int = 10, console: Optional[Console] = None
) -> None:
    out = _console(console)
    if not products:
        out.print("[yellow]No products.[/yellow]")
        return

    table = Table(title="Products", box=box.ROUNDED, caption="Sorted by name")
    table.add_column("Code", style="magenta", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Stock", justify="right")
    table.add_column("Id", style="dim", overflow="fold")

    for product in sorted(products, key=lambda p: p.name.lower()):
        stock = str(product.stock)
        if product.stock < low_stock_threshold:
            stock = f"[bold red]{stock}[/bold red]"
        table.add_row(product.code, product.name, _money(product.price), stock, product.id)
    out.print(table)


def print_bills(bills: Iterable[Bill], console: Optional[Console] = None) -> None:
    out = _console(console)
    rows: List[Bill] = list(bills)
    if not rows:
        out.print("[yellow]No bills.[/yellow]")
        return

    table = Table(title="Bills", box=box.ROUNDED, caption=f"{len(rows)} bill(s)")
    table.add_column("Bill No", style="cyan", no_wrap=True)
    table.add_column("Date", style="dim")
    table.add_column("Customer")
    table.add_column("Phone")
    table.add_column("Items", justify="right")
    table.add_column("Total", justify="right", style="bold green")

    for bill in rows:
        table.add_row(
            bill.bill_number,
            bill.created_at.astimezone().strftime("%Y-%m-%d %H:%M"),
            bill.customer_name,
            bill.customer_phone,
            str(len(bill.items)) if bill.items else "-",
            _money(bill.total),
        )
    out.print(table)


def print_revenue(
    points: Sequence[RevenuePoint], title: str = "Revenue", console: Optional[Console] = None
) -> None:
    out = _console(console)
    if not points:
        out.print("[yellow]No revenue in this period.[/yellow]")
        return

    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Date", style="cyan", no_wrap=True)
    table.add_column("Bills", justify="right", style="magenta")
    table.add_column("Revenue", justify="right", style="bold green")
    for point in points:
        table.add_row(point.day.isoformat(), str(point.bills), _money(point.revenue))
    total = sum((p.revenue for p in points), Decimal("0"))
    table.add_section()
    table.add_row("Total", str(sum(p.bills for p in points)), _money(total))
    out.print(table)


def print_sync_report(report: SyncReport, console: Optional[Console] = None) -> None:
    out = _console(console)
    if not report.ok:
        out.print(f"[red]Sync failed:[/red] {report.error} (local data unchanged)")
        return
    seeded = []
    if report.products_seeded:
        seeded.append("products")
    if report.bills_seeded:
        seeded.append("bills")
    out.print(
        f"[green]Synced[/green] {report.products} products, {report.bills} bills "
        f"in {report.duration_seconds:.2f}s; pushed {report.products_pushed} products, "
        f"{report.bills_pushed} bills"
        + (f" [dim](seeded remote {', '.join(seeded)})[/dim]" if seeded else "")
    )


def print_bill_summary(bills: Sequence[Bill], console: Optional[Console] = None) -> None:
    _console(console).print(
        f"{len(bills)} bill(s), revenue {_money(total_revenue(bills))}"
    )


def print_bill_receipt(bill: Bill, console: Optional[Console] = None) -> None:
    out = _console(console)
    header = f"Bill {bill.bill_number}  {bill.created_at.astimezone().strftime('%Y-%m-%d %H:%M')}"
    if bill.customer_name or bill.customer_phone:
        header += f"\n{bill.customer_name} {bill.customer_phone}".rstrip()

    table = Table(title=header, box=box.ROUNDED)
    table.add_column("Item", style="cyan")
    table.add_column("Qty", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Amount", justify="right", style="green")
    for item in bill.items:
        name = f"{item.name} [dim](manual)[/dim]" if item.manual else item.name
        table.add_row(name, str(item.quantity), _money(item.price), _money(item.total))
    if not bill.items:
        missing = f"Items not stored locally ({bill.item_ids or 'no item ids'})"
        table.add_row(f"[dim]{missing}[/dim]", "", "", "")

    table.add_section()
    table.add_row("Subtotal", "", "", _money(bill.subtotal))
    if bill.discount_amount:
        table.add_row("Discount", "", "", f"-{_money(bill.discount_amount)}")
    if bill.tax_amount:
        table.add_row(f"Tax ({bill.tax}%)", "", "", _money(bill.tax_amount))
    table.add_row("[bold]Total[/bold]", "", "", f"[bold]{_money(bill.total)}[/bold]")
    out.print(table)


def print_users(users: Sequence[User], console: Optional[Console] = None) -> None:
    out = _console(console)
    if not users:
        out.print("[yellow]No users found.[/yellow]")
        return

    table = Table(title="Users", box=box.ROUNDED)
    table.add_column("Username", style="cyan", no_wrap=True)
    table.add_column("Full Name")
    table.add_column("Role", style="magenta")
    table.add_column("Status")
    table.add_column("Email", style="dim")
    table.add_column("Id", style="dim", overflow="fold")
    for user in users:
        status_style = "green" if user.status == "active" else "yellow"
        table.add_row(
            user.username,
            user.full_name,
            user.role,
            f"[{status_style}]{user.status}[/{status_style}]",
            user.email,
            user.id,
        )
    out.print(table)
