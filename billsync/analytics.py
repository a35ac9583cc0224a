"""
Revenue reporting and bill lookup over the local bill collection.

All date arithmetic happens in local time, the way the shop reads its day.
Weeks start on Sunday.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from billsync.domain.models import ZERO, Bill, RevenuePoint

PERIODS = (
    "today",
    "yesterday",
    "this_week",
    "last_week",
    "this_month",
    "last_month",
    "this_year",
    "last_year",
)


def _local(value: datetime) -> datetime:
    return value.astimezone()


def day_bounds(start_day: date, end_day: date) -> Tuple[datetime, datetime]:
    """Local 00:00:00 of `start_day` through 23:59:59.999999 of `end_day`."""
    start = datetime.combine(start_day, time.min).astimezone()
    end = datetime.combine(end_day, time.max).astimezone()
    return start, end


def period_range(period: str, today: Optional[date] = None) -> Tuple[datetime, datetime]:
    """
    Inclusive local datetime range for a named reporting period.

    Parameters
    ----------
    period : str
        One of PERIODS.
    today : date, optional
        Reference day; defaults to the local current date.
    """
    today = today or datetime.now().astimezone().date()
    if period == "today":
        return day_bounds(today, today)
    if period == "yesterday":
        day = today - timedelta(days=1)
        return day_bounds(day, day)
    # date.weekday(): Monday=0 .. Sunday=6; shift so Sunday starts the week.
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    if period == "this_week":
        return day_bounds(week_start, today)
    if period == "last_week":
        start = week_start - timedelta(days=7)
        return day_bounds(start, start + timedelta(days=6))
    if period == "this_month":
        return day_bounds(today.replace(day=1), today)
    if period == "last_month":
        last_day = today.replace(day=1) - timedelta(days=1)
        return day_bounds(last_day.replace(day=1), last_day)
    if period == "this_year":
        return day_bounds(today.replace(month=1, day=1), today)
    if period == "last_year":
        year = today.year - 1
        return day_bounds(date(year, 1, 1), date(year, 12, 31))
    raise ValueError(f"Unknown period '{period}'. Available: {', '.join(PERIODS)}")


def revenue_by_day(bills: Iterable[Bill], start: datetime, end: datetime) -> List[RevenuePoint]:
    """Sum bill totals per local calendar day within [start, end], oldest first."""
    buckets: Dict[date, RevenuePoint] = {}
    for bill in bills:
        created = _local(bill.created_at)
        if not start <= created <= end:
            continue
        day = created.date()
        point = buckets.get(day) or RevenuePoint(day=day)
        buckets[day] = point.model_copy(
            update={"revenue": point.revenue + bill.total, "bills": point.bills + 1}
        )
    return [buckets[day] for day in sorted(buckets)]


def search_bills(
    bills: Iterable[Bill],
    term: str = "",
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[Bill]:
    """
    Filter bills by a case-insensitive term (bill number, customer name or
    phone) and an inclusive local date range. Newest first.
    """
    needle = term.strip().lower()
    start = datetime.combine(date_from, time.min).astimezone() if date_from else None
    end = datetime.combine(date_to, time.max).astimezone() if date_to else None

    matches = []
    for bill in bills:
        if needle and not any(
            needle in field.lower()
            for field in (bill.bill_number, bill.customer_name, bill.customer_phone)
        ):
            continue
        created = _local(bill.created_at)
        if start is not None and created < start:
            continue
        if end is not None and created > end:
            continue
        matches.append(bill)
    return sorted(matches, key=lambda b: b.created_at, reverse=True)


def total_revenue(bills: Iterable[Bill]) -> Decimal:
    return sum((b.total for b in bills), ZERO)


__all__ = [
    "PERIODS",
    "day_bounds",
    "period_range",
    "revenue_by_day",
    "search_bills",
    "total_revenue",
]
