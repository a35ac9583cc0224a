"""
Bill number allocation.

Bill numbers look like "SS01", "SS02", ... "SS100". The next number is one past
the largest trailing integer found on any existing bill number (whatever its
prefix), then bumped further until it does not collide with an existing
number. The function is pure; RecordStore.allocate_bill wraps it under the
store lock so allocation and insert happen atomically.
"""

from __future__ import annotations

import re
from typing import Iterable, Union

from billsync.domain.models import Bill

DEFAULT_PREFIX = "SS"
DEFAULT_WIDTH = 2

_TRAILING_DIGITS = re.compile(r"(\d+)$")


def _number_of(bill: Union[Bill, str]) -> str:
    raw = bill.bill_number if isinstance(bill, Bill) else bill
    return str(raw or "").strip()


def format_bill_number(value: int, prefix: str = DEFAULT_PREFIX, width: int = DEFAULT_WIDTH) -> str:
    """Pad to at least `width` digits; wider integers keep their natural width."""
    return f"{prefix}{value:0{width}d}"


def next_bill_number(
    existing: Iterable[Union[Bill, str]],
    prefix: str = DEFAULT_PREFIX,
    width: int = DEFAULT_WIDTH,
) -> str:
    """
    Return the next collision-free bill number for the given snapshot.

    Parameters
    ----------
    existing : iterable of Bill or str
        Current bills (or raw bill numbers).
    prefix : str
        Leading text of generated numbers.
    width : int
        Minimum number of digits.

    Examples
    --------
    >>> next_bill_number(["SS01", "SS02", "SS05"])
    'SS06'
    >>> next_bill_number([])
    'SS01'
    """
    taken = set()
    highest = 0
    for bill in existing:
        number = _number_of(bill)
        taken.add(number)
        match = _TRAILING_DIGITS.search(number)
        if match:
            highest = max(highest, int(match.group(1)))

    candidate = highest + 1
    formatted = format_bill_number(candidate, prefix, width)
    # Terminates within len(taken) + 1 steps.
    while formatted in taken:
        candidate += 1
        formatted = format_bill_number(candidate, prefix, width)
    return formatted


__all__ = ["DEFAULT_PREFIX", "DEFAULT_WIDTH", "format_bill_number", "next_bill_number"]
