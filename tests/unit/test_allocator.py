from __future__ import annotations

import re

from billsync import allocator
from billsync.allocator import format_bill_number, next_bill_number


def test_next_bill_number_follows_highest_trailing_integer() -> None:
    assert next_bill_number(["SS01", "SS02", "SS05"]) == "SS06"


def test_next_bill_number_starts_at_one_when_empty() -> None:
    assert next_bill_number([]) == "SS01"


def test_next_bill_number_reads_digits_regardless_of_prefix() -> None:
    assert next_bill_number(["SS01", "CUSTOM-03"]) == "SS04"


def test_next_bill_number_ignores_numbers_without_trailing_digits() -> None:
    assert next_bill_number(["manual", "SS02-A", "SS01"]) == "SS02"


def test_next_bill_number_counts_unpadded_numbers() -> None:
    # "SS04" is the highest at 4; the unpadded "SS3" only counts as 3.
    assert next_bill_number(["SS3", "SS04"]) == "SS05"


def test_next_bill_number_accepts_bills(bill_factory) -> None:
    bills = [bill_factory(bill_number="SS09"), bill_factory(bill_number=" SS10 ")]
    assert next_bill_number(bills) == "SS11"


def test_format_keeps_natural_width_past_padding() -> None:
    assert format_bill_number(7) == "SS07"
    assert format_bill_number(100) == "SS100"
    assert next_bill_number(["SS99"]) == "SS100"


def test_custom_prefix_and_width() -> None:
    assert next_bill_number(["INV0041"], prefix="INV", width=4) == "INV0042"


def test_next_bill_number_is_never_already_present() -> None:
    existing = ["SS01", "SS02", "CUSTOM-03", "SS03"]
    allocated = next_bill_number(existing)
    assert allocated == "SS04"
    assert allocated not in existing


def test_prefix_ending_in_a_digit_never_reuses_a_number() -> None:
    # Trailing runs absorb the prefix digit ("S1107" reads as 1107), so the
    # first candidate is already above every existing number.
    existing = ["S106", "S1107", "S1108"]
    allocated = next_bill_number(existing, prefix="S1")
    assert allocated == "S11109"
    assert allocated not in existing


def test_taken_candidates_are_skipped(monkeypatch) -> None:
    # Unparseable numbers leave the scan at 0, so the candidates walk the taken set.
    monkeypatch.setattr(allocator, "_TRAILING_DIGITS", re.compile(r"(?!)(\d+)"))
    assert next_bill_number(["SS01", "SS02", "SS04"]) == "SS03"
