from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from billsync.domain.models import NewUser
from billsync.domain.rows import (
    bill_to_row,
    map_remote_bills,
    map_remote_products,
    map_remote_users,
    parse_number,
    parse_timestamp,
    product_to_row,
    user_to_row,
)


def test_parse_number_falls_back_to_zero() -> None:
    assert parse_number("12.5") == Decimal("12.5")
    assert parse_number(" 7 ") == Decimal("7")
    assert parse_number(3) == Decimal("3")
    assert parse_number("") == Decimal("0")
    assert parse_number("abc") == Decimal("0")
    assert parse_number(None) == Decimal("0")
    assert parse_number("NaN") == Decimal("0")
    assert parse_number("Infinity") == Decimal("0")
    assert parse_number(True) == Decimal("0")


def test_parse_timestamp_formats() -> None:
    fallback = datetime(2000, 1, 1, tzinfo=timezone.utc)
    iso = parse_timestamp("2024-03-01T09:00:00.000Z", default=fallback)
    assert iso == datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
    assert parse_timestamp("2024-03-01", default=fallback).date().isoformat() == "2024-03-01"
    assert parse_timestamp("01/03/2024", default=fallback).month == 3
    assert parse_timestamp("not a date", default=fallback) == fallback
    assert parse_timestamp("", default=fallback) == fallback


def test_map_remote_products_with_column_fallbacks() -> None:
    rows = [
        {
            "ID": "p1",
            "Code": "C1",
            "Name": " Kajal ",
            "Price": "45",
            "Quantity": "12",
            "Unit(kg,cm,litter)": "pcs",
        },
        {"Id": "p2", "Name": "Comb", "Price": "x", "Available Qty": 3, "Quantity": 99},
    ]

    products = map_remote_products(rows)

    assert [p.id for p in products] == ["p1", "p2"]
    first, second = products
    assert first.name == "Kajal"
    assert first.code == "C1"
    assert first.price == Decimal("45")
    assert first.stock == 12
    assert first.unit == "pcs"
    assert second.price == Decimal("0")
    assert second.stock == 3
    assert first.created_at.tzinfo is not None


def test_map_remote_products_discards_nameless_and_malformed_rows() -> None:
    rows = [
        {"Id": "p1", "Name": ""},
        {"Id": "p2"},
        "not a row",
        {"Id": "p3", "Name": "Bangles", "Price": "-4"},
        {"Name": "No Id"},
    ]

    products = map_remote_products(rows)

    assert [p.name for p in products] == ["No Id"]
    assert products[0].id


def test_map_remote_products_handles_missing_input() -> None:
    assert map_remote_products(None) == []
    assert map_remote_products([]) == []


def test_map_remote_bills_with_fallbacks() -> None:
    rows = [
        {
            "Id": "b1",
            "Bill No": "SS07",
            "Date": "2024-03-01T09:00:00Z",
            "Customer Name": "Asha",
            "Phone": 98765,
            "Item Id": "p1,p2",
            "Sub total": "100",
            "Discount": "10",
            "Total Tendered": "90",
        },
        {"Id": "b2", "Total Tendered": ""},
    ]

    first, second = map_remote_bills(rows)

    assert first.bill_number == "SS07"
    assert first.customer_phone == "98765"
    assert first.subtotal == Decimal("100")
    assert first.discount == Decimal("10")
    assert first.discount_amount == Decimal("10")
    assert first.total == Decimal("90")
    assert first.tax == Decimal("0")
    assert first.items == []
    assert first.created_at == datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
    assert second.bill_number == "b2"
    assert second.total == Decimal("0")


def test_map_remote_bills_synthesizes_missing_ids() -> None:
    (bill,) = map_remote_bills([{"Bill Number": "SS01"}])
    assert bill.bill_number == "SS01"
    assert bill.id


def test_synthesized_ids_are_stable_across_fetches() -> None:
    products = [{"Name": "Bangle", "Price": 10}, {"Name": "Bangle", "Price": 10}]
    bills = [{"Date": "2024-03-01", "Customer Name": "Asha", "Total Tendered": 40}]

    first = [p.id for p in map_remote_products(products)]
    again = [p.id for p in map_remote_products(products)]
    (bill,) = map_remote_bills(bills)
    (bill_again,) = map_remote_bills(bills)

    assert first == again
    assert first[0] != first[1]
    assert bill.id == bill_again.id
    assert bill.bill_number == bill.id


def test_map_remote_users_skips_passwords_and_blank_rows() -> None:
    rows = [
        {
            "Id": "u1",
            "Username": "asha",
            "Password": "secret",
            "Full Name": "Asha K",
            "Role": "Admin",
        },
        {"Id": "u2", "Username": ""},
        "not a row",
        {"ID": "u3", "Username": "ravi"},
    ]

    users = map_remote_users(rows)

    assert [(u.id, u.username, u.role) for u in users] == [
        ("u1", "asha", "Admin"),
        ("u3", "ravi", "StoreUser"),
    ]
    assert "secret" not in repr(users)
    assert map_remote_users(None) == []


def test_user_to_row_uses_sheet_columns() -> None:
    row = user_to_row(NewUser(username="asha", password="pw", full_name="Asha K"))
    assert row["Username"] == "asha"
    assert row["Password"] == "pw"
    assert row["Full Name"] == "Asha K"
    assert row["Role"] == "StoreUser"
    assert row["Status"] == "active"


def test_rows_use_sheet_columns(product_factory, bill_factory) -> None:
    product_row = product_to_row(product_factory(price=Decimal("12.50"), stock=4))
    assert product_row["Id"] == "prod-1"
    assert product_row["Price"] == 12.5
    assert product_row["Quantity"] == 4
    assert product_row["Available Qty"] == 4
    assert "Unit(kg,cm,litter)" in product_row

    bill_row = bill_to_row(bill_factory(bill_number="SS03", total=Decimal("90")))
    assert bill_row["Bill Number"] == "SS03"
    assert bill_row["Total Tendered"] == 90
    assert isinstance(bill_row["Total Tendered"], int)
    assert bill_row["Date"].startswith("2024-03-01T09:00:00")


def test_remote_round_trip_preserves_sheet_fields(product_factory) -> None:
    product = product_factory(unit="kg")
    (mapped,) = map_remote_products([product_to_row(product)])
    assert (mapped.id, mapped.name, mapped.price, mapped.stock, mapped.unit) == (
        product.id,
        product.name,
        product.price,
        product.stock,
        product.unit,
    )
