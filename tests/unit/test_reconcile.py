from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from billsync.domain.models import LineItem
from billsync.reconcile import dedupe_bills, dedupe_products, merge_bills, merge_products

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
LOCAL_TIME = datetime(2023, 12, 24, 18, 30, tzinfo=timezone.utc)


def _item(product_id: str = "p1", quantity: int = 2) -> LineItem:
    return LineItem(
        product_id=product_id,
        name="Hair Clip",
        price=Decimal("25"),
        quantity=quantity,
        total=Decimal("25") * quantity,
    )


def test_remote_product_values_win_but_local_timestamps_survive(product_factory) -> None:
    local = product_factory(
        id="p1", name="Old Name", price=Decimal("20"), created_at=LOCAL_TIME, updated_at=LOCAL_TIME
    )
    remote = product_factory(id="p1", name="New Name", price=Decimal("22"), stock=4)

    result = merge_products([remote], [local])

    assert len(result.merged) == 1
    merged = result.merged[0]
    assert merged.name == "New Name"
    assert merged.price == Decimal("22")
    assert merged.stock == 4
    assert merged.created_at == LOCAL_TIME
    assert merged.updated_at == LOCAL_TIME
    assert result.to_push == []
    assert result.remote_empty is False


def test_local_only_products_are_kept_and_flagged(product_factory) -> None:
    remote = [product_factory(id="p1")]
    local = [product_factory(id="p1"), product_factory(id="p2", name="Comb")]

    result = merge_products(remote, local)

    assert [p.id for p in result.merged] == ["p1", "p2"]
    assert [p.id for p in result.to_push] == ["p2"]


def test_empty_remote_products_mark_seeding(product_factory) -> None:
    local = [product_factory(id="p1"), product_factory(id="p2")]

    result = merge_products([], local)

    assert result.remote_empty is True
    assert result.merged == local
    assert result.to_push == local


def test_empty_on_both_sides_is_not_seeding() -> None:
    result = merge_products([], [])
    assert result.merged == []
    assert result.remote_empty is False


def test_remote_only_products_are_adopted(product_factory) -> None:
    remote = [product_factory(id="r1")]
    result = merge_products(remote, [])
    assert result.merged == remote
    assert result.to_push == []


def test_local_bill_fields_override_remote(bill_factory) -> None:
    local = bill_factory(
        id="local-id",
        bill_number="SS01",
        items=[_item()],
        tax=Decimal("5"),
        tax_amount=Decimal("2.50"),
        total=Decimal("52.50"),
        customer_name="Asha",
    )
    remote = bill_factory(
        id="remote-id", bill_number="SS01", total=Decimal("50"), customer_name=""
    )

    result = merge_bills([remote], [local])

    merged = result.merged[0]
    assert merged.id == "remote-id"
    assert merged.items == [_item()]
    assert merged.tax == Decimal("5")
    assert merged.total == Decimal("52.50")
    assert merged.customer_name == "Asha"
    assert result.to_push == []


def test_blank_local_fields_do_not_erase_remote_values(bill_factory) -> None:
    local = bill_factory(bill_number="SS01", customer_phone="", items=[])
    remote = bill_factory(bill_number="SS01", customer_phone="98765", item_ids="p1,p2")

    merged = merge_bills([remote], [local]).merged[0]

    assert merged.customer_phone == "98765"
    assert merged.item_ids == "p1,p2"


def test_local_only_bills_are_appended_and_flagged(bill_factory) -> None:
    remote = [bill_factory(bill_number="SS01")]
    local = [bill_factory(bill_number="SS01"), bill_factory(bill_number="SS02")]

    result = merge_bills(remote, local)

    assert [b.bill_number for b in result.merged] == ["SS01", "SS02"]
    assert [b.bill_number for b in result.to_push] == ["SS02"]


def test_merged_bills_are_unique_even_with_duplicate_remote_rows(bill_factory) -> None:
    remote = [
        bill_factory(id="r1", bill_number="SS01", created_at=T0),
        bill_factory(id="r2", bill_number="SS01", created_at=T0 + timedelta(minutes=1)),
    ]

    result = merge_bills(remote, [])

    assert [b.id for b in result.merged] == ["r2"]


def test_merge_bills_is_idempotent(bill_factory) -> None:
    remote = [bill_factory(bill_number="SS01"), bill_factory(bill_number="SS03")]
    local = [bill_factory(bill_number="SS01", items=[_item()]), bill_factory(bill_number="SS02")]

    once = merge_bills(remote, local).merged
    twice = merge_bills(remote, once).merged

    assert [b.model_dump() for b in twice] == [b.model_dump() for b in once]


def test_merge_products_is_idempotent(product_factory) -> None:
    remote = [product_factory(id="p1", stock=1)]
    local = [product_factory(id="p1", created_at=LOCAL_TIME), product_factory(id="p2")]

    once = merge_products(remote, local).merged
    again = merge_products(remote, once).merged
    assert [p.model_dump() for p in again] == [p.model_dump() for p in once]


def test_dedupe_keeps_latest_and_first_position(bill_factory) -> None:
    bills = [
        bill_factory(id="a", bill_number="SS01", created_at=T0 + timedelta(hours=2)),
        bill_factory(id="b", bill_number="SS02", created_at=T0),
        bill_factory(id="c", bill_number="SS01", created_at=T0),
    ]
    assert [b.id for b in dedupe_bills(bills)] == ["a", "b"]


def test_dedupe_tie_goes_to_later_record(bill_factory) -> None:
    bills = [
        bill_factory(id="first", bill_number="SS01", created_at=T0),
        bill_factory(id="second", bill_number="SS01", created_at=T0),
    ]
    assert [b.id for b in dedupe_bills(bills)] == ["second"]


def test_duplicate_product_ids_collapse_to_last_seen(product_factory) -> None:
    remote = [
        product_factory(id="p1", stock=5),
        product_factory(id="p2", name="Comb"),
        product_factory(id="p1", stock=4),
    ]
    local = [product_factory(id="p3", name="Kohl"), product_factory(id="p3", name="Kohl", stock=2)]

    result = merge_products(remote, local)

    assert [(p.id, p.stock) for p in result.merged] == [("p1", 4), ("p2", 20), ("p3", 2)]
    assert [p.id for p in result.to_push] == ["p3"]
    assert dedupe_products(remote)[0].stock == 4
