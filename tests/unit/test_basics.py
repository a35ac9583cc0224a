import csv
import dataclasses
from pathlib import Path
from time import sleep

import pytest
from pydantic import ValidationError

from billsync import config
from billsync.store.backends import JsonFileBackend
from billsync.store.record_store import RecordStore
from billsync.utils import profiler
from scripts import seed_data


def test_get_settings_defaults():
    settings = config.get_settings()
    assert settings.sheets_web_app_url is None
    assert settings.fetch_attempts == 1
    assert settings.push_batch_size > 0
    assert settings.sync_interval_seconds > 0
    assert settings.bill_prefix == "SS"
    assert settings.low_stock_threshold == 10
    assert settings.store_path == Path("data/billsync.json")


def test_get_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("SHEETS_WEB_APP_URL", "https://sheets.example.test/exec")
    monkeypatch.setenv("PUSH_BATCH_SIZE", "5")
    monkeypatch.setenv("BILL_PREFIX", "INV")
    config.get_settings.cache_clear()

    settings = config.get_settings()

    assert settings.sheets_web_app_url == "https://sheets.example.test/exec"
    assert settings.push_batch_size == 5
    assert settings.bill_prefix == "INV"
    assert config.get_settings() is settings


def test_settings_reject_invalid_values(monkeypatch):
    monkeypatch.setenv("FETCH_ATTEMPTS", "0")
    with pytest.raises(ValidationError):
        config.Settings()


def test_profile_block_measures_time():
    with profiler.profile_block("sleep") as stats:
        sleep(0.05)
    assert stats.duration_seconds >= 0.05
    assert stats.started_at is not None
    assert stats.label == "sleep"


def test_profile_block_records_duration_on_error():
    with pytest.raises(RuntimeError):
        with profiler.profile_block("boom") as stats:
            raise RuntimeError("boom")
    assert stats.end_ts >= stats.start_ts


def test_profile_stats_carries_only_timing_fields():
    names = {field.name for field in dataclasses.fields(profiler.ProfileStats)}
    assert names == {"label", "started_at", "start_ts", "end_ts", "duration_seconds"}


def test_seed_data_generates_unique_bills():
    products = seed_data._generate_products(5, seed=123)
    bills = seed_data._generate_bills(products, count=12, days=7, seed=123)

    assert len(products) == 5
    assert [b.bill_number for b in bills] == [f"SS{i:02d}" for i in range(1, 13)]
    assert all(b.total >= 0 for b in bills)
    # Deterministic for a given seed.
    again = seed_data._generate_products(5, seed=123)
    assert [(p.name, p.price, p.stock) for p in again] == [
        (p.name, p.price, p.stock) for p in products
    ]


def test_seed_data_writes_store_and_csv(tmp_path: Path):
    store_path = tmp_path / "store.json"
    export_dir = tmp_path / "export"

    seed_data.main(
        products=3, bills=4, days=2, seed=7, store_path=store_path, export_dir=export_dir
    )

    store = RecordStore(JsonFileBackend(store_path))
    assert len(store.get_all_products()) == 3
    assert len(store.get_all_bills()) == 4

    with (export_dir / "bills.csv").open("r", newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 4
    assert rows[0]["Bill Number"] == "SS01"
    with (export_dir / "products.csv").open("r", newline="", encoding="utf-8") as f:
        header = next(csv.reader(f))
    assert header[:3] == ["Id", "Code", "Name"]
