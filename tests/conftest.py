"""
Pytest configuration for billsync.

Provides fixtures for:
- An in-memory record store
- A scripted fake remote gateway (no network)
- Product / bill factories with sensible defaults
- Settings isolation from the developer's environment and .env
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

import pytest

from billsync.config import Settings, get_settings
from billsync.domain.models import Bill, NewUser, Product, User
from billsync.domain.rows import map_remote_users, user_to_row
from billsync.errors import GatewayResponseError, GatewayTransportError
from billsync.gateway.abstract import PushAck, PushMode, RemoteSnapshot, RowKind
from billsync.store.backends import MemoryBackend
from billsync.store.record_store import RecordStore

BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeGateway:
    """
    In-memory stand-in for the spreadsheet web app.

    Remote rows live in `products` / `bills` (raw sheet column form). Every push
    is recorded in `pushes`; kinds listed in `failing_kinds` reject pushes.
    With `apply_pushes` the pushes are also written into the remote tables the
    way the web app does it (append adds rows, upsert replaces by "Id",
    delete removes by "Id"), after waiting `push_delay` seconds.
    """

    def __init__(
        self,
        products: Optional[List[Dict[str, Any]]] = None,
        bills: Optional[List[Dict[str, Any]]] = None,
        apply_pushes: bool = False,
        push_delay: float = 0.0,
    ) -> None:
        self.products = list(products or [])
        self.bills = list(bills or [])
        self.apply_pushes = apply_pushes
        self.push_delay = push_delay
        self.fetch_calls = 0
        self.fetch_error: Optional[Exception] = None
        self.fetch_gate: Optional[asyncio.Event] = None
        self.failing_kinds: Set[RowKind] = set()
        self.pushes: List[Tuple[RowKind, List[Dict[str, Any]], PushMode]] = []
        self.users: List[Dict[str, Any]] = []
        self.user_error: Optional[Exception] = None
        self.closed = False

    async def fetch_all(self) -> RemoteSnapshot:
        self.fetch_calls += 1
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return RemoteSnapshot(
            products=[dict(row) for row in self.products],
            bills=[dict(row) for row in self.bills],
        )

    async def push_rows(
        self, kind: RowKind, rows: Sequence[Dict[str, Any]], mode: PushMode
    ) -> PushAck:
        kind, mode = RowKind(kind), PushMode(mode)
        self.pushes.append((kind, list(rows), mode))
        if kind in self.failing_kinds:
            raise GatewayResponseError("Sheet write failed", status_code=500)
        if self.push_delay:
            await asyncio.sleep(self.push_delay)
        if self.apply_pushes:
            self._apply(kind, rows, mode)
        return PushAck(ok=True, kind=kind.value, mode=mode.value, rows=len(rows))

    def _apply(self, kind: RowKind, rows: Sequence[Dict[str, Any]], mode: PushMode) -> None:
        table = self.products if kind is RowKind.PRODUCTS else self.bills
        for row in rows:
            if mode is PushMode.APPEND:
                table.append(dict(row))
                continue
            index = next((i for i, r in enumerate(table) if r.get("Id") == row.get("Id")), None)
            if mode is PushMode.DELETE:
                if index is not None:
                    del table[index]
            elif index is None:
                table.append(dict(row))
            else:
                table[index] = dict(row)

    def pushed(self, kind: RowKind, mode: Optional[PushMode] = None) -> List[Dict[str, Any]]:
        """All rows pushed for `kind` (optionally only in `mode`)."""
        return [
            row
            for pushed_kind, rows, pushed_mode in self.pushes
            if pushed_kind is kind and (mode is None or pushed_mode is mode)
            for row in rows
        ]

    def fail_fetch(self, message: str = "connection refused") -> None:
        self.fetch_error = GatewayTransportError(message)

    async def list_users(self) -> List[User]:
        if self.user_error is not None:
            raise self.user_error
        return map_remote_users(self.users)

    async def create_user(self, user: NewUser) -> Dict[str, Any]:
        if self.user_error is not None:
            raise self.user_error
        self.users.append({"Id": f"user-{len(self.users) + 1}", **user_to_row(user)})
        return {"ok": True}

    async def delete_user(self, user_id: str) -> Dict[str, Any]:
        if self.user_error is not None:
            raise self.user_error
        self.users = [row for row in self.users if row.get("Id") != user_id]
        return {"ok": True}

    async def aclose(self) -> None:
        self.closed = True


def make_product(**overrides: Any) -> Product:
    data: Dict[str, Any] = {
        "id": "prod-1",
        "code": "P001",
        "name": "Hair Clip",
        "price": Decimal("25"),
        "stock": 20,
        "created_at": BASE_TIME,
        "updated_at": BASE_TIME,
    }
    data.update(overrides)
    return Product(**data)


def make_bill(**overrides: Any) -> Bill:
    data: Dict[str, Any] = {
        "id": f"bill-{overrides.get('bill_number', 'SS01')}",
        "bill_number": "SS01",
        "subtotal": Decimal("100"),
        "total": Decimal("100"),
        "created_at": BASE_TIME,
    }
    data.update(overrides)
    return Bill(**data)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Iterator[None]:
    """
    Keep tests independent of the developer's environment and `.env`.
    """
    for name in (
        "SHEETS_WEB_APP_URL",
        "STORE_PATH",
        "FETCH_ATTEMPTS",
        "PUSH_BATCH_SIZE",
        "BILL_PREFIX",
        "LOW_STOCK_THRESHOLD",
        "LOG_LEVEL",
        "LOG_JSON",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def app_settings(tmp_path) -> Settings:
    return Settings(
        sheets_web_app_url="https://sheets.example.test/exec",
        store_path=tmp_path / "store.json",
        log_level="DEBUG",
    )


@pytest.fixture
def store() -> RecordStore:
    return RecordStore(MemoryBackend())


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def product_factory():
    return make_product


@pytest.fixture
def bill_factory():
    return make_bill
