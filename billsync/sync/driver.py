"""
Background sync driver: fetch -> reconcile -> persist -> push.

Usage:
    driver = SyncDriver(store, gateway)
    report = await driver.sync(SyncTrigger.MANUAL)
    if not report.ok:
        show_notice(report.error)

The driver has two states, IDLE and SYNCING. A trigger arriving while a cycle
is running joins that cycle instead of starting another one. The state goes
back to IDLE on every exit path. A failed fetch leaves the local store
untouched. Records the remote has not seen yet are upserted by id through
the PushQueue and not awaited.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from billsync.config import get_settings
from billsync.domain.rows import bill_to_row, map_remote_bills, map_remote_products, product_to_row
from billsync.errors import GatewayError
from billsync.gateway.abstract import PushMode, RemoteGateway, RowKind
from billsync.reconcile import merge_bills, merge_products
from billsync.store.record_store import RecordStore
from billsync.sync.pusher import PushQueue
from billsync.utils.logging import get_logger
from billsync.utils.profiler import profile_block

log = get_logger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"


class SyncTrigger(str, Enum):
    INITIAL = "initial"
    MANUAL = "manual"
    MUTATION = "mutation"
    PERIODIC = "periodic"


class SyncReport(BaseModel):
    """
    Outcome of one sync cycle.

    `ok` is False only when the fetch failed; in that case nothing local
    changed and all counts are zero.
    """

    trigger: SyncTrigger
    ok: bool
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    products: int = 0
    bills: int = 0
    products_pushed: int = 0
    bills_pushed: int = 0
    products_seeded: bool = False
    bills_seeded: bool = False


class SyncDriver:
    """
    Orchestrates sync cycles between a RecordStore and a RemoteGateway.

    Parameters
    ----------
    store : RecordStore
        Local working copy.
    gateway : RemoteGateway
        Remote sheet access.
    pusher : PushQueue, optional
        Push scheduler; one is created around `gateway` if omitted.
    push_batch_size : int, optional
        Rows per outward push. Defaults to settings.push_batch_size.
    """

    def __init__(
        self,
        store: RecordStore,
        gateway: RemoteGateway,
        pusher: Optional[PushQueue] = None,
        push_batch_size: Optional[int] = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.pusher = pusher or PushQueue(gateway)
        self.push_batch_size = push_batch_size or get_settings().push_batch_size
        self._state = SyncState.IDLE
        self._inflight: Optional[asyncio.Future[SyncReport]] = None
        self.last_report: Optional[SyncReport] = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state is SyncState.SYNCING

    async def sync(self, trigger: SyncTrigger = SyncTrigger.MANUAL) -> SyncReport:
        """
        Run one sync cycle, or join the one already running.

        Transport failures are reported in the returned SyncReport, not
        raised. Cancelling the caller does not cancel a running cycle.
        """
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._cycle(SyncTrigger(trigger)))
        else:
            log.info(f"[SYNC JOIN] {SyncTrigger(trigger).value}", extra={"trigger": trigger})
        return await asyncio.shield(self._inflight)

    async def _cycle(self, trigger: SyncTrigger) -> SyncReport:
        self._state = SyncState.SYNCING
        log.info(f"[SYNC START] {trigger.value}", extra={"trigger": trigger.value})
        try:
            with profile_block(f"sync-{trigger.value}") as stats:
                report = await self._run(trigger)
            report.started_at = stats.started_at
            report.duration_seconds = round(stats.duration_seconds, 3)
            self.last_report = report
            return report
        finally:
            self._state = SyncState.IDLE
            self._inflight = None

    async def _run(self, trigger: SyncTrigger) -> SyncReport:
        try:
            snapshot = await self.gateway.fetch_all()
        except GatewayError as exc:
            log.warning(
                f"[SYNC FAILED] {trigger.value}",
                extra={"trigger": trigger.value, "error": str(exc), "error_type": type(exc).__name__},
            )
            return SyncReport(trigger=trigger, ok=False, error=str(exc))

        remote_products = map_remote_products(snapshot.get("products"))
        remote_bills = map_remote_bills(snapshot.get("bills"))

        with self.store.locked():
            products = merge_products(remote_products, self.store.get_all_products())
            bills = merge_bills(remote_bills, self.store.get_all_bills())
            self.store.set_all_products(products.merged)
            self.store.set_all_bills(bills.merged)

        if products.remote_empty:
            log.info("Remote products empty; seeding from local", extra={"rows": len(products.to_push)})
        if bills.remote_empty:
            log.info("Remote bills empty; seeding from local", extra={"rows": len(bills.to_push)})

        self.pusher.submit_batches(
            RowKind.PRODUCTS,
            [product_to_row(p) for p in products.to_push],
            PushMode.UPSERT,
            self.push_batch_size,
        )
        self.pusher.submit_batches(
            RowKind.BILLS,
            [bill_to_row(b) for b in bills.to_push],
            PushMode.UPSERT,
            self.push_batch_size,
        )

        report = SyncReport(
            trigger=trigger,
            ok=True,
            products=len(products.merged),
            bills=len(bills.merged),
            products_pushed=len(products.to_push),
            bills_pushed=len(bills.to_push),
            products_seeded=products.remote_empty,
            bills_seeded=bills.remote_empty,
        )
        log.info(
            f"[SYNC SUCCESS] {trigger.value}",
            extra={
                "trigger": trigger.value,
                "products": report.products,
                "bills": report.bills,
                "products_pushed": report.products_pushed,
                "bills_pushed": report.bills_pushed,
            },
        )
        return report

    async def run_periodic(
        self,
        interval: Optional[float] = None,
        stop: Optional[asyncio.Event] = None,
        max_cycles: Optional[int] = None,
    ) -> int:
        """
        Sync every `interval` seconds until `stop` is set.

        The first cycle runs immediately with the INITIAL trigger. Returns
        the number of cycles run.
        """
        interval = interval or get_settings().sync_interval_seconds
        stop = stop or asyncio.Event()
        cycles = 0
        trigger = SyncTrigger.INITIAL
        while not stop.is_set():
            await self.sync(trigger)
            cycles += 1
            trigger = SyncTrigger.PERIODIC
            if max_cycles is not None and cycles >= max_cycles:
                break
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
        return cycles


__all__ = ["SyncDriver", "SyncReport", "SyncState", "SyncTrigger"]
