"""
Fire-and-forget pushes to the remote gateway.

Each submitted batch becomes its own asyncio task. A failing push is logged,
recorded in `failures` and delivered to every registered listener; it is never
retried and never raised into the code that submitted it, so one bad batch
cannot block other pushes or undo a local write that already happened.

Usage:
    pusher = PushQueue(gateway)
    pusher.add_listener(lambda failure: alert(failure.error))
    pusher.submit(RowKind.BILLS, [bill_to_row(bill)], PushMode.APPEND)
    ...
    await pusher.drain()  # before shutdown, or in tests
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Set

from billsync.domain.models import utcnow
from billsync.domain.rows import RawRow
from billsync.errors import GatewayError
from billsync.gateway.abstract import PushAck, PushMode, RemoteGateway, RowKind
from billsync.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class PushFailure:
    kind: RowKind
    mode: PushMode
    rows: int
    error: str
    error_type: str
    ids: List[str] = field(default_factory=list)
    failed_at: datetime = field(default_factory=utcnow)


FailureListener = Callable[[PushFailure], None]


def chunked(rows: Sequence[RawRow], size: int) -> List[List[RawRow]]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [list(rows[i : i + size]) for i in range(0, len(rows), size)]


class PushQueue:
    """
    Non-blocking push scheduler with an observable error channel.

    Parameters
    ----------
    gateway : RemoteGateway
        Destination of pushes.
    """

    def __init__(self, gateway: RemoteGateway) -> None:
        self.gateway = gateway
        self.failures: List[PushFailure] = []
        self.succeeded = 0
        self._listeners: List[FailureListener] = []
        self._pending: Set[asyncio.Task[Optional[PushAck]]] = set()

    def add_listener(self, listener: FailureListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: FailureListener) -> None:
        self._listeners.remove(listener)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(
        self, kind: RowKind, rows: Sequence[RawRow], mode: PushMode
    ) -> Optional[asyncio.Task[Optional[PushAck]]]:
        """
        Schedule one push and return its task without awaiting it.

        Must be called from code running inside the event loop. Returns None
        when there is nothing to push.
        """
        if not rows:
            return None
        task = asyncio.get_running_loop().create_task(
            self._run(RowKind(kind), list(rows), PushMode(mode))
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def submit_batches(
        self, kind: RowKind, rows: Sequence[RawRow], mode: PushMode, batch_size: int
    ) -> List[asyncio.Task[Optional[PushAck]]]:
        """Split `rows` into independent pushes of at most `batch_size` rows."""
        tasks = []
        for batch in chunked(rows, batch_size):
            task = self.submit(kind, batch, mode)
            if task is not None:
                tasks.append(task)
        return tasks

    async def _run(self, kind: RowKind, rows: List[RawRow], mode: PushMode) -> Optional[PushAck]:
        try:
            ack = await self.gateway.push_rows(kind, rows, mode)
        except GatewayError as exc:
            self._record_failure(kind, mode, rows, exc)
            return None
        except Exception as exc:  # noqa: BLE001
            log.exception(f"[PUSH ERROR] {kind.value}/{mode.value}")
            self._record_failure(kind, mode, rows, exc)
            return None
        self.succeeded += 1
        log.debug(
            f"[PUSH OK] {kind.value}/{mode.value}",
            extra={"kind": kind.value, "mode": mode.value, "rows": len(rows)},
        )
        return ack

    def _record_failure(
        self, kind: RowKind, mode: PushMode, rows: List[RawRow], exc: BaseException
    ) -> None:
        failure = PushFailure(
            kind=kind,
            mode=mode,
            rows=len(rows),
            error=str(exc),
            error_type=type(exc).__name__,
            ids=[str(row.get("Id")) for row in rows if row.get("Id")],
        )
        self.failures.append(failure)
        log.warning(
            f"[PUSH FAILED] {kind.value}/{mode.value}",
            extra={
                "kind": kind.value,
                "mode": mode.value,
                "rows": len(rows),
                "error": failure.error,
                "error_type": failure.error_type,
            },
        )
        for listener in list(self._listeners):
            try:
                listener(failure)
            except Exception:  # noqa: BLE001
                log.exception("Push failure listener raised")

    async def drain(self) -> None:
        """Wait until every push submitted so far has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))


__all__ = ["FailureListener", "PushFailure", "PushQueue", "chunked"]
