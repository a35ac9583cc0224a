"""
Timing utilities for billsync.

Sync cycles are dominated by network waits, so only wall-clock time is
measured (perf_counter) together with the wall-clock start, which is what
ends up in a SyncReport.

Usage:
    from billsync.utils.profiler import profile_block

    with profile_block("sync") as stats:
        await driver.sync()

    print(stats.duration_seconds)
"""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generator, Optional


@dataclass
class ProfileStats:
    """
    Container for timing measurements.
    """

    label: str
    started_at: Optional[datetime] = field(default=None)
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)


@contextlib.contextmanager
def profile_block(label: str) -> Generator[ProfileStats, None, None]:
    """
    Context manager measuring the wall-clock duration of a block.

    The stats object is filled in on exit, including when the block raises,
    so callers can still report how long a failed cycle took.
    """
    stats = ProfileStats(label=label, started_at=datetime.now(timezone.utc))
    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts


__all__ = ["ProfileStats", "profile_block"]
