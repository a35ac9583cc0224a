"""
Sync package for billsync.

Exports the sync driver (fetch, reconcile, persist, push) and the push queue
that carries local-only records to the remote sheet.
"""

from billsync.sync.driver import SyncDriver, SyncReport, SyncState, SyncTrigger
from billsync.sync.pusher import PushFailure, PushQueue

__all__ = [
    "PushFailure",
    "PushQueue",
    "SyncDriver",
    "SyncReport",
    "SyncState",
    "SyncTrigger",
]
