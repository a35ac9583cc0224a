"""
Store package for billsync.

Holds the on-device working copy of products and bills. Keep this layer
focused on persistence and local invariants, decoupled from the remote
gateway and sync orchestration.
"""

from billsync.store.backends import JsonFileBackend, KeyValueBackend, MemoryBackend
from billsync.store.record_store import RecordStore

__all__ = [
    "JsonFileBackend",
    "KeyValueBackend",
    "MemoryBackend",
    "RecordStore",
]
