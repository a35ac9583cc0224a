"""
billsync - local-first billing and inventory with spreadsheet sync.

This package keeps a point-of-sale terminal's products and bills on the
device and reconciles them with a remote spreadsheet web app that can only
read whole tables and append, upsert or delete whole rows:

- A record store that keeps bill numbers unique and self-heals duplicates
- A bill number allocator that never hands out a taken number
- A reconciliation engine that keeps local-only fields and records
- A sync driver with fire-and-forget pushes and an observable failure channel

All merge intelligence lives on the client; the remote side is dumb storage.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from billsync.allocator import next_bill_number
from billsync.billing import BillingService, compute_totals, line_item, manual_item
from billsync.config import Settings, get_settings
from billsync.domain.models import Bill, DashboardStats, LineItem, Product
from billsync.errors import (
    BillingError,
    BillsyncError,
    GatewayError,
    InsufficientStockError,
    RecordNotFoundError,
)
from billsync.gateway.abstract import PushMode, RemoteGateway, RowKind
from billsync.reconcile import MergeResult, dedupe_bills, merge_bills, merge_products
from billsync.store.record_store import RecordStore
from billsync.sync.driver import SyncDriver, SyncReport, SyncState, SyncTrigger
from billsync.sync.pusher import PushFailure, PushQueue
from billsync.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Bill",
    "DashboardStats",
    "LineItem",
    "Product",
    # Core engine
    "MergeResult",
    "RecordStore",
    "dedupe_bills",
    "merge_bills",
    "merge_products",
    "next_bill_number",
    # Sync
    "PushFailure",
    "PushMode",
    "PushQueue",
    "RemoteGateway",
    "RowKind",
    "SyncDriver",
    "SyncReport",
    "SyncState",
    "SyncTrigger",
    # Billing
    "BillingService",
    "compute_totals",
    "line_item",
    "manual_item",
    # Errors
    "BillingError",
    "BillsyncError",
    "GatewayError",
    "InsufficientStockError",
    "RecordNotFoundError",
    # Logging
    "configure_logging",
    "get_logger",
]
