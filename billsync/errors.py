"""
Exception hierarchy for billsync.

Gateway errors cover everything that can go wrong talking to the remote sheet;
the sync driver treats any of them as "abort this cycle, keep local state".
Billing errors are raised to the caller of a mutation before anything is
written.
"""

from __future__ import annotations


class BillsyncError(Exception):
    """Base class for all billsync errors."""


class GatewayError(BillsyncError):
    """The remote backend could not be reached or rejected the request."""


class GatewayConfigError(GatewayError):
    """The gateway is missing required configuration (e.g. the endpoint URL)."""


class GatewayTransportError(GatewayError):
    """Network-level failure: connection refused, DNS, timeout."""


class GatewayResponseError(GatewayError):
    """Non-success HTTP status or an `ok: false` payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RecordNotFoundError(BillsyncError, KeyError):
    """No record with the requested identifier exists in the store."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "record not found"


class BillingError(BillsyncError, ValueError):
    """A bill or product mutation was rejected."""


class EmptyBillError(BillingError):
    """A bill must contain at least one line item."""


class InsufficientStockError(BillingError):
    def __init__(self, product_id: str, available: int, requested: int) -> None:
        super().__init__(
            f"Not enough stock for product {product_id}: "
            f"available={available} requested={requested}"
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


__all__ = [
    "BillsyncError",
    "GatewayError",
    "GatewayConfigError",
    "GatewayTransportError",
    "GatewayResponseError",
    "RecordNotFoundError",
    "BillingError",
    "EmptyBillError",
    "InsufficientStockError",
]
