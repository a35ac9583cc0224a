"""
Gateway package for billsync.

Re-exports the remote gateway contract and the spreadsheet web-app
implementation so callers can import from `billsync.gateway` directly.
"""

from billsync.gateway.abstract import (
    AbstractRemoteGateway,
    PushAck,
    PushMode,
    RemoteGateway,
    RemoteSnapshot,
    RowKind,
    UserDirectory,
)
from billsync.gateway.sheets import SheetsGateway

__all__ = [
    # Contract
    "AbstractRemoteGateway",
    "PushAck",
    "PushMode",
    "RemoteGateway",
    "RemoteSnapshot",
    "RowKind",
    "UserDirectory",
    # Implementations
    "SheetsGateway",
]
