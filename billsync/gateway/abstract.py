"""
Remote gateway interfaces and result contracts for billsync.

A gateway is the only way the sync engine talks to the remote sheet. It can
read whole tables and write whole rows; it has no partial-field patch, no
transactions and no merge. Implementations must raise GatewayError (or a
subclass) for any failure and must not retry pushes.
"""

from __future__ import annotations

import abc
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, TypedDict, runtime_checkable

from billsync.domain.models import NewUser, User
from billsync.domain.rows import RawRow


class RowKind(str, Enum):
    PRODUCTS = "products"
    BILLS = "bills"


class PushMode(str, Enum):
    APPEND = "append"
    UPSERT = "upsert"
    DELETE = "delete"


class RemoteSnapshot(TypedDict):
    """Whole-table read of the remote sheet, rows still in raw column form."""

    products: List[RawRow]
    bills: List[RawRow]


class PushAck(TypedDict, total=False):
    """
    Acknowledgement returned by a push.

    Fields are optional; the remote web app reports what it likes.
    """

    ok: bool
    kind: str
    mode: str
    rows: int
    detail: Optional[Any]


@runtime_checkable
class RemoteGateway(Protocol):
    """
    Common interface all remote gateways must implement.
    """

    async def fetch_all(self) -> RemoteSnapshot:
        """
        Read every product and bill row.

        Raises
        ------
        GatewayError
            If the endpoint is unreachable or reports failure.
        """
        ...

    async def push_rows(self, kind: RowKind, rows: Sequence[RawRow], mode: PushMode) -> PushAck:
        """
        Append, upsert or delete rows of one table.

        Delete rows only need their "Id" column.

        Raises
        ------
        GatewayError
            On transport failure or a rejected write.
        """
        ...


@runtime_checkable
class UserDirectory(Protocol):
    """
    Account administration on the same remote web app.
    """

    async def list_users(self) -> List[User]:
        ...

    async def create_user(self, user: NewUser) -> Dict[str, Any]:
        ...

    async def delete_user(self, user_id: str) -> Dict[str, Any]:
        ...


class AbstractRemoteGateway(abc.ABC):
    """
    Optional ABC helper for class-based implementations.
    """

    @abc.abstractmethod
    async def fetch_all(self) -> RemoteSnapshot:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def push_rows(
        self, kind: RowKind, rows: Sequence[RawRow], mode: PushMode
    ) -> PushAck:  # pragma: no cover - interface only
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release any held resources. Default: nothing to release."""
        return None


__all__ = [
    "AbstractRemoteGateway",
    "PushAck",
    "PushMode",
    "RemoteGateway",
    "RemoteSnapshot",
    "RowKind",
    "UserDirectory",
]
