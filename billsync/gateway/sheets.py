"""
HTTP gateway for the spreadsheet web app backing the shop.

Wire contract:
- GET <url> returns {"ok": true, "products": [...], "bills": [...]}.
- POST <url> with a JSON body sent as text/plain;charset=utf-8:
    append: {"type": kind, "rows": [...]}
    upsert: {"type": kind, "action": "upsert", "rows": [...]}
    delete: {"type": kind, "action": "delete", "ids": [...]}
  and returns {"ok": true, ...}.
- Users table, also POST: {"type": "users", "action": "getUsers"} returns
  {"ok": true, "users": [...]}; "createUser" carries a "user" row and
  "deleteUser" a "userId".
- Any response with "ok": false carries an "error" message.

requests is blocking, so each call runs in a worker thread via
asyncio.to_thread. Fetches may be retried on transport errors with tenacity
(FETCH_ATTEMPTS, default 1 = no retry); pushes are never retried.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence

import requests
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from billsync.config import get_settings
from billsync.domain.models import NewUser, User
from billsync.domain.rows import RawRow, map_remote_users, user_to_row
from billsync.errors import GatewayConfigError, GatewayResponseError, GatewayTransportError
from billsync.gateway.abstract import (
    AbstractRemoteGateway,
    PushAck,
    PushMode,
    RemoteSnapshot,
    RowKind,
)
from billsync.utils.logging import get_logger

log = get_logger(__name__)

_POST_HEADERS = {"Content-Type": "text/plain;charset=utf-8"}


class SheetsGateway(AbstractRemoteGateway):
    """
    Gateway to a spreadsheet web app.

    Parameters
    ----------
    url : str, optional
        Web app endpoint. Defaults to settings.sheets_web_app_url.
    timeout : float, optional
        Per-request timeout in seconds.
    fetch_attempts : int, optional
        Total attempts for fetch_all on transport errors.
    session : requests.Session, optional
        Injected session (tests, custom adapters).
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        fetch_attempts: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        settings = get_settings()
        self.url = url or settings.sheets_web_app_url
        self.timeout = timeout or settings.request_timeout
        self.fetch_attempts = fetch_attempts or settings.fetch_attempts
        self._session = session or requests.Session()
        self._owns_session = session is None
        self.fetch_wait = wait_exponential(multiplier=1, min=1, max=10)

    def _ensure_url(self) -> str:
        if not self.url:
            raise GatewayConfigError("Missing SHEETS_WEB_APP_URL")
        return self.url

    def _decode(self, response: requests.Response, failure: str) -> Dict[str, Any]:
        if not response.ok:
            raise GatewayResponseError(
                f"{failure}: HTTP {response.status_code}", status_code=response.status_code
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise GatewayResponseError(f"{failure}: invalid JSON", response.status_code) from exc
        if not isinstance(data, dict) or not data.get("ok"):
            message = data.get("error") if isinstance(data, dict) else None
            raise GatewayResponseError(message or failure, response.status_code)
        return data

    def _get(self) -> RemoteSnapshot:
        url = self._ensure_url()
        try:
            response = self._session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise GatewayTransportError(f"Failed to fetch sheet data: {exc}") from exc
        data = self._decode(response, "Failed to fetch sheet data")
        products = data.get("products")
        bills = data.get("bills")
        return RemoteSnapshot(
            products=products if isinstance(products, list) else [],
            bills=bills if isinstance(bills, list) else [],
        )

    def _fetch_with_retry(self) -> RemoteSnapshot:
        for attempt in Retrying(
            stop=stop_after_attempt(self.fetch_attempts),
            wait=self.fetch_wait,
            retry=retry_if_exception_type(GatewayTransportError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    log.info(
                        "Retrying sheet fetch",
                        extra={"attempt": attempt.retry_state.attempt_number},
                    )
                return self._get()
        raise AssertionError("unreachable")  # pragma: no cover

    def _payload(self, kind: RowKind, rows: Sequence[RawRow], mode: PushMode) -> Dict[str, Any]:
        if mode is PushMode.APPEND:
            return {"type": kind.value, "rows": list(rows)}
        if mode is PushMode.UPSERT:
            return {"type": kind.value, "action": "upsert", "rows": list(rows)}
        return {
            "type": kind.value,
            "action": "delete",
            "ids": [row.get("Id") for row in rows if row.get("Id")],
        }

    def _post_json(self, payload: Dict[str, Any], failure: str) -> Dict[str, Any]:
        url = self._ensure_url()
        body = json.dumps(payload)
        try:
            response = self._session.post(
                url, data=body.encode("utf-8"), headers=_POST_HEADERS, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise GatewayTransportError(f"{failure}: {exc}") from exc
        return self._decode(response, failure)

    def _post(self, kind: RowKind, rows: Sequence[RawRow], mode: PushMode) -> PushAck:
        data = self._post_json(self._payload(kind, rows, mode), "Sheet write failed")
        return PushAck(ok=True, kind=kind.value, mode=mode.value, rows=len(rows), detail=data)

    async def fetch_all(self) -> RemoteSnapshot:
        snapshot = await asyncio.to_thread(self._fetch_with_retry)
        log.debug(
            "Fetched sheet snapshot",
            extra={"products": len(snapshot["products"]), "bills": len(snapshot["bills"])},
        )
        return snapshot

    async def push_rows(self, kind: RowKind, rows: Sequence[RawRow], mode: PushMode) -> PushAck:
        kind, mode = RowKind(kind), PushMode(mode)
        return await asyncio.to_thread(self._post, kind, rows, mode)

    # Users table

    def _get_users(self) -> List[User]:
        data = self._post_json({"type": "users", "action": "getUsers"}, "Failed to fetch users")
        users = data.get("users")
        if not isinstance(users, list):
            raise GatewayResponseError("Failed to fetch users")
        return map_remote_users(users)

    async def list_users(self) -> List[User]:
        return await asyncio.to_thread(self._get_users)

    async def create_user(self, user: NewUser) -> Dict[str, Any]:
        payload = {"type": "users", "action": "createUser", "user": user_to_row(user)}
        data = await asyncio.to_thread(self._post_json, payload, "Failed to create user")
        log.info("User created", extra={"username": user.username, "role": user.role})
        return data

    async def delete_user(self, user_id: str) -> Dict[str, Any]:
        payload = {"type": "users", "action": "deleteUser", "userId": user_id}
        data = await asyncio.to_thread(self._post_json, payload, "Failed to delete user")
        log.info("User deleted", extra={"user_id": user_id})
        return data

    async def aclose(self) -> None:
        if self._owns_session:
            self._session.close()


__all__ = ["SheetsGateway"]
