"""
Key-value persistence backends for the record store.

A backend maps a collection key ("products", "bills") to a JSON-compatible
list of dicts. Writes are synchronous: when `set` returns, the data is
durable (for the file backend: written to a temp file, fsynced and atomically
renamed over the previous document).
"""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from billsync.utils.logging import get_logger

log = get_logger(__name__)

Document = List[Dict[str, Any]]


@runtime_checkable
class KeyValueBackend(Protocol):
    """
    Minimal storage contract used by RecordStore.
    """

    def get(self, key: str) -> Optional[Document]:
        """Return the stored collection, or None if never written."""
        ...

    def set(self, key: str, value: Document) -> None:
        """Replace the stored collection."""
        ...


class MemoryBackend:
    """
    Process-local backend; contents are lost on exit. Used by tests and dry runs.
    """

    def __init__(self, initial: Optional[Dict[str, Document]] = None) -> None:
        self._data: Dict[str, Document] = {k: list(v) for k, v in (initial or {}).items()}
        self.writes = 0

    def get(self, key: str) -> Optional[Document]:
        value = self._data.get(key)
        return list(value) if value is not None else None

    def set(self, key: str, value: Document) -> None:
        self._data[key] = list(value)
        self.writes += 1


class JsonFileBackend:
    """
    All collections in one JSON document on disk.

    The document is cached after the first read; every `set` rewrites the
    whole file. A corrupt file is not silently replaced: the error propagates
    so the operator can recover it by hand.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._cache: Optional[Dict[str, Document]] = None

    def _load(self) -> Dict[str, Document]:
        if self._cache is None:
            if self.path.exists():
                with self.path.open("r", encoding="utf-8") as f:
                    self._cache = json.load(f)
                log.debug("Store loaded", extra={"path": str(self.path)})
            else:
                self._cache = {}
        return self._cache

    def get(self, key: str) -> Optional[Document]:
        with self._lock:
            value = self._load().get(key)
            return list(value) if value is not None else None

    def set(self, key: str, value: Document) -> None:
        with self._lock:
            data = dict(self._load())
            data[key] = list(value)
            self._write(data)
            self._cache = data

    def _write(self, data: Dict[str, Document]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise


__all__ = ["Document", "JsonFileBackend", "KeyValueBackend", "MemoryBackend"]
