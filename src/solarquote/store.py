"""Durable key-value store for funnel answers.

Every value is JSON-encoded on write and decoded on read. A key holding
malformed JSON reads as absent: the caller falls back to its defaults
instead of seeing an exception.
"""

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_MISSING = object()


class Backend(Protocol):
    def read(self, key: str) -> str | None: ...

    def write(self, key: str, raw: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryBackend:
    """Process-lifetime backend. Used for session-scoped data and tests."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def read(self, key: str) -> str | None:
        return self._data.get(key)

    def write(self, key: str, raw: str) -> None:
        self._data[key] = raw

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class SqliteBackend:
    """File-backed backend. Each write is committed before returning."""

    def __init__(self, path: str | Path):
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.path, isolation_level=None, check_same_thread=False)
        self._conn.execute("CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)")

    def read(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def write(self, key: str, raw: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, raw),
            )

    def delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def keys(self) -> list[str]:
        with self._lock:
            return [row[0] for row in self._conn.execute("SELECT key FROM kv ORDER BY key")]

    def close(self) -> None:
        self._conn.close()


class AnswerStore:
    """JSON key-value store. The only path to the underlying backend."""

    def __init__(self, backend: Backend | None = None):
        self.backend = backend if backend is not None else MemoryBackend()

    def get(self, key: str, default: Any = None) -> Any:
        raw = self.backend.read(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding malformed value under %r", key)
            return default

    def has(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def set(self, key: str, value: Any) -> None:
        self.backend.write(key, json.dumps(value))

    def merge(self, key: str, partial: dict) -> dict:
        """Shallow-merge ``partial`` into the object under ``key``.

        Anything that is not a JSON object under ``key`` is replaced.
        Returns the merged object as written.
        """
        current = self.get(key)
        if not isinstance(current, dict):
            current = {}
        merged = {**current, **partial}
        self.set(key, merged)
        return merged

    def remove(self, *keys: str) -> None:
        for key in keys:
            self.backend.delete(key)

    def clear(self) -> None:
        for key in self.backend.keys():
            self.backend.delete(key)
