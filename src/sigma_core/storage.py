"""
storage.py — Where the Supabase auth client keeps the session.

Two interchangeable stores behind one interface, picked once when the
client is created:

  MemorySessionStorage — lives as long as the process ("remember me" off)
  FileSessionStorage   — JSON file on disk, survives restarts ("remember me" on)

The interface matches what supabase's async auth client expects for its
``storage`` option (async get_item / set_item / remove_item).

Usage:
    storage = select_storage(remember_me=True, path=settings.session_storage_path)
    await storage.set_item("sb-auth-token", token_json)
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path

import structlog
from filelock import FileLock

log = structlog.get_logger(__name__)


class SessionStorage(ABC):
    @abstractmethod
    async def get_item(self, key: str) -> str | None: ...

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def remove_item(self, key: str) -> None: ...


class MemorySessionStorage(SessionStorage):
    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    async def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileSessionStorage(SessionStorage):
    """Persist items in a JSON file, guarded by a file lock."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = FileLock(str(self._path) + ".lock")

    def _ensure_dir(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            return json.loads(self._path.read_text())
        except (json.JSONDecodeError, OSError):
            log.warning("session_storage_unreadable", path=str(self._path))
            return {}

    def _write_all(self, data: dict[str, str]) -> None:
        self._ensure_dir()
        self._path.write_text(json.dumps(data, indent=2))

    async def get_item(self, key: str) -> str | None:
        self._ensure_dir()
        with self._lock:
            data = self._read_all()
        return data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._ensure_dir()
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    async def remove_item(self, key: str) -> None:
        self._ensure_dir()
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)


def select_storage(remember_me: bool, path: str | Path) -> SessionStorage:
    """Pick the session store for this login."""
    if remember_me:
        log.debug("session_storage_selected", kind="file", path=str(path))
        return FileSessionStorage(path)
    log.debug("session_storage_selected", kind="memory")
    return MemorySessionStorage()
