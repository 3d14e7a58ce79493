"""In-memory TTL cache with lazy and swept expiry."""

from __future__ import annotations

import copy
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sigma_core.constants import DEFAULT_TTL


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


@dataclass(frozen=True)
class CacheStats:
    size: int
    hits: int
    misses: int
    evictions: int


class TTLCache:
    """Dict-based cache with per-key TTL expiry and hit/miss accounting.

    ``None`` is the miss marker, so it is never stored. Values are copied on
    the way in and out; a caller mutating what it got back cannot change the
    cached entry.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store: dict[str, CacheEntry] = {}
        self._default_ttl = default_ttl
        self._clock = clock
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._clock() >= entry.expires_at:
            del self._store[key]
            self._evictions += 1
            self._misses += 1
            return None
        self._hits += 1
        return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        if value is None:
            self._store.pop(key, None)
            return
        expires_at = self._clock() + (ttl if ttl is not None else self._default_ttl)
        self._store[key] = CacheEntry(value=copy.deepcopy(value), expires_at=expires_at)

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with *prefix*. Returns count removed."""
        doomed = [k for k in self._store if k.startswith(prefix)]
        for k in doomed:
            del self._store[k]
        return len(doomed)

    def clear(self) -> None:
        self._store.clear()

    def cleanup(self) -> int:
        """Remove all expired entries. Returns count of evicted keys."""
        now = self._clock()
        expired = [k for k, entry in self._store.items() if entry.expires_at <= now]
        for k in expired:
            del self._store[k]
        self._evictions += len(expired)
        return len(expired)

    def get_stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._store),
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
        )

    def __contains__(self, key: object) -> bool:
        entry = self._store.get(key)  # type: ignore[arg-type]
        return entry is not None and self._clock() < entry.expires_at

    def __len__(self) -> int:
        return len(self._store)
