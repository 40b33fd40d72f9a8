"""Expiring key/value cache for repeated probes.

Expiration is checked lazily when an entry is read; there is no background
eviction.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

DEFAULT_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class CacheEntry:
    """Cached value with its absolute expiry time."""

    key: str
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """Return True once ``now`` is past the expiry time."""
        return now > self.expires_at


class TTLCache:
    """Thread-safe TTL cache with lazy eviction."""

    def __init__(
        self,
        *,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or ``default`` if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return default
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> CacheEntry:
        """Store a value for ``ttl_seconds`` (default TTL when omitted)."""
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        entry = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl)
        with self._lock:
            self._entries[key] = entry
        return entry

    def clear(self, key: str | None = None) -> int:
        """Remove one key, or every entry when ``key`` is None.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            if key is None:
                removed = len(self._entries)
                self._entries.clear()
                return removed
            return 1 if self._entries.pop(key, None) is not None else 0

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
