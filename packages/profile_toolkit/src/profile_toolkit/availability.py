"""Cached command availability checks for tool wrappers."""

from __future__ import annotations

import shutil

from profile_toolkit.cache import TTLCache

DEFAULT_AVAILABILITY_TTL = 300.0

_default_cache = TTLCache(default_ttl=DEFAULT_AVAILABILITY_TTL)


def command_available(
    name: str,
    *,
    cache: TTLCache | None = None,
    ttl_seconds: float | None = None,
) -> bool:
    """Return True when ``name`` resolves to an executable on PATH.

    Results (including misses) are cached so repeated wrapper calls do not
    rescan PATH.
    """
    if not name or not name.strip():
        return False
    store = cache if cache is not None else _default_cache
    key = f"command-available:{name}"
    cached = store.get(key)
    if cached is not None:
        return bool(cached)
    available = shutil.which(name) is not None
    store.set(key, available, ttl_seconds)
    return available


def clear_availability_cache() -> None:
    """Clear cached availability results (for tests or after installs)."""
    _default_cache.clear()
