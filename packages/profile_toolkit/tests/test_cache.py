from __future__ import annotations

from profile_toolkit.availability import command_available
from profile_toolkit.cache import TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_get_returns_value_until_expiry() -> None:
    clock = FakeClock()
    cache = TTLCache(default_ttl=10, clock=clock)
    cache.set("key", "value")

    assert cache.get("key") == "value"
    clock.now += 10
    assert cache.get("key") == "value"
    clock.now += 0.5
    assert cache.get("key") is None
    assert cache.get("key", "fallback") == "fallback"


def test_per_entry_ttl_overrides_default() -> None:
    clock = FakeClock()
    cache = TTLCache(default_ttl=300, clock=clock)
    entry = cache.set("short", 1, ttl_seconds=1)

    assert entry.expires_at == 1001.0
    clock.now += 2
    assert "short" not in cache


def test_clear_single_key_and_everything() -> None:
    cache = TTLCache()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)

    assert cache.clear("a") == 1
    assert cache.clear("missing") == 0
    assert "a" not in cache
    assert cache.clear() == 2
    assert len(cache) == 0


def test_purge_expired_drops_only_expired_entries() -> None:
    clock = FakeClock()
    cache = TTLCache(default_ttl=5, clock=clock)
    cache.set("old", 1, ttl_seconds=1)
    cache.set("new", 2)
    clock.now += 2

    assert cache.purge_expired() == 1
    assert len(cache) == 1
    assert cache.get("new") == 2


def test_falsy_values_are_cached() -> None:
    cache = TTLCache()
    cache.set("flag", False)
    assert "flag" in cache
    assert cache.get("flag", "missing") is False


def test_command_available_caches_result(monkeypatch) -> None:
    calls: list[str] = []

    def fake_which(name: str) -> str | None:
        calls.append(name)
        return "/usr/bin/git" if name == "git" else None

    monkeypatch.setattr("profile_toolkit.availability.shutil.which", fake_which)
    cache = TTLCache()

    assert command_available("git", cache=cache) is True
    assert command_available("git", cache=cache) is True
    assert command_available("kubectl", cache=cache) is False
    assert command_available("kubectl", cache=cache) is False
    assert calls == ["git", "kubectl"]


def test_command_available_rejects_blank_names() -> None:
    assert command_available("") is False
    assert command_available("   ") is False
