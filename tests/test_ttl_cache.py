import pytest

from rebalancer.helpers.ttl_cache import TTLCache


class Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire() -> None:
    clock = Clock()
    cache = TTLCache(ttl_seconds=60, clock=clock)
    cache.set("usdc", 1)

    clock.now = 59.9
    assert cache.get("usdc") == 1
    clock.now = 60
    assert cache.get("usdc") is None
    assert len(cache) == 0


def test_get_or_load_calls_loader_once_per_ttl() -> None:
    clock = Clock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    calls = []

    def loader():
        calls.append(clock.now)
        return len(calls)

    assert cache.get_or_load("tokens", loader) == 1
    assert cache.get_or_load("tokens", loader) == 1
    clock.now = 11
    assert cache.get_or_load("tokens", loader) == 2
    assert calls == [0.0, 11]


def test_loader_errors_not_cached() -> None:
    cache = TTLCache()

    def broken():
        raise RuntimeError("api down")

    with pytest.raises(RuntimeError):
        cache.get_or_load("k", broken)
    assert cache.get_or_load("k", lambda: "ok") == "ok"


def test_invalidate() -> None:
    cache = TTLCache()
    cache.set("a", 1)
    cache.set("b", 2)

    cache.invalidate("a")
    assert cache.get("a") is None
    assert len(cache) == 1
    cache.invalidate()
    assert len(cache) == 0


def test_ttl_must_be_positive() -> None:
    with pytest.raises(ValueError):
        TTLCache(ttl_seconds=0)
