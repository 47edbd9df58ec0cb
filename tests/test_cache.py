"""
Tests for the cohort result cache.
"""

import pytest

from core.cache.results import ResultCache


class FakeClock:

    def __init__(self):
        self.value = 0.0

    def __call__(self):
        return self.value


@pytest.fixture
def clock():
    return FakeClock()


def test_put_and_get(clock):
    cache = ResultCache(ttl_seconds=10, clock=clock)
    cache.put(("Assembly", 30), ("result",))

    assert cache.get(("Assembly", 30)) == ("result",)
    assert cache.get(("Cutting", 30)) is None


def test_entries_expire_lazily(clock):
    cache = ResultCache(ttl_seconds=10, clock=clock)
    cache.put("key", "value")

    clock.value = 10
    assert cache.get("key") == "value"

    clock.value = 10.5
    assert len(cache) == 1
    assert cache.get("key") is None
    assert len(cache) == 0
    assert cache.get_stats()["expired"] == 1


def test_invalidate_all(clock):
    cache = ResultCache(ttl_seconds=10, clock=clock)
    cache.put("a", 1)
    cache.put("b", 2)

    assert cache.invalidate_all() == 2
    assert cache.get("a") is None
    assert len(cache) == 0


def test_stats(clock):
    cache = ResultCache(ttl_seconds=10, clock=clock)
    cache.put("a", 1)
    cache.get("a")
    cache.get("missing")

    stats = cache.get_stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["writes"] == 1
    assert stats["entries"] == 1
    assert stats["ttl_seconds"] == 10


@pytest.mark.parametrize("ttl", [0, -1])
def test_invalid_ttl(ttl):
    with pytest.raises(ValueError):
        ResultCache(ttl_seconds=ttl)
