from datetime import timedelta

import pytest
import redis

from addressiq.services import cache as cache_module
from addressiq.services.cache import (
    AGGREGATED_TTL,
    Cache,
    CacheKey,
    MemoryBackend,
    RedisBackend,
    build_cache,
)


class BrokenBackend:
    def __init__(self) -> None:
        self.calls = 0

    def _fail(self, *args, **kwargs):
        self.calls += 1
        raise redis.ConnectionError("connection refused")

    get = set = delete = exists = flush = close = _fail


class FlakyBackend(MemoryBackend):
    def __init__(self) -> None:
        super().__init__()
        self.down = True

    def get(self, key):
        if self.down:
            raise redis.ConnectionError("connection refused")
        return super().get(key)


def test_aggregated_key_normalization():
    assert CacheKey.aggregated("3541ED", "53") == "aggregated:3541ED:53"
    assert CacheKey.aggregated(" 3541 ed ", "53 ") == CacheKey.aggregated("3541ED", "53")


def test_coordinate_keys_use_four_decimals():
    assert CacheKey.weather(52.090737, 5.12142) == "weather:52.0907:5.1214"
    assert CacheKey.traffic(52.1, 5.1, 1000) == "traffic:52.1000:5.1000:1000"
    assert CacheKey.air_quality(52.0, 5.0) == "airquality:52.0000:5.0000"
    assert CacheKey.demographics("GM0344") == "demographics:GM0344"


def test_memory_backend_roundtrip_and_expiry():
    cache = Cache(MemoryBackend())
    cache.set("a", b"payload", AGGREGATED_TTL)
    cache.set("b", b"stale", timedelta(seconds=-1))

    assert cache.get("a") == b"payload"
    assert cache.exists("a")
    assert cache.get("b") is None
    assert not cache.exists("missing")

    cache.delete("a")
    assert cache.get("a") is None


def test_memory_backend_sweeps_expired_entries():
    backend = MemoryBackend(sweep_every=2)
    backend.set("old", b"x", timedelta(seconds=-1))
    backend.set("new", b"y", timedelta(minutes=5))

    assert "old" not in backend._items
    assert backend.get("new") == b"y"


def test_flush_clears_everything():
    cache = Cache(MemoryBackend())
    cache.set("a", b"1", AGGREGATED_TTL)
    cache.set("b", b"2", AGGREGATED_TTL)
    cache.flush()
    assert cache.get("a") is None
    assert cache.get("b") is None


def test_backend_failure_degrades_to_miss(monkeypatch):
    warnings = []
    monkeypatch.setattr(cache_module.logger, "warning", lambda msg, *args: warnings.append(msg % args))
    backend = BrokenBackend()
    cache = Cache(backend)

    assert cache.get("k") is None
    cache.set("k", b"v", AGGREGATED_TTL)
    assert cache.exists("k") is False
    cache.delete("k")

    assert backend.calls == 1
    assert cache.degraded
    assert len(warnings) == 1
    assert "continuing without cache" in warnings[0]


def test_degraded_cache_stops_calling_backend():
    backend = BrokenBackend()
    cache = Cache(backend)

    for _ in range(5):
        assert cache.get("k") is None
        cache.set("k", b"v", AGGREGATED_TTL)

    assert backend.calls == 1


def test_degraded_cache_retries_after_window(monkeypatch):
    clock = [100.0]
    monkeypatch.setattr(cache_module.time, "monotonic", lambda: clock[0])
    backend = BrokenBackend()
    cache = Cache(backend, retry_after=30.0)

    cache.get("k")
    clock[0] += 10
    cache.get("k")
    assert backend.calls == 1

    clock[0] += 25
    cache.get("k")
    assert backend.calls == 2


def test_cache_recovers_when_backend_answers_again(monkeypatch):
    clock = [0.0]
    monkeypatch.setattr(cache_module.time, "monotonic", lambda: clock[0])
    backend = FlakyBackend()
    cache = Cache(backend, retry_after=1.0)
    cache.get("k")
    assert cache.degraded

    backend.down = False
    clock[0] += 2
    cache.set("k", b"v", AGGREGATED_TTL)

    assert not cache.degraded
    assert cache.get("k") == b"v"


def test_flush_failure_is_reported():
    with pytest.raises(redis.RedisError):
        Cache(BrokenBackend()).flush()


def test_build_cache_picks_backend(monkeypatch):
    monkeypatch.setattr(RedisBackend, "ping", lambda self: None)
    assert isinstance(build_cache(None).backend, MemoryBackend)
    assert isinstance(build_cache("redis://localhost:6379/0").backend, RedisBackend)


def test_build_cache_falls_back_when_redis_is_unreachable(monkeypatch):
    def refuse(self):
        raise redis.ConnectionError("connection refused")

    monkeypatch.setattr(RedisBackend, "ping", refuse)
    assert isinstance(build_cache("redis://localhost:6379/0").backend, MemoryBackend)
