"""Response cache with per-data-class TTLs.

``Cache`` wraps a backend and never lets a backend failure reach the caller:
reads degrade to misses and writes to no-ops, with a single warning logged.
"""

from __future__ import annotations

import threading
import time
from datetime import timedelta
from typing import Protocol

import redis

from addressiq.core.logging import get_logger
from addressiq.utils.time import expires_at, is_expired

logger = get_logger(__name__)

STATIC_TTL = timedelta(days=90)
DEMOGRAPHICS_TTL = timedelta(days=30)
TRANSACTIONS_TTL = timedelta(days=7)
PROPERTY_TTL = timedelta(hours=24)
VALUATION_TTL = timedelta(hours=24)
AGGREGATED_TTL = timedelta(hours=24)
AIR_QUALITY_TTL = timedelta(hours=1)
WEATHER_TTL = timedelta(minutes=30)
TRAFFIC_TTL = timedelta(minutes=5)

RETRY_AFTER_SEC = 30.0


def normalize_postcode(postcode: str) -> str:
    return "".join(postcode.split()).upper()


def normalize_house_number(house_number: str) -> str:
    return house_number.strip()


class CacheKey:
    @staticmethod
    def property(bag_id: str) -> str:
        return f"property:{bag_id}"

    @staticmethod
    def valuation(bag_id: str) -> str:
        return f"valuation:{bag_id}"

    @staticmethod
    def transactions(bag_id: str) -> str:
        return f"transactions:{bag_id}"

    @staticmethod
    def scores(bag_id: str) -> str:
        return f"scores:{bag_id}"

    @staticmethod
    def weather(lat: float, lon: float) -> str:
        return f"weather:{lat:.4f}:{lon:.4f}"

    @staticmethod
    def traffic(lat: float, lon: float, radius: int) -> str:
        return f"traffic:{lat:.4f}:{lon:.4f}:{radius}"

    @staticmethod
    def air_quality(lat: float, lon: float) -> str:
        return f"airquality:{lat:.4f}:{lon:.4f}"

    @staticmethod
    def soil(lat: float, lon: float) -> str:
        return f"soil:{lat:.4f}:{lon:.4f}"

    @staticmethod
    def elevation(lat: float, lon: float) -> str:
        return f"elevation:{lat:.4f}:{lon:.4f}"

    @staticmethod
    def demographics(region_code: str) -> str:
        return f"demographics:{region_code}"

    @staticmethod
    def aggregated(postcode: str, house_number: str) -> str:
        return f"aggregated:{normalize_postcode(postcode)}:{normalize_house_number(house_number)}"


class CacheBackend(Protocol):
    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes, ttl: timedelta) -> None: ...

    def delete(self, key: str) -> None: ...

    def exists(self, key: str) -> bool: ...

    def flush(self) -> None: ...

    def close(self) -> None: ...


class MemoryBackend:
    """In-process store; expiry is checked on read and swept every ``sweep_every`` writes."""

    def __init__(self, sweep_every: int = 256) -> None:
        self._items: dict[str, tuple[bytes, float]] = {}
        self._lock = threading.Lock()
        self._sweep_every = sweep_every
        self._writes = 0

    def get(self, key: str) -> bytes | None:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            value, deadline = item
            if is_expired(deadline):
                del self._items[key]
                return None
            return value

    def set(self, key: str, value: bytes, ttl: timedelta) -> None:
        with self._lock:
            self._items[key] = (bytes(value), expires_at(ttl))
            self._writes += 1
            if self._writes % self._sweep_every == 0:
                self._sweep()

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def flush(self) -> None:
        with self._lock:
            self._items.clear()

    def close(self) -> None:
        self.flush()

    def _sweep(self) -> None:
        expired = [key for key, (_, deadline) in self._items.items() if is_expired(deadline)]
        for key in expired:
            del self._items[key]


class RedisBackend:
    def __init__(self, url: str, timeout: float = 5.0) -> None:
        self._client = redis.Redis.from_url(url, socket_timeout=timeout, socket_connect_timeout=timeout)

    def get(self, key: str) -> bytes | None:
        return self._client.get(key)

    def set(self, key: str, value: bytes, ttl: timedelta) -> None:
        self._client.set(key, value, ex=ttl)

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def exists(self, key: str) -> bool:
        return bool(self._client.exists(key))

    def ping(self) -> None:
        self._client.ping()

    def flush(self) -> None:
        self._client.flushdb()

    def close(self) -> None:
        self._client.close()


class Cache:
    """Once the backend fails, calls short-circuit to misses for ``retry_after`` seconds."""

    def __init__(self, backend: CacheBackend, retry_after: float = RETRY_AFTER_SEC) -> None:
        self._backend = backend
        self._retry_after = retry_after
        self._degraded = False
        self._retry_at = 0.0

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    @property
    def degraded(self) -> bool:
        return self._degraded

    def get(self, key: str) -> bytes | None:
        if self._suspended():
            return None
        try:
            value = self._backend.get(key)
        except redis.RedisError as exc:
            self._degrade("get", exc)
            return None
        self._recover()
        return value

    def set(self, key: str, value: bytes, ttl: timedelta) -> None:
        if self._suspended():
            return
        try:
            self._backend.set(key, value, ttl)
        except redis.RedisError as exc:
            self._degrade("set", exc)
            return
        self._recover()

    def delete(self, key: str) -> None:
        if self._suspended():
            return
        try:
            self._backend.delete(key)
        except redis.RedisError as exc:
            self._degrade("delete", exc)
            return
        self._recover()

    def exists(self, key: str) -> bool:
        if self._suspended():
            return False
        try:
            found = self._backend.exists(key)
        except redis.RedisError as exc:
            self._degrade("exists", exc)
            return False
        self._recover()
        return found

    def flush(self) -> None:
        """Unlike the other operations, a failed flush is reported to the caller."""
        self._backend.flush()
        self._recover()

    def close(self) -> None:
        try:
            self._backend.close()
        except redis.RedisError as exc:
            logger.debug("cache close failed: %s", exc)

    def _suspended(self) -> bool:
        return self._degraded and time.monotonic() < self._retry_at

    def _degrade(self, operation: str, exc: Exception) -> None:
        if not self._degraded:
            logger.warning("cache %s failed, continuing without cache: %s", operation, exc)
            self._degraded = True
        self._retry_at = time.monotonic() + self._retry_after

    def _recover(self) -> None:
        if self._degraded:
            logger.info("cache backend reachable again")
            self._degraded = False


def build_cache(redis_url: str | None) -> Cache:
    if redis_url:
        backend = RedisBackend(redis_url)
        try:
            backend.ping()
        except redis.RedisError as exc:
            logger.warning("Redis unreachable (%s), using in-process cache", exc)
            backend.close()
        else:
            logger.info("using Redis cache")
            return Cache(backend)
    else:
        logger.info("REDIS_URL not set, using in-process cache")
    return Cache(MemoryBackend())
