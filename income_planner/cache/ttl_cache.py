"""Small in-memory TTL cache for quote lookups."""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass
class _CacheItem(Generic[T]):
    value: T
    stored_at: float
    ttl_seconds: float


class TTLCache:
    """Thread-safe TTL cache keyed by string.

    An entry is served while its age is below its TTL; at or past the TTL it
    is evicted on the next read. The clock is injectable so expiry can be
    driven deterministically.
    """

    def __init__(self, default_ttl_seconds: float = 30, clock: Callable[[], float] | None = None) -> None:
        self.default_ttl_seconds = max(0.001, float(default_ttl_seconds))
        self._clock = clock or time.monotonic
        self._data: dict[str, _CacheItem[object]] = {}
        self._lock = Lock()

    def get(self, key: str) -> object | None:
        now = self._clock()
        with self._lock:
            item = self._data.get(key)
            if not item:
                return None
            if now - item.stored_at >= item.ttl_seconds:
                self._data.pop(key, None)
                return None
            return item.value

    def set(self, key: str, value: object, ttl_seconds: float | None = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else max(0.001, float(ttl_seconds))
        with self._lock:
            self._data[key] = _CacheItem(value=value, stored_at=self._clock(), ttl_seconds=ttl)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
