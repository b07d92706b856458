"""
Response cache abstraction.

Supports an in-memory TTL cache for tests/local runs and a Redis-backed
implementation for production.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Protocol

import redis
from redis import exceptions as redis_exceptions

from shared.constants import (
    CACHE_CATEGORY_MAX_SIZES,
    CACHE_CATEGORY_TTLS,
    DEFAULT_CACHE_MAX_SIZE,
)

logger = logging.getLogger(__name__)


class ResponseCache(Protocol):
    """Minimal cache interface used by the routes."""

    def get(self, key: str) -> Any:
        ...

    def set(self, key: str, value: Any, category: str = "api") -> None:
        ...

    def delete_prefix(self, prefix: str) -> int:
        ...

    def metrics(self) -> dict:
        ...


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    def as_dict(self, size: int) -> dict:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "total_requests": total,
            "hit_rate": round(self.hits / total * 100, 2) if total else 0.0,
            "size": size,
        }


@dataclass
class _Entry:
    value: Any
    expires_at: float
    category: str
    last_access: float


@dataclass
class InMemoryResponseCache:
    """TTL cache with per-category size limits and LRU eviction."""

    default_ttl: int = 300
    ttls: Dict[str, int] = field(default_factory=lambda: dict(CACHE_CATEGORY_TTLS))
    max_sizes: Dict[str, int] = field(
        default_factory=lambda: dict(CACHE_CATEGORY_MAX_SIZES)
    )
    clock: Callable[[], float] = time.monotonic

    def __post_init__(self):
        self._entries: Dict[str, _Entry] = {}
        self._stats = CacheStats()
        self._lock = threading.Lock()

    def ttl_for(self, category: str) -> int:
        return self.ttls.get(category, self.default_ttl)

    def get(self, key: str) -> Any:
        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.expires_at <= now:
                if entry is not None:
                    del self._entries[key]
                self._stats.misses += 1
                return None
            entry.last_access = now
            self._stats.hits += 1
            return entry.value

    def set(self, key: str, value: Any, category: str = "api") -> None:
        now = self.clock()
        max_size = self.max_sizes.get(category, DEFAULT_CACHE_MAX_SIZE)
        with self._lock:
            in_category = [
                (k, e) for k, e in self._entries.items()
                if e.category == category and k != key
            ]
            if len(in_category) >= max_size:
                oldest_key, _ = min(in_category, key=lambda item: item[1].last_access)
                del self._entries[oldest_key]
                self._stats.evictions += 1
                logger.debug("Evicted %s (%s)", oldest_key, category)
            self._entries[key] = _Entry(
                value=value,
                expires_at=now + self.ttl_for(category),
                category=category,
                last_access=now,
            )

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for k in keys:
                del self._entries[k]
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._stats = CacheStats()

    def metrics(self) -> dict:
        with self._lock:
            result = self._stats.as_dict(len(self._entries))
        result["backend"] = "memory"
        result["ttls"] = {**self.ttls, "default": self.default_ttl}
        return result


@dataclass
class RedisResponseCache:
    """Redis-backed cache storing JSON values with SETEX."""

    url: str
    prefix: str = "agency:cache"
    default_ttl: int = 300
    ttls: Dict[str, int] = field(default_factory=lambda: dict(CACHE_CATEGORY_TTLS))

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)
        self._stats = CacheStats()
        self._lock = threading.Lock()

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def _count(self, attr: str) -> None:
        with self._lock:
            setattr(self._stats, attr, getattr(self._stats, attr) + 1)

    def get(self, key: str) -> Any:
        try:
            raw = self.client.get(self._key(key))
        except redis_exceptions.ConnectionError as e:
            # An unreachable cache counts as a miss.
            logger.warning("Redis cache unavailable: %s", e)
            raw = None
        if raw is None:
            self._count("misses")
            return None
        self._count("hits")
        return json.loads(raw)

    def set(self, key: str, value: Any, category: str = "api") -> None:
        ttl = self.ttls.get(category, self.default_ttl)
        try:
            self.client.setex(self._key(key), ttl, json.dumps(value, default=str))
        except redis_exceptions.ConnectionError as e:
            logger.warning("Redis cache unavailable: %s", e)

    def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        for redis_key in self.client.scan_iter(match=f"{self._key(prefix)}*"):
            deleted += self.client.delete(redis_key)
        return deleted

    def metrics(self) -> dict:
        try:
            size = sum(1 for _ in self.client.scan_iter(match=f"{self.prefix}:*"))
        except redis_exceptions.ConnectionError:
            size = -1
        with self._lock:
            result = self._stats.as_dict(size)
        result["backend"] = "redis"
        result["ttls"] = {**self.ttls, "default": self.default_ttl}
        return result


def get_or_fetch(
    cache: ResponseCache,
    key: str,
    fetcher: Callable[[], Any],
    category: str = "api",
) -> tuple[Any, bool]:
    """
    Returns (value, cached). Calls `fetcher` and stores its result on a miss.

    `None` results are never cached.
    """
    value = cache.get(key)
    if value is not None:
        return value, True
    value = fetcher()
    if value is not None:
        cache.set(key, value, category)
    return value, False
