"""
Stats Caching Service

In-memory TTL cache for dashboard aggregation results. Keys are scoped by
data domain so that loading a new snapshot only drops that domain's entries.
"""

from __future__ import annotations

import copy
import functools
import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from lifelog import config

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry:
    """A single cache entry with TTL tracking."""

    value: Any
    expires_at: float
    created_at: float = field(default_factory=time.time)

    def is_expired(self) -> bool:
        return time.time() > self.expires_at


class StatsCache:
    """
    Thread-safe in-memory cache with per-report TTLs.

    Keys have the form "<domain>:<report>:<hash>".
    """

    TTL_SHORT = 60
    TTL_LONG = 3600

    # Report-specific TTLs; anything else uses config.CACHE_TTL_SEC
    TTL_CONFIG: dict[str, int] = {
        "kpis": TTL_SHORT,
        "bounds": TTL_LONG,
    }

    def __init__(self, max_size: int | None = None, default_ttl: int | None = None) -> None:
        """
        Args:
            max_size: Maximum number of entries to keep
            default_ttl: TTL in seconds for reports without a TTL_CONFIG entry
        """
        self._cache: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._max_size = max_size if max_size is not None else config.CACHE_MAX_SIZE
        self._default_ttl = default_ttl if default_ttl is not None else config.CACHE_TTL_SEC
        self._hits = 0
        self._misses = 0
        self._last_cleanup = time.time()
        self._cleanup_interval = 60

    def _get_ttl(self, key: str) -> int:
        parts = key.split(":")
        report = parts[1] if len(parts) > 1 else ""
        return self.TTL_CONFIG.get(report, self._default_ttl)

    def _maybe_cleanup(self) -> None:
        now = time.time()
        if now - self._last_cleanup < self._cleanup_interval:
            return

        self._last_cleanup = now
        expired_keys = [k for k, v in self._cache.items() if v.is_expired()]
        for key in expired_keys:
            del self._cache[key]

        if expired_keys:
            logger.debug(f"Cleaned up {len(expired_keys)} expired cache entries")

    def _evict_if_needed(self) -> None:
        """Drop the oldest tenth of the entries once the size limit is reached."""
        if len(self._cache) < self._max_size:
            return

        entries_to_remove = max(1, self._max_size // 10)
        oldest = sorted(self._cache.items(), key=lambda item: item[1].created_at)
        for key, _ in oldest[:entries_to_remove]:
            del self._cache[key]

        logger.debug(f"Evicted {entries_to_remove} cache entries due to size limit")

    def get(self, key: str) -> tuple[bool, Any]:
        """
        Get a value from cache.

        Returns:
            Tuple of (hit, value)
        """
        with self._lock:
            self._maybe_cleanup()

            entry = self._cache.get(key)
            if entry is None or entry.is_expired():
                if entry is not None:
                    del self._cache[key]
                self._misses += 1
                return False, None

            self._hits += 1
            return True, entry.value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        with self._lock:
            if key not in self._cache:
                self._evict_if_needed()
            actual_ttl = ttl if ttl is not None else self._get_ttl(key)
            self._cache[key] = CacheEntry(value=value, expires_at=time.time() + actual_ttl)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def invalidate_pattern(self, pattern: str) -> int:
        """
        Invalidate all keys starting with a prefix.

        Returns:
            Number of keys invalidated
        """
        with self._lock:
            keys_to_delete = [k for k in self._cache if k.startswith(pattern)]
            for key in keys_to_delete:
                del self._cache[key]
            if keys_to_delete:
                logger.info(f"Invalidated {len(keys_to_delete)} cache entries matching '{pattern}'")
            return len(keys_to_delete)

    def invalidate_domain(self, domain: str) -> int:
        """Drop every cached result computed from one domain's snapshot."""
        return self.invalidate_pattern(f"{domain}:")

    def invalidate_all(self) -> int:
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
            logger.info(f"Cleared entire stats cache ({count} entries)")
            return count

    def get_stats(self) -> dict[str, Any]:
        """Hit/miss counters and current size."""
        with self._lock:
            total = self._hits + self._misses
            hit_ratio = self._hits / total if total > 0 else 0
            return {
                "size": len(self._cache),
                "max_size": self._max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_ratio": round(hit_ratio, 4),
                "total_requests": total,
            }


def make_cache_key(*args: Any, **kwargs: Any) -> str:
    """Stable short hash of call arguments."""
    key_data = json.dumps({"args": args, "kwargs": kwargs}, sort_keys=True, default=str)
    return hashlib.md5(key_data.encode()).hexdigest()[:16]


def cached(report: str, ttl: int | None = None):
    """
    Cache a domain-scoped method's result.

    The decorated method takes the domain as its first argument and the
    instance must expose a ``cache`` attribute (a StatsCache). Results are
    deep-copied into and out of the cache, so callers may mutate what they
    receive.

    Example:
        @cached("top")
        def get_top(self, domain: str, dimension: str):
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(self, domain: str, *args: Any, **kwargs: Any) -> T:
            cache: StatsCache = self.cache
            key = f"{domain}:{report}:{make_cache_key(*args, **kwargs)}"

            hit, value = cache.get(key)
            if hit:
                logger.debug(f"Cache hit for {domain}:{report}")
                return copy.deepcopy(value)

            logger.debug(f"Cache miss for {domain}:{report}, computing...")
            result = func(self, domain, *args, **kwargs)
            cache.set(key, copy.deepcopy(result), ttl)
            return result

        return wrapper

    return decorator


_stats_cache: StatsCache | None = None


def get_stats_cache() -> StatsCache:
    """Get the singleton StatsCache instance."""
    global _stats_cache
    if _stats_cache is None:
        _stats_cache = StatsCache()
    return _stats_cache
