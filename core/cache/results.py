"""
Cohort Result Cache

Thread-safe TTL cache for computed cohort results, keyed by the full filter
tuple of a query. Lifecycle: populate, read, invalidate-all. There is no per
cohort invalidation; any import or recalculation clears everything.

Entries are immutable tuples built before being published under the lock, so
a reader sees either the previous entry or the complete new one.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)


class ResultCache:
    """TTL cache with wholesale invalidation."""

    def __init__(self, ttl_seconds: float = 3600, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Lifetime of an entry in seconds
            clock: Monotonic time source (injectable for tests)
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self.stats = {
            "hits": 0,
            "misses": 0,
            "expired": 0,
            "writes": 0,
            "invalidations": 0
        }

    def get(self, key: Hashable) -> Optional[Any]:
        """
        Read an entry, purging it if it has expired.

        Returns:
            Cached value, or None on a miss
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats["misses"] += 1
                return None

            stored_at, value = entry
            if self._clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                self.stats["expired"] += 1
                self.stats["misses"] += 1
                logger.debug(f"Cache entry expired: {key}")
                return None

            self.stats["hits"] += 1
            return value

    def put(self, key: Hashable, value: Any) -> None:
        """Publish a fully built value for key"""
        entry = (self._clock(), value)
        with self._lock:
            self._entries[key] = entry
            self.stats["writes"] += 1

    def invalidate_all(self) -> int:
        """
        Drop every entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            self.stats["invalidations"] += 1
        logger.info(f"Cache invalidated: {removed} entries removed")
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        with self._lock:
            stats = self.stats.copy()
            stats["entries"] = len(self._entries)
        stats["ttl_seconds"] = self.ttl_seconds
        return stats
