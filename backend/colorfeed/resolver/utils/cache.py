import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import List, Optional, Tuple

from colorfeed.resolver.models import ColorResult
from colorfeed.resolver.utils.rwlock import ReadWriteLock

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0


class ColorCache:
    """Bounded in-memory cache of image URL -> ColorResult.

    Eviction is FIFO by insertion: once the cache holds ``capacity`` entries,
    each new URL evicts the oldest-inserted one. Reads never refresh an
    entry's position. Only successful results are stored, so a failed lookup
    is always retried on the next request.
    """

    def __init__(self, capacity: int):
        """
        Initialize the ColorCache.

        Args:
            capacity: Maximum number of entries held at once (must be >= 1).
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: "OrderedDict[str, ColorResult]" = OrderedDict()
        self._lock = ReadWriteLock()
        self._stats = CacheStats()
        self._stats_lock = threading.Lock()

    def get(self, url: str) -> Tuple[Optional[ColorResult], bool]:
        """
        Look up a URL.

        Args:
            url: The image URL.

        Returns:
            ``(result, True)`` on a hit, ``(None, False)`` on a miss.
        """
        with self._lock.read_locked():
            result = self._entries.get(url)
        with self._stats_lock:
            if result is None:
                self._stats.misses += 1
            else:
                self._stats.hits += 1
        return result, result is not None

    def add(self, url: str, result: ColorResult) -> Optional[str]:
        """
        Store a successful result.

        Re-adding a URL that is already cached replaces its value and keeps
        its original insertion rank.

        Args:
            url: The image URL.
            result: A successful ColorResult for that URL.

        Returns:
            The URL evicted to make room, or None.
        """
        if not result.ok:
            raise ValueError(f"refusing to cache failed result for {url}")

        with self._lock.write_locked():
            if url in self._entries:
                self._entries[url] = result
                return None

            evicted = None
            if len(self._entries) >= self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                with self._stats_lock:
                    self._stats.evictions += 1
            self._entries[url] = result

        if evicted is not None:
            logger.debug(f"Evicted {evicted}")
        return evicted

    def snapshot(self, limit: Optional[int] = None) -> List[ColorResult]:
        """Return up to ``limit`` cached results, oldest first."""
        with self._lock.read_locked():
            values = list(self._entries.values())
        return values if limit is None else values[:limit]

    def clear(self) -> None:
        with self._lock.write_locked():
            self._entries.clear()

    @property
    def stats(self) -> CacheStats:
        with self._stats_lock:
            return CacheStats(self._stats.hits, self._stats.misses, self._stats.evictions)

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._entries)

    def __contains__(self, url: object) -> bool:
        with self._lock.read_locked():
            return url in self._entries
