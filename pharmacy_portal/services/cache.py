import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Hashable, Optional, Tuple

from pharmacy_portal.logs import debug_logger

_MISSING = object()


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    invalidations: int = 0


class TTLCache:
    """
    Bounded in-memory cache with write-time expiry and LRU eviction.

    invalidate_all() bumps a generation counter; a value loaded under an
    older generation is returned to its caller but never stored, so a read
    that raced a write cannot repopulate the cache with pre-write data.
    """

    def __init__(
        self,
        name: str,
        max_entries: int = 100,
        ttl_seconds: float = 1800,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.name = name
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()
        self._generation = 0
        self.stats = CacheStats()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def generation(self) -> int:
        return self._generation

    def _lookup(self, key: Hashable) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return _MISSING
        self._entries.move_to_end(key)
        return value

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            value = self._lookup(key)
            if value is _MISSING:
                self.stats.misses += 1
                return default
            self.stats.hits += 1
            return value

    def put(self, key: Hashable, value: Any, generation: Optional[int] = None) -> bool:
        """Store a value; returns False when it was loaded before the last invalidation"""
        with self._lock:
            if generation is not None and generation != self._generation:
                debug_logger.debug(f"Cache {self.name}: dropping stale value for {key}")
                return False
            self._entries[key] = (self._clock(), value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
                self.stats.evictions += 1
            return True

    async def get_or_load(self, key: Hashable, loader: Callable[[], Awaitable[Any]]) -> Any:
        with self._lock:
            value = self._lookup(key)
            if value is not _MISSING:
                self.stats.hits += 1
                return value
            self.stats.misses += 1
            generation = self._generation

        value = await loader()
        self.put(key, value, generation=generation)
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_all(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1
            self.stats.invalidations += 1
        debug_logger.debug(f"Cache {self.name}: all entries evicted")
