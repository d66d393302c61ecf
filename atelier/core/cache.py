"""In-process query cache.

Entries are keyed by tuples such as ('tasks', 'project', 12). Each entry
carries two windows:

- stale_time: how long the data is served without refetching
- gc_time: how long an entry nobody reads is kept before it is swept

invalidate(prefix) drops every entry whose key starts with `prefix`, so
invalidate(('tasks',)) clears every task list at once.

State is per worker process and guarded by an RLock.
"""

import time
import threading
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger('atelier.core.cache')

QueryKey = Tuple[Hashable, ...]


@dataclass
class CacheEntry:
    data: Any
    updated_at: float
    last_access: float
    stale_time: float
    gc_time: float

    def is_fresh(self, now: float) -> bool:
        return (now - self.updated_at) < self.stale_time

    def is_expired(self, now: float) -> bool:
        return (now - self.last_access) >= self.gc_time


def key_matches(key: QueryKey, prefix: QueryKey) -> bool:
    """True if `prefix` is a leading slice of `key`."""
    return len(prefix) <= len(key) and key[:len(prefix)] == tuple(prefix)


class QueryCache:
    """Thread-safe key -> entry store with prefix invalidation."""

    def __init__(self, clock: Callable[[], float] = time.monotonic,
                 sweep_interval: float = 60):
        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._lock = threading.RLock()
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._last_sweep = clock()

    def get(self, key: QueryKey) -> Tuple[bool, Any]:
        """Return (hit, data). A hit means the entry exists and is fresh."""
        now = self._clock()
        with self._lock:
            self._maybe_sweep(now)
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            entry.last_access = now
            if not entry.is_fresh(now):
                return False, None
            return True, entry.data

    def peek(self, key: QueryKey) -> Optional[CacheEntry]:
        """The raw entry, fresh or not, without touching access time."""
        with self._lock:
            return self._entries.get(key)

    def set(self, key: QueryKey, data: Any, stale_time: float, gc_time: float) -> None:
        now = self._clock()
        with self._lock:
            self._entries[key] = CacheEntry(
                data=data, updated_at=now, last_access=now,
                stale_time=stale_time, gc_time=max(gc_time, stale_time),
            )

    def invalidate(self, prefix: QueryKey) -> int:
        """Drop every entry under `prefix`. Returns the number dropped."""
        prefix = tuple(prefix)
        with self._lock:
            doomed = [k for k in self._entries if key_matches(k, prefix)]
            for k in doomed:
                del self._entries[k]
        if doomed:
            logger.debug(f'Invalidated {len(doomed)} entries under {prefix}')
        return len(doomed)

    def sweep(self) -> int:
        """Remove entries unused for longer than their gc window."""
        now = self._clock()
        with self._lock:
            return self._sweep(now)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self):
        with self._lock:
            return list(self._entries)

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, key):
        with self._lock:
            return key in self._entries

    # ============== Internal ==============

    def _maybe_sweep(self, now: float) -> None:
        if now - self._last_sweep >= self._sweep_interval:
            self._sweep(now)

    def _sweep(self, now: float) -> int:
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for k in expired:
            del self._entries[k]
        self._last_sweep = now
        if expired:
            logger.debug(f'Swept {len(expired)} expired cache entries')
        return len(expired)


_query_cache: Optional[QueryCache] = None
_cache_init_lock = threading.Lock()


def get_query_cache() -> QueryCache:
    """Process-wide cache used by fetch_query() and run_mutation()."""
    global _query_cache
    if _query_cache is None:
        with _cache_init_lock:
            if _query_cache is None:
                from atelier.config import get_config
                _query_cache = QueryCache(sweep_interval=get_config().CACHE_SWEEP_SECONDS)
    return _query_cache
