"""
In-memory read-model cache with an explicit freshness window.

Entries expire ``ttl_seconds`` after they were stored. The clock is injected
so callers (and tests) can ask "is this source fresh?" deterministically.
No persistence: a process restart clears everything.
"""

import time
from threading import Lock
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

DEFAULT_TTL_SECONDS = 300  # 5 minutes


class TTLCache:
    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}
        self._lock = Lock()

    def _expired(self, stored_at: float, now: float) -> bool:
        return now - stored_at >= self.ttl_seconds

    def is_fresh(self, key: Hashable) -> bool:
        """True when *key* holds a value stored within the TTL window."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not self._expired(entry[0], now)

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or None when missing or stale."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._expired(entry[0], now):
                del self._entries[key]
                return None
            return entry[1]

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Return a fresh cached value or call *loader* and cache its result.

        Loader exceptions propagate and nothing is cached. A loader returning
        None is not cached either, so "no data" is retried on the next read.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = loader()
        if value is not None:
            self.set(key, value)
        return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one key, or everything when *key* is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
