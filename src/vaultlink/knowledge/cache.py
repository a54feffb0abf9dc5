"""Time- and capacity-bounded memoization for knowledge lookups.

Entries are evicted least-recently-used first once the cache is full, and
every entry additionally expires a fixed time after it was stored, however
often it is read.
"""

from __future__ import annotations

import json
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ..config import DEFAULT_CACHE_SIZE, DEFAULT_CACHE_TTL_MINUTES

T = TypeVar("T")


@dataclass(frozen=True)
class _CacheEntry(Generic[T]):
    value: T
    expires_at: float


class LRUCache(Generic[T]):
    """LRU cache with a per-entry time-to-live.

    The clock is injectable so expiry can be tested without sleeping.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_CACHE_SIZE,
        ttl_minutes: float = DEFAULT_CACHE_TTL_MINUTES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self._entries: OrderedDict[str, _CacheEntry[T]] = OrderedDict()
        self._max_size = max_size
        self._ttl_seconds = ttl_minutes * 60
        self._clock = clock
        # get() reads then reorders; both steps must happen together
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        return self._max_size

    def _is_expired(self, entry: _CacheEntry[T]) -> bool:
        return self._clock() > entry.expires_at

    def get(self, key: str) -> T | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            if self._is_expired(entry):
                del self._entries[key]
                return None

            self._entries.move_to_end(key)
            return entry.value

    def set(self, key: str, value: T) -> None:
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self._max_size:
                self._entries.popitem(last=False)

            self._entries[key] = _CacheEntry(value, self._clock() + self._ttl_seconds)

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def prune(self) -> int:
        """Drop expired entries. Returns the number removed."""
        with self._lock:
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.has(key)


def create_cache_key(provider: str, query: str, options: dict[str, Any] | None = None) -> str:
    """Build a cache key from provider, query and lookup options.

    Option order does not matter: keys are serialized sorted.
    """
    opt_str = json.dumps(options, sort_keys=True, default=str) if options else ""
    return f"{provider}:{query}:{opt_str}"
