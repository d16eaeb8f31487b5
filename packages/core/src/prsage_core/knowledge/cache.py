from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from prsage_core.models import ContextResult

logger = logging.getLogger(__name__)

_QUERY_PREFIX_CHARS = 100


@dataclass(frozen=True)
class CacheEntry:
    key: str
    result: ContextResult
    inserted_at: float


def cache_key(category: str, query: str) -> str:
    return f"{category}:{query[:_QUERY_PREFIX_CHARS]}"


class ContextCache:
    """Bounded, TTL-expiring map from cache key to ContextResult.

    Eviction drops the oldest inserted entry once ``capacity`` is exceeded.
    Expiry is lazy: a stale entry is removed when it is next looked up.
    Owned by one pipeline and only touched from the event loop thread, so no
    locking is needed. ``clock`` is injectable so tests can force expiry.
    """

    def __init__(self, capacity: int = 100, ttl: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.ttl = ttl
        self._clock = clock
        # dicts preserve insertion order, so the first key is always the oldest.
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> ContextResult | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.inserted_at > self.ttl:
            del self._entries[key]
            return None
        return entry.result

    def put(self, key: str, result: ContextResult) -> None:
        # Re-inserting moves the key to the newest position.
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(key=key, result=result, inserted_at=self._clock())
        while len(self._entries) > self.capacity:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Context cache cleared")

    def stats(self) -> dict:
        return {"size": len(self._entries), "max_size": self.capacity, "ttl": self.ttl}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
