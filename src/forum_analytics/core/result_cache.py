"""
TTL and size bounded cache for query results.

Entries expire ``ttl`` seconds after insertion and the cache holds at most
``capacity`` entries. Eviction is FIFO: when a new key would exceed the
capacity the oldest-inserted entry is dropped, regardless of how recently it
was read.
"""

import json
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TypeVar

from loguru import logger
from pydantic import BaseModel

T = TypeVar("T")


@dataclass
class CacheEntry:
    key: str
    value: Any
    inserted_at: float


def make_cache_key(name: str, criteria: Optional[BaseModel] = None, **params: Any) -> str:
    """
    Build a deterministic cache key from a query name and its arguments.

    Criteria are dumped without unset fields and with sorted keys so field
    order never changes the key.
    """
    payload: Dict[str, Any] = {}
    if criteria is not None:
        payload["criteria"] = criteria.model_dump(mode="json", exclude_none=True)
    payload.update({key: value for key, value in params.items() if value is not None})
    return f"{name}:{json.dumps(payload, sort_keys=True, separators=(',', ':'), default=str)}"


class ResultCache:
    """
    In-memory result cache shared by the query service.

    Args:
        capacity: Maximum number of entries
        default_ttl: TTL in seconds used when a call does not pass one
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        capacity: int = 100,
        default_ttl: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1")
        self.capacity = capacity
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def _is_live(self, entry: CacheEntry, ttl: float) -> bool:
        return (self._clock() - entry.inserted_at) < ttl

    def get(self, key: str, ttl: Optional[float] = None) -> Optional[Any]:
        """Return the live value for ``key`` or None."""
        ttl = self.default_ttl if ttl is None else ttl
        entry = self._entries.get(key)
        if entry is not None and self._is_live(entry, ttl):
            self.hits += 1
            return entry.value
        self.misses += 1
        return None

    def put(self, key: str, value: Any) -> None:
        """Store ``value`` as a fresh insertion, evicting the oldest entry when full."""
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.capacity:
            oldest, _ = self._entries.popitem(last=False)
            self.evictions += 1
            logger.debug(f"Evicted cache entry {oldest}")
        self._entries[key] = CacheEntry(key=key, value=value, inserted_at=self._clock())

    def get_or_compute(self, key: str, ttl: Optional[float], compute: Callable[[], T]) -> T:
        """
        Return the cached value for ``key`` or compute and store it.

        ``compute`` is not called on a live hit. A ``ttl`` of zero or less
        never hits.
        """
        ttl = self.default_ttl if ttl is None else ttl
        entry = self._entries.get(key)
        if entry is not None and self._is_live(entry, ttl):
            self.hits += 1
            return entry.value

        self.misses += 1
        value = compute()
        self.put(key, value)
        return value

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """
        Drop entries whose key starts with ``prefix``, or every entry.

        Returns:
            Number of entries removed
        """
        if prefix is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed

        stale = [key for key in self._entries if key.startswith(prefix)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def stats(self) -> Dict[str, Any]:
        lookups = self.hits + self.misses
        return {
            "entries": len(self._entries),
            "capacity": self.capacity,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": self.hits / lookups if lookups else 0.0,
        }
