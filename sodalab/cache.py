"""
Time-boxed result cache for the filter, search and autocomplete engines.

A plain key -> value map where every entry carries its own expiry
timestamp. There is no capacity bound and no LRU ordering: entries
simply disappear once their TTL has elapsed. Expired entries are
dropped lazily when they are read, or in bulk via ``purge_expired``.
"""

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A single cached value with its lifetime."""
    value: Any
    created_at: float
    ttl: float
    hits: int = 0

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class TTLCache:
    """
    In-memory cache with per-entry time-to-live.

    Usage:
        cache = TTLCache(ttl_seconds=1800)
        cache.set("filters:abc", result)
        cache.get("filters:abc")   # -> result until 30 minutes have passed

    Args:
        ttl_seconds: Default lifetime for new entries
        clock: Callable returning the current time in seconds;
            injectable so tests can advance time without sleeping
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._stats = {"hits": 0, "misses": 0, "sets": 0}

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        entry = self._entries.get(key)

        if entry is None:
            self._stats["misses"] += 1
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._stats["misses"] += 1
            return None

        entry.hits += 1
        self._stats["hits"] += 1
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value; ``ttl`` overrides the cache default."""
        self._entries[key] = CacheEntry(
            value=value,
            created_at=self._clock(),
            ttl=self.ttl_seconds if ttl is None else ttl,
        )
        self._stats["sets"] += 1

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def purge_expired(self) -> int:
        """Remove every expired entry and return how many were dropped."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        lookups = self._stats["hits"] + self._stats["misses"]
        return {
            **self._stats,
            "size": len(self._entries),
            "hit_rate": round(self._stats["hits"] / lookups, 3) if lookups else 0.0,
        }

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        return len(self._entries)


def make_cache_key(prefix: str, payload: Any) -> str:
    """
    Build a stable cache key from a JSON-serialisable payload.

    Dict ordering does not matter: keys are sorted before hashing.
    """
    key_str = json.dumps(payload, sort_keys=True, default=str)
    key_hash = hashlib.md5(key_str.encode()).hexdigest()[:16]
    return f"{prefix}:{key_hash}"
