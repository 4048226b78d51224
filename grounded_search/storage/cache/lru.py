"""
Grounded Search - In-process Result Cache

Bounded LRU map from a search fingerprint to a SearchResponse.

Entries are never invalidated when documents change; freshness is
bounded only by the TTL. A document uploaded or deleted after a query
was cached stays invisible (or visible) to that query until expiry.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional

from grounded_search.core.config import settings
from grounded_search.core.exceptions import CacheError
from grounded_search.core.logging import LoggerMixin
from grounded_search.core.types import SearchResponse
from grounded_search.observability.metrics import safe_track


@dataclass
class CacheEntry:
    """A stored response and the moment it stops being served."""
    value: SearchResponse
    expires_at: float


def normalize_query(query: str) -> str:
    """Lowercase and collapse whitespace so trivially different queries share a key."""
    return " ".join(query.lower().split())


def build_fingerprint(
    query: str,
    owner_id: Optional[str],
    mode: str,
    limit: int,
    threshold: Optional[float],
    document_ids: Optional[list[str]] = None,
    corpus: str = "documents",
    extra: Optional[dict[str, Any]] = None,
) -> str:
    """Stable key for one search request."""
    key_data = {
        "corpus": corpus,
        "query": normalize_query(query),
        "owner": owner_id,
        "mode": mode,
        "limit": limit,
        "threshold": None if threshold is None else round(threshold, 6),
        "document_ids": sorted(set(document_ids)) if document_ids else None,
        "extra": extra or {},
    }
    digest = hashlib.sha256(
        json.dumps(key_data, sort_keys=True, default=str).encode("utf-8")
    ).hexdigest()
    return f"{corpus}:{digest[:32]}"


class ResultCache(LoggerMixin):
    """
    Thread-safe LRU cache with per-entry TTL.

    Values are deep-copied on the way in and out so callers can never
    mutate what another request will read.
    """

    def __init__(
        self,
        capacity: Optional[int] = None,
        ttl_seconds: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.capacity = capacity if capacity is not None else settings.CACHE_MAX_SIZE
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.CACHE_TTL_SECONDS
        if self.capacity < 1:
            raise CacheError("Cache capacity must be at least 1")
        if self.ttl_seconds <= 0:
            raise CacheError("Cache TTL must be positive")

        self._clock = clock or time.monotonic
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def get(self, key: str) -> Optional[SearchResponse]:
        """Return a copy of a live entry, or None on miss or expiry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if self._clock() >= entry.expires_at:
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value.model_copy(deep=True)

    def set(self, key: str, value: SearchResponse) -> None:
        """Store a copy of the response, evicting the least recently used entry if full."""
        entry = CacheEntry(
            value=value.model_copy(deep=True),
            expires_at=self._clock() + self.ttl_seconds,
        )

        evicted = 0
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            self._entries[key] = entry

            while len(self._entries) > self.capacity:
                evicted_key, _ = self._entries.popitem(last=False)
                self._evictions += 1
                evicted += 1
                self.logger.debug("Evicted cached search", key=evicted_key)

        for _ in range(evicted):
            safe_track("track_cache_eviction", "search")

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        """Drop every entry and return how many were dropped."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._clock() < entry.expires_at

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "capacity": self.capacity,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "expirations": self._expirations,
                "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
            }
