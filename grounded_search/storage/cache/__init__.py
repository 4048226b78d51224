"""
Grounded Search - Cache Storage Module
"""

from __future__ import annotations

from grounded_search.storage.cache.lru import (
    CacheEntry,
    ResultCache,
    build_fingerprint,
    normalize_query,
)

__all__ = [
    "CacheEntry",
    "ResultCache",
    "build_fingerprint",
    "normalize_query",
]
