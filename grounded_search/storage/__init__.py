"""
Grounded Search - Storage Module

This module provides storage backends for:
- Chunk storage (PostgreSQL + pgvector stored procedures)
- Search result caching (in-process LRU)
"""

from __future__ import annotations

from grounded_search.storage.base import StorageBackend, ChunkStore
from grounded_search.storage.cache import (
    CacheEntry,
    ResultCache,
    build_fingerprint,
    normalize_query,
)
from grounded_search.storage.database import (
    Database,
    DatabaseError,
    get_database,
    init_database,
    close_database,
)
from grounded_search.storage.models import Base, DocumentModel, ChunkModel
from grounded_search.storage.postgres import PostgresChunkStore

__all__ = [
    # Base classes
    "StorageBackend",
    "ChunkStore",
    # Cache
    "CacheEntry",
    "ResultCache",
    "build_fingerprint",
    "normalize_query",
    # Database
    "Database",
    "DatabaseError",
    "get_database",
    "init_database",
    "close_database",
    "Base",
    "DocumentModel",
    "ChunkModel",
    "PostgresChunkStore",
]
