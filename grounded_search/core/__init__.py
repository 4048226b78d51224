"""
Grounded Search - Core Module

This module provides core functionality used throughout the package:
- Configuration management
- Logging
- Custom exceptions
- Shared type definitions
"""

from grounded_search.core.config import ScoringConfig, Settings, get_settings, settings
from grounded_search.core.exceptions import (
    GroundedSearchError,
    IngestionError,
    EmbeddingError,
    RetrievalError,
    VectorStoreError,
    KeywordSearchError,
    SearchError,
    QueryExpansionError,
    CacheError,
    ValidationError,
    ConfigurationError,
)
from grounded_search.core.logging import get_logger, setup_logging, LoggerMixin
from grounded_search.core.types import (
    # Enums
    SearchMode,
    SearchSource,
    # Chunk types
    ChunkRelation,
    ChunkMetadata,
    Chunk,
    SimilarityHit,
    # Query types
    QueryExpansion,
    # Context types
    ContextOptions,
    ExpandedChunk,
    # Result types
    RankedChunk,
    RankedDocument,
    SearchResponse,
    DocumentStats,
)

__all__ = [
    # Config
    "ScoringConfig",
    "Settings",
    "get_settings",
    "settings",
    # Logging
    "get_logger",
    "setup_logging",
    "LoggerMixin",
    # Exceptions
    "GroundedSearchError",
    "IngestionError",
    "EmbeddingError",
    "RetrievalError",
    "VectorStoreError",
    "KeywordSearchError",
    "SearchError",
    "QueryExpansionError",
    "CacheError",
    "ValidationError",
    "ConfigurationError",
    # Enums
    "SearchMode",
    "SearchSource",
    # Chunk types
    "ChunkRelation",
    "ChunkMetadata",
    "Chunk",
    "SimilarityHit",
    # Query types
    "QueryExpansion",
    # Context types
    "ContextOptions",
    "ExpandedChunk",
    # Result types
    "RankedChunk",
    "RankedDocument",
    "SearchResponse",
    "DocumentStats",
]
