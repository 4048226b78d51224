"""
Grounded Search - Storage Base Classes
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from grounded_search.core.logging import LoggerMixin
from grounded_search.core.types import Chunk, DocumentStats, SimilarityHit


class StorageBackend(ABC, LoggerMixin):
    """Abstract base class for all storage backends."""

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the storage backend."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the storage backend."""
        pass

    @abstractmethod
    async def health_check(self) -> dict[str, Any]:
        """Check health of the storage backend."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if connected to storage backend."""
        pass


class ChunkStore(StorageBackend):
    """
    Read-only access to embedded document chunks.

    Implementations execute the queries; ranking, thresholds and
    fusion happen in the retrieval layer.
    """

    @abstractmethod
    async def similarity_search(
        self,
        function_name: str,
        params: dict[str, Any],
    ) -> list[SimilarityHit]:
        """
        Run a nearest-neighbor stored procedure.

        Args:
            function_name: Stored procedure to call
            params: Named procedure arguments (query_embedding,
                similarity_threshold, match_count and optional
                user_id_filter / document_ids_filter)

        Returns:
            Chunk rows with their similarity, best first
        """
        pass

    @abstractmethod
    async def keyword_search(
        self,
        query: str,
        owner_id: Optional[str],
        limit: int,
        document_ids: Optional[list[str]] = None,
        full_text: bool = False,
    ) -> list[SimilarityHit]:
        """
        Find completed documents whose text matches the query.

        Hits carry the full document text in ``text``; the caller
        builds excerpts and assigns relevance.
        """
        pass

    @abstractmethod
    async def fetch_chunks(
        self,
        document_id: str,
        chunk_indices: list[int],
    ) -> list[Chunk]:
        """Load chunks of one document by position. Missing indices are omitted."""
        pass

    @abstractmethod
    async def has_embeddings(self, document_id: str) -> bool:
        """Check whether any chunk was stored for the document."""
        pass

    @abstractmethod
    async def document_stats(self, owner_id: str) -> DocumentStats:
        """Count an owner's completed documents and those with chunks."""
        pass
