"""
Grounded Search - Ingestion-side collaborators

Only the query-time pieces of ingestion live here: turning text into
embedding vectors. Chunking and document processing are handled upstream.
"""

from __future__ import annotations

from grounded_search.ingestion.embeddings import (
    EmbeddingProvider,
    EmbeddingResult,
    OpenAIEmbeddings,
    get_embedding_provider,
)

__all__ = [
    "EmbeddingProvider",
    "EmbeddingResult",
    "OpenAIEmbeddings",
    "get_embedding_provider",
]
