"""
Grounded Search - Embeddings Module
"""

from __future__ import annotations

from grounded_search.ingestion.embeddings.base import EmbeddingProvider, EmbeddingResult
from grounded_search.ingestion.embeddings.openai import OpenAIEmbeddings, get_embedding_provider

__all__ = [
    # Base
    "EmbeddingProvider",
    "EmbeddingResult",
    # OpenAI
    "OpenAIEmbeddings",
    "get_embedding_provider",
]
