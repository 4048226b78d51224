"""
Grounded Search - Embedding Provider Base Classes
"""

from __future__ import annotations

import asyncio
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from grounded_search.core.config import settings
from grounded_search.core.logging import LoggerMixin


@dataclass
class EmbeddingResult:
    """Result of embedding generation."""
    embeddings: list[list[float]]
    model: str
    dimensions: int
    tokens_used: int


class EmbeddingProvider(ABC, LoggerMixin):
    """Abstract base class for embedding providers."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name."""
        pass

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Get the embedding dimensions."""
        pass

    @abstractmethod
    async def embed_texts(self, texts: list[str]) -> EmbeddingResult:
        """
        Generate embeddings for multiple texts.

        Args:
            texts: List of texts to embed

        Returns:
            EmbeddingResult with one embedding per text, in order
        """
        pass

    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        result = await self.embed_texts([text])
        return result.embeddings[0]

    async def embed_query(self, query: str) -> list[float]:
        """
        Generate embedding for a search query.

        Some providers use different models for queries vs documents.
        """
        return await self.embed_text(query)

    async def embed_batch(
        self,
        texts: list[str],
        max_concurrency: Optional[int] = None,
    ) -> list[Optional[list[float]]]:
        """
        Embed several queries at once, tolerating per-item failures.

        Args:
            texts: Queries to embed
            max_concurrency: Cap on simultaneous provider calls

        Returns:
            One entry per text; None where that text failed to embed
        """
        semaphore = asyncio.Semaphore(max_concurrency or settings.EMBEDDING_BATCH_CONCURRENCY)

        async def _embed(text: str) -> list[float]:
            async with semaphore:
                return await self.embed_query(text)

        outcomes = await asyncio.gather(
            *(_embed(text) for text in texts),
            return_exceptions=True,
        )

        embeddings: list[Optional[list[float]]] = []
        for text, outcome in zip(texts, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                self.logger.warning(
                    "Failed to embed query in batch",
                    query_length=len(text),
                    error=str(outcome),
                )
                embeddings.append(None)
            else:
                embeddings.append(outcome)

        return embeddings

    def is_valid(self, vector: Optional[list[float]]) -> bool:
        """Check that a vector is usable as a nearest-neighbor query."""
        if not vector:
            return False
        if self.dimensions and len(vector) != self.dimensions:
            return False
        limit = settings.EMBEDDING_MAX_VALUE
        for value in vector:
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                return False
            if abs(value) > limit:
                return False
        return True
