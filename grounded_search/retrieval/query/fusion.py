"""
Grounded Search - Embedding Fusion

Turns a query expansion into a single query vector: the original query
and its variants are embedded, weighted and averaged. The original query
always carries more weight than any variant.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from grounded_search.core.config import settings
from grounded_search.core.exceptions import ConfigurationError, QueryExpansionError
from grounded_search.core.logging import LoggerMixin
from grounded_search.core.types import QueryExpansion
from grounded_search.ingestion.embeddings.base import EmbeddingProvider
from grounded_search.observability.metrics import safe_track
from grounded_search.retrieval.query.expansion import QueryExpander


def calculate_weighted_average_embedding(
    embeddings: list[list[float]],
    weights: list[float],
) -> list[float]:
    """
    Component-wise weighted mean of equally sized vectors.

    Weights are normalized to sum to 1 before averaging.
    """
    if not embeddings:
        raise QueryExpansionError("No embeddings to combine")
    if len(embeddings) != len(weights):
        raise QueryExpansionError("Embeddings and weights must have the same length")

    dimensions = len(embeddings[0])
    if any(len(e) != dimensions for e in embeddings):
        raise QueryExpansionError("Embeddings must share one dimension")

    total = sum(weights)
    if total <= 0:
        raise QueryExpansionError("Embedding weights must sum to a positive value")

    normalized = [w / total for w in weights]
    combined = [0.0] * dimensions
    for embedding, weight in zip(embeddings, normalized):
        for i, value in enumerate(embedding):
            combined[i] += value * weight
    return combined


class EmbeddingFusion(LoggerMixin):
    """Builds the query vector used for nearest-neighbor search."""

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        original_weight: Optional[float] = None,
        base_weight: Optional[float] = None,
        max_concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.embedding_provider = embedding_provider
        self.original_weight = (
            original_weight if original_weight is not None else settings.EXPANSION_ORIGINAL_WEIGHT
        )
        self.base_weight = base_weight if base_weight is not None else settings.EXPANSION_BASE_WEIGHT
        self.max_concurrency = max_concurrency or settings.EMBEDDING_BATCH_CONCURRENCY
        self.timeout = timeout or settings.TIMEOUT_EMBEDDING_SECONDS

        if self.base_weight >= self.original_weight:
            raise ConfigurationError(
                "Expansion base weight must be lower than the original query weight"
            )

    def compute_weights(self, expansion: QueryExpansion) -> list[float]:
        """
        Raw weight per expanded query, original first.

        Variants share ``base_weight`` scaled by the mean of the semantic
        and feedback confidences.
        """
        boost = (expansion.semantic_confidence + expansion.feedback_confidence) / 2
        variant_weight = self.base_weight * boost
        return [self.original_weight] + [variant_weight] * (len(expansion.expanded_queries) - 1)

    async def build_query_vector(self, expansion: QueryExpansion) -> list[float]:
        """
        Embed and fuse the queries of an expansion.

        Raises:
            QueryExpansionError: if no query produced a usable embedding
        """
        queries = expansion.expanded_queries
        if expansion.fallback or len(queries) <= 1:
            return await self._embed_single(expansion.original_query)

        try:
            embeddings = await asyncio.wait_for(
                self.embedding_provider.embed_batch(queries, self.max_concurrency),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise QueryExpansionError(f"Embedding batch timed out after {self.timeout}s")
        except QueryExpansionError:
            raise
        except Exception as e:
            raise QueryExpansionError(f"Embedding batch failed: {e}")

        weights = self.compute_weights(expansion)
        retained: list[list[float]] = []
        retained_weights: list[float] = []

        for query, embedding, weight in zip(queries, embeddings, weights):
            if embedding is None or not self.embedding_provider.is_valid(embedding):
                self.logger.debug("Dropping unusable embedding", query_length=len(query))
                continue
            if weight <= 0:
                continue
            retained.append(embedding)
            retained_weights.append(weight)

        if not retained:
            raise QueryExpansionError(
                "No valid embeddings for expanded queries",
                details={"num_queries": len(queries)},
            )

        if len(retained) == 1:
            return list(retained[0])

        self.logger.debug(
            "Fused query embeddings",
            num_embeddings=len(retained),
            weights=[round(w, 3) for w in retained_weights],
        )

        return calculate_weighted_average_embedding(retained, retained_weights)

    async def embed_with_expansion(
        self,
        query: str,
        expander: Optional[QueryExpander] = None,
        user_id: Optional[str] = None,
    ) -> tuple[list[float], QueryExpansion]:
        """
        Expand, embed and fuse a query, degrading to a plain embedding.

        Returns:
            (query_vector, expansion); the expansion is marked as a
            fallback when the plain embedding was used
        """
        if expander is None:
            expansion = QueryExpansion.no_expansion(query.strip())
            return await self._embed_single(expansion.original_query), expansion

        expansion = await expander.expand(query, user_id=user_id)
        if not expansion.fallback:
            try:
                return await self.build_query_vector(expansion), expansion
            except QueryExpansionError as e:
                self.logger.warning("Falling back to unexpanded query embedding", error=str(e))
                safe_track("track_fallback", "query_expansion")
            expansion = QueryExpansion.no_expansion(expansion.original_query)

        return await self._embed_single(expansion.original_query), expansion

    async def _embed_single(self, query: str) -> list[float]:
        try:
            vector = await asyncio.wait_for(
                self.embedding_provider.embed_query(query),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise QueryExpansionError(f"Query embedding timed out after {self.timeout}s")

        if not self.embedding_provider.is_valid(vector):
            raise QueryExpansionError(
                "Invalid query embedding generated",
                details={"dimensions": len(vector) if vector else 0},
            )
        return vector
