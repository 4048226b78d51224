"""
Grounded Search - Vector Similarity Search
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

from grounded_search.core.config import Settings, settings as default_settings
from grounded_search.core.exceptions import SearchError, VectorStoreError
from grounded_search.core.logging import LoggerMixin
from grounded_search.core.types import SimilarityHit
from grounded_search.retrieval.search.corpus import DOCUMENTS, CorpusProfile
from grounded_search.storage.base import ChunkStore


class SimilaritySearcher(LoggerMixin):
    """
    Nearest-neighbor lookup with a per-query similarity threshold.

    Raw cosine similarity is not comparable across very short and very
    long queries, so unless a caller passes an explicit threshold one is
    derived from the query's word count.
    """

    def __init__(
        self,
        store: ChunkStore,
        config: Optional[Settings] = None,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.config = config or default_settings
        self.timeout = timeout or self.config.TIMEOUT_SEARCH_SECONDS

    def clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.config.SEARCH_DEFAULT_LIMIT
        return max(1, min(self.config.SEARCH_MAX_LIMIT, int(limit)))

    @staticmethod
    def clamp_threshold(threshold: float) -> float:
        return max(0.0, min(1.0, float(threshold)))

    def calculate_dynamic_threshold(self, query: str) -> float:
        """
        Threshold for a query given its word count.

        One word keeps the base, two words raise it slightly, five or more
        lower it. The result is clamped to the configured bounds.
        """
        cfg = self.config
        words = len(query.split())

        threshold = cfg.SEARCH_DEFAULT_THRESHOLD
        if words == 1:
            threshold += cfg.SEARCH_SINGLE_WORD_ADJ
        elif words == 2:
            threshold += cfg.SEARCH_TWO_WORDS_ADJ
        elif words >= cfg.SEARCH_MANY_WORDS_THRESHOLD:
            threshold += cfg.SEARCH_MANY_WORDS_ADJ

        return round(
            max(cfg.SEARCH_MIN_THRESHOLD, min(cfg.SEARCH_MAX_THRESHOLD, threshold)),
            6,
        )

    def build_params(
        self,
        query_vector: list[float],
        owner_id: Optional[str],
        match_count: int,
        threshold: float,
        document_ids: Optional[list[str]],
        corpus: CorpusProfile,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "query_embedding": query_vector,
            "similarity_threshold": threshold,
            "match_count": match_count,
        }
        if corpus.owner_scoped:
            params["user_id_filter"] = owner_id
        if document_ids and corpus.filtered_vector_function:
            params["document_ids_filter"] = list(document_ids)
        return params

    async def find_similar(
        self,
        query_vector: list[float],
        owner_id: Optional[str],
        limit: int,
        threshold: float,
        document_ids: Optional[list[str]] = None,
        corpus: CorpusProfile = DOCUMENTS,
    ) -> list[SimilarityHit]:
        """
        Run the corpus' similarity procedure.

        Args:
            query_vector: Fused or plain query embedding
            owner_id: Owner scope; ignored by corpora without owners
            limit: Number of chunk rows to fetch, clamped to [1, max]
            threshold: Minimum similarity, clamped to [0, 1]
            document_ids: Optional document subset
            corpus: Corpus profile

        Returns:
            Hits ordered by similarity, best first
        """
        start_time = time.time()

        match_count = self.clamp_limit(limit)
        threshold = self.clamp_threshold(threshold)
        function_name = corpus.function_for(document_ids)
        params = self.build_params(
            query_vector, owner_id, match_count, threshold, document_ids, corpus
        )

        try:
            hits = await asyncio.wait_for(
                self.store.similarity_search(function_name, params),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise SearchError(
                f"Vector search timed out after {self.timeout}s",
                details={"function": function_name},
            )
        except (SearchError, VectorStoreError):
            raise
        except Exception as e:
            raise VectorStoreError(f"Vector search failed: {e}", details={"function": function_name})

        # Procedures already filter, this guards stores that do not
        hits = [h for h in hits if (h.similarity or 0.0) >= threshold]
        hits.sort(key=lambda h: h.similarity or 0.0, reverse=True)

        self.logger.info(
            "Vector search completed",
            function=function_name,
            threshold=threshold,
            match_count=match_count,
            results_found=len(hits),
            latency_ms=round((time.time() - start_time) * 1000, 2),
        )

        return hits
