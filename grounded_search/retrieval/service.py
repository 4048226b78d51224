"""
Grounded Search - Search Service

Entry point for callers. Routes a request by mode:
- vector: expansion, fused query embedding, similarity search, document ranking
- keyword: substring match over document text
- hybrid: vector and full-text legs run concurrently, then fused

Failures of a single leg degrade the result instead of failing the call.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Any, Optional, Union

from grounded_search.core.config import ScoringConfig, Settings, settings as default_settings
from grounded_search.core.exceptions import GroundedSearchError, SearchError, ValidationError
from grounded_search.core.logging import LoggerMixin, search_context, setup_logging
from grounded_search.core.types import (
    Chunk,
    ContextOptions,
    DocumentStats,
    RankedDocument,
    SearchMode,
    SearchResponse,
)
from grounded_search.ingestion.embeddings.base import EmbeddingProvider
from grounded_search.observability.metrics import safe_track
from grounded_search.retrieval.context.expander import ContextExpander
from grounded_search.retrieval.query.expansion import QueryExpander
from grounded_search.retrieval.query.fusion import EmbeddingFusion
from grounded_search.retrieval.ranking.aggregation import DocumentRanker
from grounded_search.retrieval.search.corpus import DOCUMENTS, CorpusProfile
from grounded_search.retrieval.search.hybrid import fuse
from grounded_search.retrieval.search.keyword import KeywordSearcher
from grounded_search.retrieval.search.vector import SimilaritySearcher
from grounded_search.storage.base import ChunkStore
from grounded_search.storage.cache.lru import ResultCache, build_fingerprint


@dataclass
class SearchParams:
    """A validated search request."""
    query: str
    owner_id: Optional[str]
    mode: SearchMode
    limit: int
    threshold: Optional[float]
    document_ids: Optional[list[str]]
    corpus: CorpusProfile


@dataclass
class VectorLegResult:
    """Ranked documents of the vector leg and how they were produced."""
    documents: list[RankedDocument]
    threshold: float
    total_chunks: int
    expanded_queries: int
    expansion_fallback: bool


class SearchService(LoggerMixin):
    """Hybrid retrieval over embedded document chunks."""

    def __init__(
        self,
        store: ChunkStore,
        embedding_provider: EmbeddingProvider,
        expander: Optional[QueryExpander] = None,
        fusion: Optional[EmbeddingFusion] = None,
        ranker: Optional[DocumentRanker] = None,
        context_expander: Optional[ContextExpander] = None,
        cache: Optional[ResultCache] = None,
        config: Optional[Settings] = None,
        scoring: Optional[ScoringConfig] = None,
    ):
        self.config = config or default_settings
        self.store = store
        self.embedding_provider = embedding_provider
        self.expander = expander if expander is not None else QueryExpander()
        self.fusion = fusion or EmbeddingFusion(embedding_provider)
        self.ranker = ranker or DocumentRanker(scoring)
        self.context_expander = context_expander or ContextExpander(store, self.config)
        self.vector_searcher = SimilaritySearcher(store, self.config)
        self.keyword_searcher = KeywordSearcher(store, self.config)

        if cache is None and self.config.CACHE_ENABLED:
            cache = ResultCache(self.config.CACHE_MAX_SIZE, self.config.CACHE_TTL_SECONDS)
        self.cache = cache

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def search(
        self,
        query: str,
        owner_id: Optional[str] = None,
        mode: Union[SearchMode, str] = SearchMode.VECTOR,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
        document_ids: Optional[list[str]] = None,
        corpus: CorpusProfile = DOCUMENTS,
        keyword_fallback: bool = True,
        use_cache: bool = True,
    ) -> SearchResponse:
        """
        Search the corpus.

        Args:
            query: Natural-language query
            owner_id: Owner whose documents are searched
            mode: "vector", "keyword" or "hybrid"
            limit: Maximum number of documents, clamped to [1, max]
            threshold: Explicit similarity threshold; derived from the query when omitted
            document_ids: Restrict the search to these documents
            corpus: Corpus profile to search
            keyword_fallback: In vector mode, retry as keyword search when nothing is found
            use_cache: Serve and store results through the result cache

        Returns:
            SearchResponse; validation and total failures come back with
            ``success=False`` rather than raising
        """
        mode_label = mode.value if isinstance(mode, SearchMode) else str(mode)

        with search_context(search_mode=mode_label, corpus=corpus.name) as search_id:
            response = await self._run_search(
                query,
                owner_id,
                mode,
                mode_label,
                limit,
                threshold,
                document_ids,
                corpus,
                keyword_fallback,
                use_cache,
            )

        response.metadata["search_id"] = search_id
        return response

    async def _run_search(
        self,
        query: Any,
        owner_id: Any,
        mode: Any,
        mode_label: str,
        limit: Any,
        threshold: Any,
        document_ids: Any,
        corpus: CorpusProfile,
        keyword_fallback: bool,
        use_cache: bool,
    ) -> SearchResponse:
        start_time = time.time()

        try:
            params = self.validate(query, owner_id, mode, limit, threshold, document_ids, corpus)
        except ValidationError as e:
            self.logger.warning("Rejected search request", field=e.details.get("field"), error=e.message)
            safe_track("track_search", mode_label, "invalid", time.time() - start_time, 0)
            return self._failure(query, mode_label, e)

        cache_key = None
        if use_cache and self.cache is not None:
            cache_key = build_fingerprint(
                params.query,
                params.owner_id,
                params.mode.value,
                params.limit,
                params.threshold,
                params.document_ids,
                corpus=params.corpus.name,
                extra={"keyword_fallback": keyword_fallback},
            )
            cached = self.cache.get(cache_key)
            safe_track("track_cache", "search", cached is not None)
            if cached is not None:
                cached.query = params.query
                cached.metadata["cached"] = True
                self.logger.debug("Serving cached search", mode=params.mode.value)
                return cached

        try:
            if params.mode == SearchMode.HYBRID:
                response = await self._hybrid_search(params)
            elif params.mode == SearchMode.KEYWORD:
                response = await self._keyword_search(params)
            else:
                response = await self._vector_search(params, keyword_fallback)
        except GroundedSearchError as e:
            self.logger.error("Search failed", mode=params.mode.value, error=e.message, code=e.code)
            response = self._failure(params.query, params.mode.value, e)
        except Exception as e:
            self.logger.error("Search failed unexpectedly", mode=params.mode.value, error=str(e))
            response = self._failure(params.query, params.mode.value, SearchError(str(e)))

        latency = time.time() - start_time
        response.metadata.setdefault("cached", False)
        response.metadata["latency_ms"] = round(latency * 1000, 2)

        if response.success and cache_key is not None:
            self.cache.set(cache_key, response)

        safe_track(
            "track_search",
            params.mode.value,
            "success" if response.success else "error",
            latency,
            len(response.results),
        )

        self.logger.info(
            "Search completed",
            mode=params.mode.value,
            search_type=response.search_type,
            success=response.success,
            results_found=len(response.results),
            latency_ms=response.metadata["latency_ms"],
        )

        return response

    async def search_with_context(
        self,
        query: str,
        owner_id: Optional[str] = None,
        mode: Union[SearchMode, str] = SearchMode.VECTOR,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
        document_ids: Optional[list[str]] = None,
        corpus: CorpusProfile = DOCUMENTS,
        keyword_fallback: bool = True,
        use_cache: bool = True,
        expand_context: bool = True,
        context_options: Optional[ContextOptions] = None,
    ) -> SearchResponse:
        """
        Search, then grow every retained chunk with its surrounding context.

        Expansion runs after the cache, so cached searches are expanded
        against the current chunk store. Keyword-only results have no
        chunks and are returned unchanged.
        """
        response = await self.search(
            query,
            owner_id=owner_id,
            mode=mode,
            limit=limit,
            threshold=threshold,
            document_ids=document_ids,
            corpus=corpus,
            keyword_fallback=keyword_fallback,
            use_cache=use_cache,
        )

        if not expand_context or not response.success or not response.results:
            return response

        options = context_options or ContextOptions(max_tokens=self.config.CONTEXT_MAX_TOKENS)
        documents = [doc for doc in response.results if doc.chunks]

        outcomes = await asyncio.gather(
            *(self._expand_document(doc, options) for doc in documents),
            return_exceptions=True,
        )

        for document, outcome in zip(documents, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                self.logger.warning(
                    "Context expansion failed",
                    document_id=document.document_id,
                    error=str(outcome),
                )
                continue
            document.expanded_context = outcome

        response.metadata["context_expanded"] = True
        response.metadata["context_max_tokens"] = options.max_tokens
        return response

    async def has_embeddings(self, document_id: str) -> bool:
        """Whether the document has stored chunks. False when the store is unavailable."""
        try:
            return await self.store.has_embeddings(document_id)
        except Exception as e:
            self.logger.warning("Embedding check failed", document_id=document_id, error=str(e))
            return False

    async def get_document_stats(self, owner_id: str) -> DocumentStats:
        """Embedding coverage for an owner. Zeros when the store is unavailable."""
        try:
            return await self.store.document_stats(owner_id)
        except Exception as e:
            self.logger.warning("Document stats failed", error=str(e))
            return DocumentStats()

    def get_cache_stats(self) -> dict[str, Any]:
        if self.cache is None:
            return {"enabled": False}
        return {"enabled": True, **self.cache.get_stats()}

    def clear_cache(self) -> int:
        if self.cache is None:
            return 0
        cleared = self.cache.clear()
        self.logger.info("Cleared search cache", entries=cleared)
        return cleared

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(
        self,
        query: Any,
        owner_id: Any,
        mode: Any,
        limit: Any,
        threshold: Any,
        document_ids: Any,
        corpus: CorpusProfile,
    ) -> SearchParams:
        """
        Check and normalize request parameters.

        Raises:
            ValidationError: naming the offending field
        """
        cfg = self.config

        if not isinstance(query, str) or not query.strip():
            raise ValidationError("Query must be a non-empty string", field="query")
        query = query.strip()
        if len(query) > cfg.VALIDATION_MAX_QUERY_LENGTH:
            raise ValidationError(
                f"Query exceeds {cfg.VALIDATION_MAX_QUERY_LENGTH} characters",
                field="query",
            )

        if owner_id is not None:
            if not isinstance(owner_id, str) or not owner_id.strip():
                raise ValidationError("Owner id must be a non-empty string", field="owner_id")
            if len(owner_id) > cfg.VALIDATION_MAX_OWNER_ID_LENGTH:
                raise ValidationError("Owner id is too long", field="owner_id")
        elif corpus.owner_scoped:
            raise ValidationError("Owner id is required for this corpus", field="owner_id")

        try:
            mode = SearchMode(mode)
        except ValueError:
            raise ValidationError(f"Unknown search mode: {mode}", field="mode")
        if mode != SearchMode.VECTOR and not corpus.supports_keyword:
            raise ValidationError(
                f"Corpus '{corpus.name}' only supports vector search",
                field="mode",
            )

        if limit is None:
            limit = cfg.SEARCH_DEFAULT_LIMIT
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ValidationError("Limit must be an integer", field="limit")
        limit = self.vector_searcher.clamp_limit(limit)

        if threshold is not None:
            if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
                raise ValidationError("Threshold must be a number", field="threshold")
            if not math.isfinite(threshold):
                raise ValidationError("Threshold must be finite", field="threshold")
            threshold = self.vector_searcher.clamp_threshold(threshold)

        if document_ids is not None:
            document_ids = self._validate_document_ids(document_ids) or None

        return SearchParams(
            query=query,
            owner_id=owner_id,
            mode=mode,
            limit=limit,
            threshold=threshold,
            document_ids=document_ids,
            corpus=corpus,
        )

    def _validate_document_ids(self, document_ids: Any) -> list[str]:
        cfg = self.config
        if not isinstance(document_ids, (list, tuple)):
            raise ValidationError("Document ids must be a list", field="document_ids")
        if len(document_ids) > cfg.VALIDATION_MAX_DOCUMENT_IDS:
            raise ValidationError(
                f"At most {cfg.VALIDATION_MAX_DOCUMENT_IDS} document ids are allowed",
                field="document_ids",
            )

        unique: list[str] = []
        for document_id in document_ids:
            if not isinstance(document_id, str) or not document_id.strip():
                raise ValidationError("Document ids must be non-empty strings", field="document_ids")
            if len(document_id) > cfg.VALIDATION_MAX_DOCUMENT_ID_LENGTH:
                raise ValidationError("Document id is too long", field="document_ids")
            if document_id not in unique:
                unique.append(document_id)
        return unique

    # -------------------------------------------------------------------------
    # Modes
    # -------------------------------------------------------------------------

    async def _vector_leg(
        self,
        params: SearchParams,
        doc_limit: int,
        chunk_count: Optional[int] = None,
    ) -> VectorLegResult:
        if chunk_count is None:
            chunk_count = doc_limit * self.config.SEARCH_CHUNK_MULTIPLIER

        query_vector, expansion = await self.fusion.embed_with_expansion(
            params.query,
            expander=self.expander if params.corpus.use_expansion else None,
            user_id=params.owner_id,
        )

        threshold = (
            params.threshold
            if params.threshold is not None
            else self.vector_searcher.calculate_dynamic_threshold(params.query)
        )

        hits = await self.vector_searcher.find_similar(
            query_vector,
            params.owner_id,
            chunk_count,
            threshold,
            document_ids=params.document_ids,
            corpus=params.corpus,
        )

        return VectorLegResult(
            documents=self.ranker.group_and_rank(hits, doc_limit, params.corpus),
            threshold=threshold,
            total_chunks=len(hits),
            expanded_queries=len(expansion.expanded_queries),
            expansion_fallback=expansion.fallback,
        )

    async def _vector_search(self, params: SearchParams, keyword_fallback: bool) -> SearchResponse:
        can_fall_back = keyword_fallback and params.corpus.supports_keyword

        try:
            leg = await self._vector_leg(params, params.limit)
        except Exception as e:
            if not can_fall_back:
                raise
            self.logger.warning("Vector search failed, using keyword search", error=str(e))
            safe_track("track_leg_failure", "vector", type(e).__name__)
            safe_track("track_fallback", "keyword")
            return await self._keyword_search(params, reason="vector_failed")

        if not leg.documents and can_fall_back:
            self.logger.info("No vector results, using keyword search", threshold=leg.threshold)
            safe_track("track_fallback", "keyword")
            return await self._keyword_search(params, reason="no_vector_results")

        results = leg.documents
        return SearchResponse(
            success=True,
            results=results,
            query=params.query,
            search_type=params.corpus.search_type,
            message=(
                f"Found {len(results)} relevant document(s)"
                if results
                else params.corpus.empty_message
            ),
            metadata={
                "corpus": params.corpus.name,
                "threshold": leg.threshold,
                "total_chunks": leg.total_chunks,
                "expanded_queries": leg.expanded_queries,
                "expansion_fallback": leg.expansion_fallback,
            },
        )

    async def _keyword_search(
        self,
        params: SearchParams,
        reason: Optional[str] = None,
    ) -> SearchResponse:
        hits = await self.keyword_searcher.find_keyword(
            params.query,
            params.owner_id,
            params.limit,
            document_ids=params.document_ids,
        )
        results = self.keyword_searcher.to_documents(hits)[: params.limit]

        metadata: dict[str, Any] = {"corpus": params.corpus.name}
        if reason:
            metadata["fallback_reason"] = reason

        return SearchResponse(
            success=True,
            results=results,
            query=params.query,
            search_type="keyword_fallback",
            message=(
                f"Found {len(results)} document(s) using text search"
                if results
                else params.corpus.empty_message
            ),
            metadata=metadata,
        )

    async def _hybrid_search(self, params: SearchParams) -> SearchResponse:
        vector_limit = min(params.limit * 3, self.config.SEARCH_MAX_LIMIT)
        keyword_limit = min(params.limit * self.config.HYBRID_KEYWORD_MULTIPLIER, self.config.SEARCH_MAX_LIMIT)

        vector_outcome, keyword_outcome = await asyncio.gather(
            self._vector_leg(params, vector_limit, chunk_count=vector_limit),
            self.keyword_searcher.find_keyword(
                params.query,
                params.owner_id,
                keyword_limit,
                document_ids=params.document_ids,
                full_text=True,
            ),
            return_exceptions=True,
        )

        failed_legs = []
        for leg, outcome in (("vector", vector_outcome), ("keyword", keyword_outcome)):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                failed_legs.append(leg)
                self.logger.warning("Hybrid leg failed", leg=leg, error=str(outcome))
                safe_track("track_leg_failure", leg, type(outcome).__name__)

        if len(failed_legs) == 2:
            raise SearchError(
                "Both vector and keyword search failed",
                details={"vector_error": str(vector_outcome), "keyword_error": str(keyword_outcome)},
            )

        vector_docs = [] if "vector" in failed_legs else vector_outcome.documents
        keyword_docs = (
            [] if "keyword" in failed_legs else self.keyword_searcher.to_documents(keyword_outcome)
        )

        fused = fuse(
            vector_docs,
            keyword_docs,
            self.config.HYBRID_VECTOR_WEIGHT,
            self.config.HYBRID_KEYWORD_WEIGHT,
        )
        results = fused[: params.limit]

        metadata: dict[str, Any] = {
            "corpus": params.corpus.name,
            "vector_results": len(vector_docs),
            "keyword_results": len(keyword_docs),
            "merged_results": len(fused),
            "failed_legs": failed_legs,
        }
        if "vector" not in failed_legs:
            metadata["threshold"] = vector_outcome.threshold

        return SearchResponse(
            success=True,
            results=results,
            query=params.query,
            search_type="hybrid",
            message=(
                f"Found {len(results)} documents using hybrid search"
                if results
                else params.corpus.empty_message
            ),
            metadata=metadata,
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _expand_document(self, document: RankedDocument, options: ContextOptions):
        chunks = [
            Chunk(
                id=c.chunk_id,
                document_id=document.document_id,
                chunk_index=c.chunk_index,
                text=c.text,
                token_count=c.token_count,
                metadata=c.metadata,
            )
            for c in document.chunks
        ]
        return await self.context_expander.expand(chunks, options)

    @staticmethod
    def _failure(query: Any, search_type: str, error: GroundedSearchError) -> SearchResponse:
        return SearchResponse(
            success=False,
            results=[],
            query=query.strip() if isinstance(query, str) else "",
            search_type=search_type,
            message="Search failed",
            error=error.message,
            code=error.code,
        )


# Global service instance
_search_service: Optional[SearchService] = None


def get_search_service() -> SearchService:
    """Get the search service wired to PostgreSQL and OpenAI embeddings."""
    global _search_service
    if _search_service is None:
        from grounded_search.ingestion.embeddings import get_embedding_provider
        from grounded_search.storage.postgres import PostgresChunkStore

        setup_logging()
        _search_service = SearchService(
            store=PostgresChunkStore(),
            embedding_provider=get_embedding_provider(),
        )
    return _search_service
