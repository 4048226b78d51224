"""
Grounded Search - OpenAI Query Embeddings

Queries are embedded in one request per search. Transient API failures
(rate limits, timeouts, dropped connections, 5xx) are retried; anything
else fails the request at once, and the batch path then falls back to
embedding each query on its own.
"""

from __future__ import annotations

from typing import Any, Optional

import openai
from openai import AsyncOpenAI
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from grounded_search.core.config import settings
from grounded_search.core.exceptions import EmbeddingError
from grounded_search.ingestion.embeddings.base import EmbeddingProvider, EmbeddingResult

_TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)

# Models that accept a shortened output size
_MATRYOSHKA_PREFIX = "text-embedding-3"


class OpenAIEmbeddings(EmbeddingProvider):
    """Query embeddings from the OpenAI embeddings endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimensions: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self._api_key = api_key or settings.OPENAI_API_KEY
        self._model = model or settings.EMBEDDING_MODEL
        self._dimensions = dimensions or settings.EMBEDDING_DIMENSIONS
        self._timeout = timeout or settings.TIMEOUT_EMBEDDING_SECONDS
        self._client: Optional[AsyncOpenAI] = None

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise EmbeddingError("OpenAI API key not configured")
            # tenacity owns retries
            self._client = AsyncOpenAI(
                api_key=self._api_key, timeout=self._timeout, max_retries=0
            )
        return self._client

    def _request_params(self, texts: list[str]) -> dict[str, Any]:
        params: dict[str, Any] = {"model": self._model, "input": texts}
        if self._model.startswith(_MATRYOSHKA_PREFIX):
            params["dimensions"] = self._dimensions
        return params

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        reraise=True,
    )
    async def _create(self, params: dict[str, Any]) -> Any:
        return await self._get_client().embeddings.create(**params)

    async def embed_texts(self, texts: list[str]) -> EmbeddingResult:
        """Embed ``texts`` in a single request, keeping input order."""
        if not texts:
            return EmbeddingResult(
                embeddings=[], model=self._model, dimensions=self._dimensions, tokens_used=0
            )

        try:
            response = await self._create(self._request_params(texts))
        except EmbeddingError:
            raise
        except Exception as e:
            self.logger.error(
                "Embedding request failed",
                error=str(e),
                error_type=type(e).__name__,
                num_texts=len(texts),
            )
            raise EmbeddingError(f"Failed to generate embeddings: {e}") from e

        # The API may return items out of order
        ordered: list[list[float]] = [[] for _ in texts]
        for item in response.data:
            ordered[item.index] = item.embedding

        tokens = response.usage.total_tokens
        self.logger.debug("Embedded queries", num_texts=len(texts), tokens=tokens)

        return EmbeddingResult(
            embeddings=ordered,
            model=self._model,
            dimensions=self._dimensions,
            tokens_used=tokens,
        )

    async def embed_batch(
        self,
        texts: list[str],
        max_concurrency: Optional[int] = None,
    ) -> list[Optional[list[float]]]:
        """
        One request for all queries; per-query requests if it fails.

        A failed slot is None so one bad input never drops the rest.
        """
        if not texts:
            return []

        try:
            result = await self.embed_texts(texts)
        except EmbeddingError as e:
            self.logger.warning(
                "Batched embedding failed, embedding queries individually",
                num_texts=len(texts),
                error=str(e),
            )
            return await super().embed_batch(texts, max_concurrency=max_concurrency)

        return [vector or None for vector in result.embeddings]


_embedding_provider: Optional[OpenAIEmbeddings] = None


def get_embedding_provider() -> OpenAIEmbeddings:
    """Process-wide provider built from settings."""
    global _embedding_provider
    if _embedding_provider is None:
        _embedding_provider = OpenAIEmbeddings()
    return _embedding_provider
