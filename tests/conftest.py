"""
Grounded Search - Test Configuration and Fixtures
"""
from __future__ import annotations

from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from grounded_search.core.types import Chunk, ChunkMetadata, SimilarityHit
from grounded_search.ingestion.embeddings.base import EmbeddingProvider, EmbeddingResult


# =============================================================================
# Helpers
# =============================================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubEmbeddingProvider(EmbeddingProvider):
    """
    Three-dimensional embeddings looked up by text.

    Texts listed in ``failing`` raise; unknown texts get ``default``.
    """

    def __init__(
        self,
        vectors: Optional[dict[str, list[float]]] = None,
        default: Optional[list[float]] = None,
        failing: Optional[set[str]] = None,
    ):
        self.vectors = vectors or {}
        self.default = default or [0.1, 0.2, 0.3]
        self.failing = failing or set()
        self.calls: list[list[str]] = []

    @property
    def model_name(self) -> str:
        return "stub-embedding"

    @property
    def dimensions(self) -> int:
        return 3

    async def embed_texts(self, texts: list[str]) -> EmbeddingResult:
        self.calls.append(list(texts))
        for text in texts:
            if text in self.failing:
                raise RuntimeError(f"cannot embed {text!r}")
        return EmbeddingResult(
            embeddings=[list(self.vectors.get(t, self.default)) for t in texts],
            model=self.model_name,
            dimensions=self.dimensions,
            tokens_used=len(texts),
        )


def make_hit(
    document_id: str = "doc-1",
    chunk_index: int = 0,
    similarity: Optional[float] = 0.8,
    text: str = "Chunk text.",
    title: Optional[str] = "Klimaschutzprogramm",
    **kwargs,
) -> SimilarityHit:
    return SimilarityHit(
        id=kwargs.pop("id", f"{document_id}-chunk-{chunk_index}"),
        document_id=document_id,
        chunk_index=chunk_index,
        text=text,
        token_count=kwargs.pop("token_count", 10),
        similarity=similarity,
        document_title=title,
        document_filename=kwargs.pop("filename", f"{document_id}.pdf"),
        **kwargs,
    )


def make_chunk(
    chunk_index: int,
    text: Optional[str] = None,
    token_count: int = 50,
    document_id: str = "doc-1",
    **metadata,
) -> Chunk:
    return Chunk(
        id=f"{document_id}-chunk-{chunk_index}",
        document_id=document_id,
        chunk_index=chunk_index,
        text=text if text is not None else f"Text of chunk {chunk_index}.",
        token_count=token_count,
        metadata=ChunkMetadata(**metadata),
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stub_embeddings() -> StubEmbeddingProvider:
    return StubEmbeddingProvider()


@pytest.fixture
def mock_store() -> MagicMock:
    """Chunk store whose calls all succeed with empty results."""
    store = MagicMock()
    store.similarity_search = AsyncMock(return_value=[])
    store.keyword_search = AsyncMock(return_value=[])
    store.fetch_chunks = AsyncMock(return_value=[])
    store.has_embeddings = AsyncMock(return_value=True)
    store.document_stats = AsyncMock()
    return store


@pytest.fixture
def sample_hits() -> list[SimilarityHit]:
    """Chunk hits from two documents."""
    return [
        make_hit("doc-1", 0, 0.9, "Klimaschutz beginnt vor Ort."),
        make_hit("doc-1", 1, 0.8, "Die Kommune fördert Solaranlagen."),
        make_hit("doc-1", 5, 0.5, "Weitere Maßnahmen folgen."),
        make_hit("doc-2", 3, 0.6, "Radverkehr ausbauen.", title="Verkehrswende"),
    ]


@pytest.fixture
def mock_session() -> MagicMock:
    """SQLAlchemy async session double."""
    session = MagicMock()
    session.execute = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    return session


@pytest.fixture
def hit_factory():
    """Build SimilarityHit rows."""
    return make_hit


@pytest.fixture
def chunk_factory():
    """Build stored chunks."""
    return make_chunk


@pytest.fixture
def embedding_factory():
    """Build stub embedding providers."""
    return StubEmbeddingProvider
