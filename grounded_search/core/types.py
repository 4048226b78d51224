"""
Grounded Search - Shared Type Definitions
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, model_validator


# =============================================================================
# Enums
# =============================================================================

class SearchMode(str, Enum):
    """Retrieval paths a caller can request."""
    VECTOR = "vector"
    KEYWORD = "keyword"
    HYBRID = "hybrid"


class SearchSource(str, Enum):
    """Retrieval leg that contributed a document."""
    VECTOR = "vector"
    KEYWORD = "keyword"


# =============================================================================
# Chunk Types
# =============================================================================

class ChunkRelation(BaseModel):
    """Link from one chunk to another chunk of the same document."""
    chunk_index: int
    relation_strength: float = Field(
        ge=0.0,
        le=1.0,
        validation_alias=AliasChoices("relation_strength", "strength"),
    )
    relationship: Optional[str] = None
    section_title: Optional[str] = None


class ChunkMetadata(BaseModel):
    """Structural metadata attached to a chunk at ingestion time."""
    section_title: Optional[str] = None
    chapter_title: Optional[str] = None
    previous_chunk_index: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("previous_chunk_index", "previous_chunk"),
    )
    next_chunk_index: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("next_chunk_index", "next_chunk"),
    )
    related_chunks: list[ChunkRelation] = Field(default_factory=list)


class Chunk(BaseModel):
    """A contiguous span of text from one document."""

    model_config = {"frozen": True}

    id: str
    document_id: str
    chunk_index: int = Field(ge=0)
    text: str
    token_count: int = Field(default=0, ge=0)
    embedding: Optional[list[float]] = None
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)


class SimilarityHit(BaseModel):
    """One row returned by a nearest-neighbor or keyword lookup."""
    id: str
    document_id: str
    chunk_index: int = 0
    text: str = ""
    token_count: int = 0
    similarity: Optional[float] = None
    bm25_score: Optional[float] = None
    created_at: Optional[datetime] = None
    document_title: Optional[str] = None
    document_filename: Optional[str] = None
    document_created_at: Optional[datetime] = None
    excerpt: Optional[str] = None
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)

    def to_chunk(self) -> Chunk:
        """Drop the per-query score and keep the stored chunk."""
        return Chunk(
            id=self.id,
            document_id=self.document_id,
            chunk_index=self.chunk_index,
            text=self.text,
            token_count=self.token_count,
            metadata=self.metadata,
        )


# =============================================================================
# Query Types
# =============================================================================

class QueryExpansion(BaseModel):
    """Expanded variants of a query with their confidence inputs."""
    original_query: str
    expanded_queries: list[str]
    expansion_terms: list[str] = Field(default_factory=list)
    expansion_sources: list[str] = Field(default_factory=list)
    semantic_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    feedback_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    fallback: bool = False

    @model_validator(mode="after")
    def original_first(self) -> "QueryExpansion":
        if not self.expanded_queries or self.expanded_queries[0] != self.original_query:
            self.expanded_queries = [self.original_query] + [
                q for q in self.expanded_queries if q != self.original_query
            ]
        if self.fallback:
            self.expanded_queries = [self.original_query]
        return self

    @classmethod
    def no_expansion(cls, query: str) -> "QueryExpansion":
        return cls(original_query=query, expanded_queries=[query], fallback=True)


# =============================================================================
# Context Types
# =============================================================================

class ContextOptions(BaseModel):
    """Options for growing a matched chunk with its neighbors."""
    max_tokens: int = Field(default=400, gt=0)
    include_previous: bool = True
    include_next: bool = True
    include_related: bool = False
    preserve_structure: bool = True


class ExpandedChunk(BaseModel):
    """
    A matched chunk together with the context added around it.

    ``token_count`` is what the token budget is charged with: the matched
    chunk and the neighbors that were added. Headers and role markers
    added by structured rendering are not charged; ``rendered_tokens``
    estimates the size of ``text`` as returned.
    """
    chunk_id: str
    document_id: str
    chunk_index: int
    text: str
    original_text: str
    token_count: int
    rendered_tokens: int = 0
    included_chunk_indices: list[int] = Field(default_factory=list)
    context_before: Optional[str] = None
    context_after: Optional[str] = None
    related_context: list[str] = Field(default_factory=list)
    section_title: Optional[str] = None
    chapter_title: Optional[str] = None
    truncated: bool = False


# =============================================================================
# Result Types
# =============================================================================

class RankedChunk(BaseModel):
    """A chunk contributing to a ranked document."""
    chunk_id: str
    chunk_index: int
    text: str
    similarity: float
    token_count: int = 0
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)


class RankedDocument(BaseModel):
    """All hits for one document in one query, with derived scores."""
    document_id: str
    title: Optional[str] = None
    filename: Optional[str] = None
    created_at: Optional[datetime] = None
    chunks: list[RankedChunk] = Field(default_factory=list)
    relevant_content: str = ""
    final_score: float = Field(default=0.0, ge=0.0, le=1.0)
    max_similarity: float = 0.0
    avg_similarity: float = 0.0
    position_score: float = 0.0
    diversity_bonus: float = 0.0
    chunk_count: int = 0
    relevance_info: str = ""
    vector_score: float = 0.0
    keyword_score: float = 0.0
    combined_score: float = 0.0
    search_sources: list[SearchSource] = Field(default_factory=list)
    expanded_context: list[ExpandedChunk] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """The contract returned to every caller of the search API."""
    success: bool
    results: list[RankedDocument] = Field(default_factory=list)
    query: str = ""
    search_type: str = ""
    message: str = ""
    error: Optional[str] = None
    code: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def failures_carry_no_results(self) -> "SearchResponse":
        if not self.success:
            self.results = []
        return self


class DocumentStats(BaseModel):
    """Embedding coverage of an owner's documents."""
    total_documents: int = 0
    documents_with_embeddings: int = 0
