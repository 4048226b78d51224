"""
Grounded Search - Retrieval Module

This module handles document retrieval:
- Query expansion and embedding fusion
- Vector similarity and keyword search
- Hybrid result fusion
- Document ranking
- Context expansion
"""

from __future__ import annotations

from grounded_search.retrieval.query import (
    ConceptSource,
    FeedbackSource,
    InMemoryFeedbackSource,
    QueryExpander,
    ThesaurusConceptSource,
    EmbeddingFusion,
    calculate_weighted_average_embedding,
)
from grounded_search.retrieval.search import (
    DOCUMENTS,
    REFERENCE,
    CorpusProfile,
    get_profile,
    FusionLeg,
    fuse,
    fuse_legs,
    KeywordSearcher,
    extract_text_around_query,
    SimilaritySearcher,
)
from grounded_search.retrieval.ranking import DocumentRanker, DocumentScore
from grounded_search.retrieval.context import ContextExpander, estimate_tokens
from grounded_search.retrieval.service import SearchService, get_search_service

__all__ = [
    # Query
    "ConceptSource",
    "FeedbackSource",
    "InMemoryFeedbackSource",
    "QueryExpander",
    "ThesaurusConceptSource",
    "EmbeddingFusion",
    "calculate_weighted_average_embedding",
    # Search
    "DOCUMENTS",
    "REFERENCE",
    "CorpusProfile",
    "get_profile",
    "FusionLeg",
    "fuse",
    "fuse_legs",
    "KeywordSearcher",
    "extract_text_around_query",
    "SimilaritySearcher",
    # Ranking
    "DocumentRanker",
    "DocumentScore",
    # Context
    "ContextExpander",
    "estimate_tokens",
    # Service
    "SearchService",
    "get_search_service",
]
