"""Retrieval legs and their fusion."""

from grounded_search.retrieval.search.corpus import DOCUMENTS, REFERENCE, CorpusProfile, get_profile
from grounded_search.retrieval.search.hybrid import FusionLeg, fuse, fuse_legs
from grounded_search.retrieval.search.keyword import KeywordSearcher, extract_text_around_query
from grounded_search.retrieval.search.vector import SimilaritySearcher

__all__ = [
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
]
