"""
Grounded Search - Hybrid Result Fusion

Merges the vector and keyword legs per document with a weighted sum:

    combined = vector_score * vector_weight + keyword_score * keyword_weight

A leg that did not return a document contributes 0 for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from grounded_search.core.config import settings
from grounded_search.core.types import RankedDocument, SearchSource


_SOURCE_ORDER = {SearchSource.VECTOR: 0, SearchSource.KEYWORD: 1}


@dataclass
class FusionLeg:
    """Ranked documents from one retrieval path and the weight they carry."""
    documents: list[RankedDocument]
    weight: float
    source: SearchSource


def leg_score(document: RankedDocument, source: SearchSource) -> float:
    """Score a document carries on the given leg."""
    if source == SearchSource.VECTOR:
        return document.vector_score or document.final_score
    return document.keyword_score or settings.KEYWORD_PLACEHOLDER_SCORE


def fuse(
    vector_docs: list[RankedDocument],
    keyword_docs: list[RankedDocument],
    vector_weight: Optional[float] = None,
    keyword_weight: Optional[float] = None,
    limit: Optional[int] = None,
) -> list[RankedDocument]:
    """
    Fuse the two legs of a hybrid search.

    Args:
        vector_docs: Documents from the vector leg, scored by final_score
        keyword_docs: Documents from the keyword leg
        vector_weight: Weight of the vector leg
        keyword_weight: Weight of the keyword leg
        limit: Keep at most this many documents

    Returns:
        Documents ordered by combined_score, descending
    """
    vector_weight = settings.HYBRID_VECTOR_WEIGHT if vector_weight is None else vector_weight
    keyword_weight = settings.HYBRID_KEYWORD_WEIGHT if keyword_weight is None else keyword_weight

    return fuse_legs(
        [
            FusionLeg(vector_docs, vector_weight, SearchSource.VECTOR),
            FusionLeg(keyword_docs, keyword_weight, SearchSource.KEYWORD),
        ],
        limit=limit,
    )


def fuse_legs(legs: list[FusionLeg], limit: Optional[int] = None) -> list[RankedDocument]:
    """
    Weighted per-document fusion of any number of legs.

    Legs are processed in a fixed source order, so the result does not
    depend on the order they are passed in.
    """
    legs = sorted(legs, key=lambda leg: _SOURCE_ORDER[leg.source])

    merged: dict[str, RankedDocument] = {}
    scores: dict[str, dict[SearchSource, float]] = {}
    weights = {leg.source: leg.weight for leg in legs}

    for leg in legs:
        for document in leg.documents:
            doc_id = document.document_id
            score = leg_score(document, leg.source)
            existing = merged.get(doc_id)

            if existing is None:
                merged[doc_id] = document.model_copy(deep=True)
                scores[doc_id] = {leg.source: score}
                continue

            # First hit per leg wins; legs are already deduplicated upstream
            scores[doc_id].setdefault(leg.source, score)
            if len(document.relevant_content) > len(existing.relevant_content):
                existing.relevant_content = document.relevant_content
            if not existing.title and document.title:
                existing.title = document.title
            if not existing.filename and document.filename:
                existing.filename = document.filename

    fused: list[RankedDocument] = []
    for doc_id, document in merged.items():
        leg_scores = scores[doc_id]
        vector_score = leg_scores.get(SearchSource.VECTOR, 0.0)
        keyword_score = leg_scores.get(SearchSource.KEYWORD, 0.0)
        combined = sum(weights[source] * value for source, value in leg_scores.items())

        document.vector_score = vector_score
        document.keyword_score = keyword_score
        document.combined_score = combined
        document.search_sources = sorted(leg_scores, key=lambda s: _SOURCE_ORDER[s])
        if SearchSource.VECTOR not in leg_scores:
            document.final_score = 0.0
        fused.append(document)

    fused.sort(key=lambda d: d.combined_score, reverse=True)

    if limit is not None:
        fused = fused[:limit]
    return fused
