"""
Grounded Search - Document Aggregation & Enhanced Scoring

Groups chunk hits by document and scores each document from its chunks:

    final = max_similarity * 0.5 + avg_similarity * 0.3
            + position_score * 0.2 + diversity_bonus

capped at 1.0. ``position_score`` favours chunks near the start of the
document and ``diversity_bonus`` rewards several relevant chunks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from grounded_search.core.config import ScoringConfig
from grounded_search.core.logging import LoggerMixin
from grounded_search.core.types import RankedChunk, RankedDocument, SearchSource, SimilarityHit
from grounded_search.retrieval.search.corpus import DOCUMENTS, CorpusProfile


@dataclass
class DocumentScore:
    """Breakdown of an enhanced document score."""
    final_score: float = 0.0
    max_similarity: float = 0.0
    avg_similarity: float = 0.0
    position_score: float = 0.0
    diversity_bonus: float = 0.0


class DocumentRanker(LoggerMixin):
    """Turns chunk hits into ranked documents."""

    def __init__(self, scoring: Optional[ScoringConfig] = None):
        self.scoring = scoring or ScoringConfig()

    def calculate_enhanced_document_score(self, chunks: list[RankedChunk]) -> DocumentScore:
        """
        Score one document from all of its matching chunks.

        Args:
            chunks: Every chunk of the document that matched

        Returns:
            DocumentScore; all zeros for an empty list
        """
        if not chunks:
            return DocumentScore()

        cfg = self.scoring
        similarities = [c.similarity for c in chunks]
        max_similarity = max(similarities)
        avg_similarity = sum(similarities) / len(similarities)

        position_score = 0.0
        for chunk in chunks:
            position_weight = max(
                cfg.min_position_weight,
                1 - chunk.chunk_index * cfg.position_decay_rate,
            )
            position_score += chunk.similarity * position_weight
        position_score /= len(chunks)

        diversity_bonus = min(cfg.max_diversity_bonus, len(chunks) * cfg.diversity_bonus_rate)

        final_score = (
            max_similarity * cfg.max_similarity_weight
            + avg_similarity * cfg.avg_similarity_weight
            + position_score * cfg.position_weight
            + diversity_bonus
        )

        return DocumentScore(
            final_score=max(0.0, min(cfg.max_final_score, final_score)),
            max_similarity=max_similarity,
            avg_similarity=avg_similarity,
            position_score=position_score,
            diversity_bonus=diversity_bonus,
        )

    def extract_relevant_excerpt(self, text: Optional[str], max_length: Optional[int] = None) -> str:
        """Truncate at a sentence end in the last 30% of the window, else add an ellipsis."""
        if not text:
            return ""
        max_length = max_length or self.scoring.max_excerpt_length
        if len(text) <= max_length:
            return text

        truncated = text[:max_length]
        last_punctuation = max(truncated.rfind("."), truncated.rfind("?"), truncated.rfind("!"))

        if last_punctuation > max_length * self.scoring.excerpt_sentence_boundary:
            return truncated[: last_punctuation + 1]
        return truncated + "..."

    def group_and_rank(
        self,
        hits: list[SimilarityHit],
        limit: int,
        corpus: CorpusProfile = DOCUMENTS,
    ) -> list[RankedDocument]:
        """
        Aggregate chunk hits into at most ``limit`` documents.

        Args:
            hits: Chunk hits from similarity search
            limit: Maximum number of documents
            corpus: Supplies the relevance_info wording

        Returns:
            Documents ordered by final_score, descending
        """
        grouped: dict[str, list[SimilarityHit]] = {}
        for hit in hits:
            grouped.setdefault(hit.document_id, []).append(hit)

        cfg = self.scoring
        documents: list[RankedDocument] = []

        for document_id, doc_hits in grouped.items():
            first = doc_hits[0]
            chunks = sorted(
                (
                    RankedChunk(
                        chunk_id=h.id,
                        chunk_index=h.chunk_index,
                        text=h.text,
                        similarity=h.similarity or 0.0,
                        token_count=h.token_count,
                        metadata=h.metadata,
                    )
                    for h in doc_hits
                ),
                key=lambda c: c.similarity,
                reverse=True,
            )

            score = self.calculate_enhanced_document_score(chunks)
            top_chunks = chunks[: cfg.max_chunks_per_document]
            relevant_content = cfg.excerpt_separator.join(
                self.extract_relevant_excerpt(c.text) for c in top_chunks
            )

            documents.append(
                RankedDocument(
                    document_id=document_id,
                    title=first.document_title,
                    filename=first.document_filename,
                    created_at=first.document_created_at or first.created_at,
                    chunks=top_chunks,
                    relevant_content=relevant_content,
                    final_score=score.final_score,
                    max_similarity=score.max_similarity,
                    avg_similarity=score.avg_similarity,
                    position_score=score.position_score,
                    diversity_bonus=score.diversity_bonus,
                    chunk_count=len(chunks),
                    relevance_info=corpus.relevance_info(
                        len(chunks), first.document_title, score.diversity_bonus
                    ),
                    search_sources=[SearchSource.VECTOR],
                )
            )

        documents.sort(key=lambda d: d.final_score, reverse=True)

        self.logger.debug(
            "Grouped chunk hits",
            total_chunks=len(hits),
            documents=len(documents),
        )

        return documents[:limit]
