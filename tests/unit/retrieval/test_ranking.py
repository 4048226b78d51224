"""
Tests for grounded_search/retrieval/ranking/aggregation.py
"""

import pytest


def _chunks(similarities, indices):
    from grounded_search.core.types import RankedChunk

    return [
        RankedChunk(chunk_id=f"c{i}", chunk_index=i, text="t", similarity=s)
        for s, i in zip(similarities, indices)
    ]


class TestEnhancedScore:
    """Tests for DocumentRanker.calculate_enhanced_document_score."""

    def test_reference_document(self):
        """Test three chunks at indices 0, 1 and 5."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        score = DocumentRanker().calculate_enhanced_document_score(
            _chunks([0.9, 0.8, 0.5], [0, 1, 5])
        )

        position = (0.9 * 1.0 + 0.8 * 0.9 + 0.5 * 0.5) / 3
        assert score.max_similarity == pytest.approx(0.9)
        assert score.avg_similarity == pytest.approx(2.2 / 3)
        assert score.position_score == pytest.approx(position)
        assert score.diversity_bonus == pytest.approx(0.15)
        assert score.final_score == pytest.approx(
            min(1.0, 0.9 * 0.5 + (2.2 / 3) * 0.3 + position * 0.2 + 0.15)
        )

    def test_position_weight_floor(self):
        """Test that late chunks keep a weight of 0.3."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        score = DocumentRanker().calculate_enhanced_document_score(_chunks([1.0], [40]))
        assert score.position_score == pytest.approx(0.3)

    def test_diversity_bonus_capped(self):
        """Test that the diversity bonus stops at 0.2."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        score = DocumentRanker().calculate_enhanced_document_score(
            _chunks([0.3] * 10, list(range(10)))
        )
        assert score.diversity_bonus == pytest.approx(0.2)

    def test_final_score_capped(self):
        """Test that perfect matches cap at 1.0."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        score = DocumentRanker().calculate_enhanced_document_score(_chunks([1.0] * 4, [0, 1, 2, 3]))
        assert score.final_score == 1.0

    def test_final_score_in_unit_interval(self):
        """Test the bound over a grid of inputs."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        ranker = DocumentRanker()
        for similarity in (0.0, 0.25, 0.5, 0.75, 1.0):
            for count in (1, 2, 5, 8):
                score = ranker.calculate_enhanced_document_score(
                    _chunks([similarity] * count, list(range(count)))
                )
                assert 0.0 <= score.final_score <= 1.0

    def test_empty_chunks(self):
        """Test that no chunks gives a zero score."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        assert DocumentRanker().calculate_enhanced_document_score([]).final_score == 0.0

    def test_custom_scoring(self):
        """Test that ScoringConfig overrides are honoured."""
        from grounded_search.core.config import ScoringConfig
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        ranker = DocumentRanker(ScoringConfig(diversity_bonus_rate=0.0))
        score = ranker.calculate_enhanced_document_score(_chunks([0.5, 0.5], [0, 0]))
        assert score.diversity_bonus == 0.0
        assert score.final_score == pytest.approx(0.5)


class TestExcerpt:
    """Tests for DocumentRanker.extract_relevant_excerpt."""

    def test_short_text(self):
        """Test that short text is unchanged."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        assert DocumentRanker().extract_relevant_excerpt("Ein Satz.") == "Ein Satz."

    def test_cut_at_late_sentence_end(self):
        """Test truncation at a sentence end in the last part of the window."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        text = "a" * 80 + ". " + "b" * 100
        excerpt = DocumentRanker().extract_relevant_excerpt(text, max_length=100)
        assert excerpt == "a" * 80 + "."

    def test_ellipsis_when_sentence_end_too_early(self):
        """Test that an early sentence end is ignored."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        text = "a" * 20 + ". " + "b" * 200
        excerpt = DocumentRanker().extract_relevant_excerpt(text, max_length=100)
        assert excerpt == text[:100] + "..."

    def test_question_and_exclamation_marks(self):
        """Test that ? and ! count as sentence ends."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        text = "a" * 90 + "? " + "b" * 100
        assert DocumentRanker().extract_relevant_excerpt(text, max_length=100).endswith("?")


class TestGroupAndRank:
    """Tests for DocumentRanker.group_and_rank."""

    def test_groups_by_document(self, sample_hits):
        """Test grouping, ordering and aggregate fields."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        documents = DocumentRanker().group_and_rank(sample_hits, limit=5)

        assert [d.document_id for d in documents] == ["doc-1", "doc-2"]
        first = documents[0]
        assert first.chunk_count == 3
        assert [c.similarity for c in first.chunks] == [0.9, 0.8, 0.5]
        assert first.relevant_content.count("\n\n---\n\n") == 2
        assert first.relevance_info == (
            'Found 3 relevant sections in "Klimaschutzprogramm" (diversity: +15.0%)'
        )

    def test_keeps_top_three_chunks(self, hit_factory):
        """Test that only three chunks per document are retained."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        hits = [hit_factory("doc-1", i, 0.9 - i * 0.1) for i in range(5)]
        document = DocumentRanker().group_and_rank(hits, limit=5)[0]

        assert len(document.chunks) == 3
        assert document.chunk_count == 5
        assert document.diversity_bonus == pytest.approx(0.2)

    def test_limit(self, sample_hits):
        """Test the document limit."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        documents = DocumentRanker().group_and_rank(sample_hits, limit=1)
        assert len(documents) == 1

    def test_reference_corpus_wording(self, sample_hits):
        """Test that the corpus supplies relevance_info."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker
        from grounded_search.retrieval.search.corpus import REFERENCE

        documents = DocumentRanker().group_and_rank(sample_hits, limit=5, corpus=REFERENCE)
        assert documents[0].relevance_info.startswith("Found 3 relevant sections in the programme")

    def test_empty_hits(self):
        """Test that no hits give no documents."""
        from grounded_search.retrieval.ranking.aggregation import DocumentRanker

        assert DocumentRanker().group_and_rank([], limit=5) == []
