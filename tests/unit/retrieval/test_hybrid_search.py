"""
Tests for grounded_search/retrieval/search/hybrid.py
"""

import pytest


def _vector_doc(document_id, score, content=""):
    from grounded_search.core.types import RankedDocument, SearchSource

    return RankedDocument(
        document_id=document_id,
        final_score=score,
        relevant_content=content,
        search_sources=[SearchSource.VECTOR],
    )


def _keyword_doc(document_id, score=0.5, content=""):
    from grounded_search.core.types import RankedDocument, SearchSource

    return RankedDocument(
        document_id=document_id,
        keyword_score=score,
        combined_score=score,
        relevant_content=content,
        search_sources=[SearchSource.KEYWORD],
    )


class TestFuse:
    """Tests for weighted hybrid fusion."""

    def test_combined_scores_and_order(self):
        """Test the reference scenario with documents A, B and C."""
        from grounded_search.retrieval.search.hybrid import fuse

        fused = fuse(
            [_vector_doc("A", 0.9), _vector_doc("B", 0.6)],
            [_keyword_doc("B"), _keyword_doc("C")],
            vector_weight=0.7,
            keyword_weight=0.3,
        )

        assert [d.document_id for d in fused] == ["A", "B", "C"]
        assert fused[0].combined_score == pytest.approx(0.63)
        assert fused[1].combined_score == pytest.approx(0.57)
        assert fused[2].combined_score == pytest.approx(0.15)

    def test_sources_and_leg_scores(self):
        """Test per-leg scores and sources on merged documents."""
        from grounded_search.core.types import SearchSource
        from grounded_search.retrieval.search.hybrid import fuse

        fused = {d.document_id: d for d in fuse(
            [_vector_doc("A", 0.9), _vector_doc("B", 0.6)],
            [_keyword_doc("B"), _keyword_doc("C")],
            0.7,
            0.3,
        )}

        assert fused["A"].search_sources == [SearchSource.VECTOR]
        assert fused["A"].keyword_score == 0.0
        assert fused["B"].search_sources == [SearchSource.VECTOR, SearchSource.KEYWORD]
        assert fused["B"].vector_score == pytest.approx(0.6)
        assert fused["B"].keyword_score == pytest.approx(0.5)
        assert fused["C"].vector_score == 0.0
        assert fused["C"].final_score == 0.0

    def test_keeps_longer_excerpt(self):
        """Test that the longer excerpt wins for documents found by both legs."""
        from grounded_search.retrieval.search.hybrid import fuse

        fused = fuse(
            [_vector_doc("B", 0.6, "kurz")],
            [_keyword_doc("B", content="ein deutlich längerer Auszug")],
            0.7,
            0.3,
        )
        assert fused[0].relevant_content == "ein deutlich längerer Auszug"

    def test_limit(self):
        """Test truncation to the caller's limit."""
        from grounded_search.retrieval.search.hybrid import fuse

        fused = fuse(
            [_vector_doc("A", 0.9), _vector_doc("B", 0.6)],
            [_keyword_doc("C")],
            0.7,
            0.3,
            limit=2,
        )
        assert [d.document_id for d in fused] == ["A", "B"]

    def test_empty_legs(self):
        """Test that one empty leg degrades to the other."""
        from grounded_search.retrieval.search.hybrid import fuse

        assert [d.document_id for d in fuse([], [_keyword_doc("C")], 0.7, 0.3)] == ["C"]
        assert fuse([], [], 0.7, 0.3) == []

    def test_inputs_not_mutated(self):
        """Test that fusion works on copies."""
        from grounded_search.retrieval.search.hybrid import fuse

        vector_doc = _vector_doc("B", 0.6, "kurz")
        fuse([vector_doc], [_keyword_doc("B", content="länger als kurz")], 0.7, 0.3)

        assert vector_doc.relevant_content == "kurz"
        assert vector_doc.combined_score == 0.0

    def test_default_weights(self):
        """Test that configured weights are used by default."""
        from grounded_search.retrieval.search.hybrid import fuse

        fused = fuse([_vector_doc("A", 1.0)], [_keyword_doc("A", 1.0)])
        assert fused[0].combined_score == pytest.approx(1.0)


class TestFuseLegs:
    """Tests for leg-order independence."""

    def test_leg_order_does_not_matter(self):
        """Test that swapping the legs gives the same result."""
        from grounded_search.core.types import SearchSource
        from grounded_search.retrieval.search.hybrid import FusionLeg, fuse_legs

        vector_leg = FusionLeg(
            [_vector_doc("A", 0.9, "a"), _vector_doc("B", 0.6, "b")],
            0.7,
            SearchSource.VECTOR,
        )
        keyword_leg = FusionLeg(
            [_keyword_doc("B", content="bb"), _keyword_doc("C", content="c")],
            0.3,
            SearchSource.KEYWORD,
        )

        forward = fuse_legs([vector_leg, keyword_leg])
        backward = fuse_legs([keyword_leg, vector_leg])

        assert [d.model_dump() for d in forward] == [d.model_dump() for d in backward]
