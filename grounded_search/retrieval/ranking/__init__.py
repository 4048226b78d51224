"""Document aggregation and scoring."""

from grounded_search.retrieval.ranking.aggregation import DocumentRanker, DocumentScore

__all__ = ["DocumentRanker", "DocumentScore"]
