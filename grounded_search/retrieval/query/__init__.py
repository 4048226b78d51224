"""Query expansion and embedding fusion."""

from grounded_search.retrieval.query.expansion import (
    ConceptSource,
    FeedbackSource,
    InMemoryFeedbackSource,
    QueryExpander,
    ThesaurusConceptSource,
)
from grounded_search.retrieval.query.fusion import (
    EmbeddingFusion,
    calculate_weighted_average_embedding,
)

__all__ = [
    "ConceptSource",
    "FeedbackSource",
    "InMemoryFeedbackSource",
    "QueryExpander",
    "ThesaurusConceptSource",
    "EmbeddingFusion",
    "calculate_weighted_average_embedding",
]
