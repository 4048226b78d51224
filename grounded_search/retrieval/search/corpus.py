"""
Grounded Search - Corpus Profiles

A corpus profile tells the generic search pipeline which stored
procedures to call and how to present the results for one corpus.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class CorpusProfile:
    """Per-corpus configuration consumed by the search pipeline."""
    name: str
    vector_function: str
    filtered_vector_function: Optional[str] = None
    owner_scoped: bool = True
    use_expansion: bool = True
    supports_keyword: bool = True
    search_type: str = "vector"
    empty_message: str = "No relevant documents found"
    relevance_template: str = 'Found {count} relevant sections in "{title}" (diversity: +{diversity:.1f}%)'

    def function_for(self, document_ids: Optional[list[str]]) -> str:
        """Stored procedure to call, preferring the id-filtered one when a subset is given."""
        if document_ids and self.filtered_vector_function:
            return self.filtered_vector_function
        return self.vector_function

    def relevance_info(self, count: int, title: Optional[str], diversity_bonus: float) -> str:
        return self.relevance_template.format(
            count=count,
            title=title or "Untitled",
            diversity=diversity_bonus * 100,
        )


DOCUMENTS = CorpusProfile(
    name="documents",
    vector_function="similarity_search_optimized",
    filtered_vector_function="similarity_search_with_documents",
    owner_scoped=True,
    use_expansion=True,
    supports_keyword=True,
    search_type="vector",
    empty_message="No relevant documents found for this query",
)

REFERENCE = CorpusProfile(
    name="grundsatz",
    vector_function="similarity_search_grundsatz",
    owner_scoped=False,
    use_expansion=False,
    supports_keyword=False,
    search_type="grundsatz_vector",
    empty_message="No relevant passages found in the reference programmes",
    relevance_template='Found {count} relevant sections in the programme "{title}"',
)

PROFILES = {profile.name: profile for profile in (DOCUMENTS, REFERENCE)}


def get_profile(name: str) -> CorpusProfile:
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(f"Unknown corpus: {name}")
