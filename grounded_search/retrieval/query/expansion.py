"""
Grounded Search - Query Expansion

Builds related query variants from concept sources (terms semantically
near the query) and feedback sources (terms a user's earlier feedback
associated with similar queries). Expansion is best effort: any failure
yields a fallback expansion containing only the original query.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from grounded_search.core.config import settings
from grounded_search.core.exceptions import ValidationError
from grounded_search.core.logging import LoggerMixin
from grounded_search.core.types import QueryExpansion


@dataclass(frozen=True)
class ExpansionTerm:
    """A candidate term with the confidence its source assigned to it."""
    term: str
    confidence: float
    source: str


class ConceptSource(ABC):
    """Supplies terms semantically close to a query."""

    name: str = "concepts"

    @abstractmethod
    async def nearby_concepts(self, query: str) -> list[tuple[str, float]]:
        """Return (term, confidence) pairs, confidence in [0, 1]."""
        pass


class FeedbackSource(ABC):
    """Supplies terms learned from a user's earlier search feedback."""

    name: str = "feedback"

    @abstractmethod
    async def feedback_terms(self, user_id: str, query: str) -> list[tuple[str, float]]:
        """Return (term, confidence) pairs, confidence in [0, 1]."""
        pass


class ThesaurusConceptSource(ConceptSource):
    """
    Static thesaurus of German policy vocabulary.

    A term matches when it occurs anywhere in the lowercased query, so
    compounds such as "Klimaschutzgesetz" still pick up "klimaschutz".
    """

    name = "thesaurus"

    SYNONYMS: dict[str, list[str]] = {
        "umwelt": ["klimaschutz", "nachhaltigkeit", "ökologie", "naturschutz"],
        "klimaschutz": ["umwelt", "nachhaltigkeit", "co2", "emission"],
        "bildung": ["schule", "universität", "ausbildung", "lernen", "lehren"],
        "wirtschaft": ["finanzen", "arbeitsplätze", "unternehmen", "arbeit"],
        "sozial": ["gesellschaft", "gemeinschaft", "solidarität", "gerechtigkeit"],
        "energie": ["strom", "erneuerbar", "solar", "wind", "photovoltaik"],
        "verkehr": ["mobilität", "transport", "öpnv", "bahn", "fahrrad"],
        "wohnen": ["miete", "bauen", "stadt", "quartier", "sozialwohnung"],
        "gesundheit": ["medizin", "pflege", "krankenhaus", "vorsorge"],
        "europa": ["eu", "europäisch", "international", "grenzüberschreitend"],
        "essen": ["ernährung", "landwirtschaft", "lebensmittel", "nahrung"],
        "ernährung": ["essen", "landwirtschaft", "lebensmittel", "gesundheit"],
        "landwirtschaft": ["ernährung", "essen", "bauern", "agrar", "lebensmittel"],
        "lebensmittel": ["essen", "ernährung", "landwirtschaft", "qualität"],
    }

    POLITICAL_TERMS = (
        "politik", "partei", "wahl", "bundestag", "regierung", "minister", "grün", "grüne",
    )
    POLITICAL_CONTEXT = "grüne politik"

    def __init__(
        self,
        synonyms: Optional[dict[str, list[str]]] = None,
        synonyms_per_term: int = 1,
        confidence: float = 0.8,
    ):
        self.synonyms = synonyms if synonyms is not None else self.SYNONYMS
        self.synonyms_per_term = synonyms_per_term
        self.confidence = confidence

    async def nearby_concepts(self, query: str) -> list[tuple[str, float]]:
        query_lower = query.lower()
        concepts: list[tuple[str, float]] = []

        for term, synonyms in self.synonyms.items():
            if term in query_lower:
                for rank, synonym in enumerate(synonyms[: self.synonyms_per_term]):
                    concepts.append((synonym, max(0.0, self.confidence - rank * 0.1)))

        is_political = any(term in query_lower for term in self.POLITICAL_TERMS)
        if is_political and "grün" not in query_lower:
            concepts.append((self.POLITICAL_CONTEXT, self.confidence * 0.75))

        return concepts


class InMemoryFeedbackSource(FeedbackSource):
    """Feedback terms held in memory, keyed by user."""

    def __init__(self, terms_by_user: Optional[dict[str, list[tuple[str, float]]]] = None):
        self._terms_by_user = terms_by_user or {}

    def record(self, user_id: str, term: str, confidence: float) -> None:
        self._terms_by_user.setdefault(user_id, []).append((term, confidence))

    async def feedback_terms(self, user_id: str, query: str) -> list[tuple[str, float]]:
        return list(self._terms_by_user.get(user_id, []))


class QueryExpander(LoggerMixin):
    """
    Expands a query into weighted variants for embedding fusion.

    Variants are rendered as "<original> <term>" and ordered by the
    confidence of their term. The original query is always first.
    """

    def __init__(
        self,
        concept_sources: Optional[list[ConceptSource]] = None,
        feedback_source: Optional[FeedbackSource] = None,
        max_expansions: Optional[int] = None,
    ):
        self.concept_sources = (
            concept_sources if concept_sources is not None else [ThesaurusConceptSource()]
        )
        self.feedback_source = feedback_source
        self.max_expansions = max_expansions or settings.EXPANSION_MAX_QUERIES

    async def expand(self, query: str, user_id: Optional[str] = None) -> QueryExpansion:
        """
        Generate query variants.

        Args:
            query: Original query, non-empty after trimming
            user_id: Optional key for personalized feedback terms

        Returns:
            QueryExpansion; ``fallback`` is set when no usable term was found
        """
        if not query or not query.strip():
            raise ValidationError("Query must not be empty", field="query")

        original = query.strip()

        try:
            semantic = await self._collect_semantic(original)
            feedback = await self._collect_feedback(original, user_id)
            selected = self._select_terms(original, semantic + feedback)
        except Exception as e:
            self.logger.warning("Query expansion failed", error=str(e))
            return QueryExpansion.no_expansion(original)

        if not selected:
            return QueryExpansion.no_expansion(original)

        semantic_used = [t.confidence for t in selected if t.source != "feedback"]
        feedback_used = [t.confidence for t in selected if t.source == "feedback"]

        expansion = QueryExpansion(
            original_query=original,
            expanded_queries=[original] + [f"{original} {t.term}" for t in selected],
            expansion_terms=[t.term for t in selected],
            expansion_sources=sorted({t.source for t in selected}),
            semantic_confidence=_mean(semantic_used),
            feedback_confidence=_mean(feedback_used),
            fallback=False,
        )

        self.logger.debug(
            "Expanded query",
            original=original,
            num_variations=len(selected),
            sources=expansion.expansion_sources,
        )

        return expansion

    async def _collect_semantic(self, query: str) -> list[ExpansionTerm]:
        terms: list[ExpansionTerm] = []
        for source in self.concept_sources:
            try:
                pairs = await source.nearby_concepts(query)
            except Exception as e:
                self.logger.warning("Concept source failed", source=source.name, error=str(e))
                continue
            terms.extend(ExpansionTerm(t, _clamp(c), source.name) for t, c in pairs)
        return terms

    async def _collect_feedback(self, query: str, user_id: Optional[str]) -> list[ExpansionTerm]:
        if self.feedback_source is None or not user_id:
            return []
        try:
            pairs = await self.feedback_source.feedback_terms(user_id, query)
        except Exception as e:
            self.logger.warning("Feedback source failed", error=str(e))
            return []
        return [ExpansionTerm(t, _clamp(c), "feedback") for t, c in pairs]

    def _select_terms(self, query: str, candidates: list[ExpansionTerm]) -> list[ExpansionTerm]:
        """Drop terms already in the query and duplicates, keep the most confident."""
        query_lower = query.lower()
        best: dict[str, ExpansionTerm] = {}

        for candidate in candidates:
            key = candidate.term.strip().lower()
            if not key or key in query_lower or candidate.confidence <= 0:
                continue
            current = best.get(key)
            if current is None or candidate.confidence > current.confidence:
                best[key] = candidate

        ranked = sorted(best.values(), key=lambda t: t.confidence, reverse=True)
        return ranked[: self.max_expansions]


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0
