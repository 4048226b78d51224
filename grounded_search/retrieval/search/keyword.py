"""
Grounded Search - Keyword Search

Embedding-free retrieval path. Used as the keyword leg of hybrid search,
as the keyword mode, and as the fallback when vector search finds nothing.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from grounded_search.core.config import Settings, settings as default_settings
from grounded_search.core.exceptions import KeywordSearchError
from grounded_search.core.logging import LoggerMixin
from grounded_search.core.types import RankedDocument, SearchSource, SimilarityHit
from grounded_search.storage.base import ChunkStore


ELLIPSIS = "..."


def extract_text_around_query(text: Optional[str], query: str, max_length: int = 500) -> str:
    """
    Excerpt of at most ``max_length`` characters around the first match.

    The window is centered on the first case-insensitive occurrence of
    ``query`` and shifted inward at the ends of the text. Ellipses mark
    each side that was cut. Without a match the head of the text is used.
    """
    if not text:
        return ""
    if len(text) <= max_length:
        return text

    needle = query.strip().lower()
    position = text.lower().find(needle) if needle else -1

    if position < 0:
        return text[:max_length] + ELLIPSIS

    center = position + len(needle) // 2
    start = max(0, center - max_length // 2)
    end = start + max_length
    if end > len(text):
        end = len(text)
        start = max(0, end - max_length)

    excerpt = text[start:end]
    if start > 0:
        excerpt = ELLIPSIS + excerpt
    if end < len(text):
        excerpt = excerpt + ELLIPSIS
    return excerpt


class KeywordSearcher(LoggerMixin):
    """Substring or full-text document lookup with placeholder relevance."""

    def __init__(
        self,
        store: ChunkStore,
        config: Optional[Settings] = None,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.config = config or default_settings
        self.timeout = timeout or self.config.TIMEOUT_SEARCH_SECONDS

    async def find_keyword(
        self,
        query: str,
        owner_id: Optional[str],
        limit: int,
        document_ids: Optional[list[str]] = None,
        full_text: bool = False,
    ) -> list[SimilarityHit]:
        """
        Match documents by text.

        The store cannot rank text matches, so every hit gets the same
        placeholder score and an excerpt around the first occurrence.

        Raises:
            KeywordSearchError: if the store fails or times out
        """
        start_time = time.time()
        limit = max(1, min(self.config.SEARCH_MAX_LIMIT, int(limit)))

        try:
            rows = await asyncio.wait_for(
                self.store.keyword_search(
                    query,
                    owner_id,
                    limit,
                    document_ids=document_ids,
                    full_text=full_text,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise KeywordSearchError(f"Keyword search timed out after {self.timeout}s")
        except KeywordSearchError:
            raise
        except Exception as e:
            raise KeywordSearchError(f"Keyword search failed: {e}")

        placeholder = self.config.KEYWORD_PLACEHOLDER_SCORE
        excerpt_length = self.config.KEYWORD_EXCERPT_LENGTH

        hits = [
            row.model_copy(
                update={
                    "bm25_score": placeholder,
                    "excerpt": extract_text_around_query(row.text, query, excerpt_length),
                }
            )
            for row in rows
        ]

        self.logger.info(
            "Keyword search completed",
            full_text=full_text,
            query_length=len(query),
            results_found=len(hits),
            latency_ms=round((time.time() - start_time) * 1000, 2),
        )

        return hits

    @staticmethod
    def to_documents(hits: list[SimilarityHit]) -> list[RankedDocument]:
        """One keyword-scored document per hit, in store order."""
        documents = []
        for hit in hits:
            score = hit.bm25_score or 0.0
            documents.append(
                RankedDocument(
                    document_id=hit.document_id,
                    title=hit.document_title,
                    filename=hit.document_filename,
                    created_at=hit.document_created_at or hit.created_at,
                    relevant_content=hit.excerpt or "",
                    keyword_score=score,
                    combined_score=score,
                    relevance_info=f'Keyword match in "{hit.document_title or "Untitled"}"',
                    search_sources=[SearchSource.KEYWORD],
                )
            )
        return documents
