"""
Grounded Search - Context Expansion

Grows a matched chunk with its neighbours and same-section chunks so the
caller sees the passage in context, without exceeding a token budget.
The budget covers chunk text only; structural headers and role markers
are reported separately as part of the rendered size.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from typing import Optional

from grounded_search.core.config import Settings, settings as default_settings
from grounded_search.core.logging import LoggerMixin
from grounded_search.core.types import Chunk, ContextOptions, ExpandedChunk
from grounded_search.storage.base import ChunkStore


CHARS_PER_TOKEN = 4

MARKER_BEFORE = "[Context before]"
MARKER_MATCH = "[Match]"
MARKER_AFTER = "[Context after]"
MARKER_RELATED = "[Related]"


def estimate_tokens(text: Optional[str]) -> int:
    """Conservative token estimate of roughly four characters per token."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def chunk_tokens(chunk: Chunk) -> int:
    return chunk.token_count or estimate_tokens(chunk.text)


@dataclass
class _Selection:
    before: Optional[Chunk] = None
    after: Optional[Chunk] = None
    related: list[Chunk] = field(default_factory=list)
    total_tokens: int = 0


class ContextExpander(LoggerMixin):
    """
    Adds surrounding chunks to matched chunks.

    Candidates are considered in the order previous, next, related. A
    candidate is only added while the running total is below the fill
    ratio of the budget and only if it fits in what remains.
    """

    def __init__(self, store: ChunkStore, config: Optional[Settings] = None):
        self.store = store
        self.config = config or default_settings

    async def expand(
        self,
        chunks: list[Chunk],
        options: Optional[ContextOptions] = None,
    ) -> list[ExpandedChunk]:
        """
        Expand each chunk independently.

        Args:
            chunks: Matched chunks, each carrying its document_id
            options: Budget and inclusion toggles

        Returns:
            One ExpandedChunk per input chunk, in input order
        """
        if not chunks:
            return []

        options = options or ContextOptions(max_tokens=self.config.CONTEXT_MAX_TOKENS)

        neighbours = await asyncio.gather(
            *(self._fetch_candidates(chunk, options) for chunk in chunks),
            return_exceptions=True,
        )

        expanded: list[ExpandedChunk] = []
        for chunk, fetched in zip(chunks, neighbours):
            if isinstance(fetched, asyncio.CancelledError):
                raise fetched
            if isinstance(fetched, BaseException):
                self.logger.debug(
                    "Skipping context for chunk",
                    chunk_id=chunk.id,
                    document_id=chunk.document_id,
                    error=str(fetched),
                )
                fetched = {}
            expanded.append(self._expand_one(chunk, fetched, options))

        self.logger.debug(
            "Expanded chunk context",
            chunks=len(chunks),
            max_tokens=options.max_tokens,
        )

        return expanded

    def candidate_indices(self, chunk: Chunk, options: ContextOptions) -> dict[str, list[int]]:
        """Chunk indices worth fetching, by role."""
        metadata = chunk.metadata
        indices: dict[str, list[int]] = {"before": [], "after": [], "related": []}

        if options.include_previous:
            previous = metadata.previous_chunk_index
            if previous is None and chunk.chunk_index > 0:
                previous = chunk.chunk_index - 1
            if previous is not None:
                indices["before"].append(previous)

        if options.include_next:
            following = metadata.next_chunk_index
            if following is None:
                following = chunk.chunk_index + 1
            indices["after"].append(following)

        if options.include_related:
            taken = {chunk.chunk_index, *indices["before"], *indices["after"]}
            related = [
                r
                for r in metadata.related_chunks
                if r.relation_strength > self.config.CONTEXT_RELATED_MIN_STRENGTH
                and r.chunk_index not in taken
                and (r.section_title is None or r.section_title == metadata.section_title)
            ]
            related.sort(key=lambda r: r.relation_strength, reverse=True)
            indices["related"] = [r.chunk_index for r in related[: self.config.CONTEXT_MAX_RELATED]]

        return indices

    async def _fetch_candidates(
        self,
        chunk: Chunk,
        options: ContextOptions,
    ) -> dict[int, Chunk]:
        wanted = self.candidate_indices(chunk, options)
        all_indices = sorted({i for group in wanted.values() for i in group})
        if not all_indices:
            return {}

        fetched = await self.store.fetch_chunks(chunk.document_id, all_indices)
        return {c.chunk_index: c for c in fetched}

    def _expand_one(
        self,
        chunk: Chunk,
        fetched: dict[int, Chunk],
        options: ContextOptions,
    ) -> ExpandedChunk:
        budget = options.max_tokens
        own_tokens = chunk_tokens(chunk)

        if own_tokens > budget:
            text = chunk.text[: budget * CHARS_PER_TOKEN]
            return ExpandedChunk(
                chunk_id=chunk.id,
                document_id=chunk.document_id,
                chunk_index=chunk.chunk_index,
                text=text,
                original_text=chunk.text,
                token_count=min(budget, estimate_tokens(text)),
                rendered_tokens=estimate_tokens(text),
                included_chunk_indices=[chunk.chunk_index],
                section_title=chunk.metadata.section_title,
                chapter_title=chunk.metadata.chapter_title,
                truncated=True,
            )

        selection = self._select(chunk, fetched, options, own_tokens)
        included = sorted(
            [chunk.chunk_index]
            + [c.chunk_index for c in (selection.before, selection.after) if c is not None]
            + [c.chunk_index for c in selection.related]
        )

        text = self._render(chunk, selection, options.preserve_structure)

        return ExpandedChunk(
            chunk_id=chunk.id,
            document_id=chunk.document_id,
            chunk_index=chunk.chunk_index,
            text=text,
            original_text=chunk.text,
            token_count=selection.total_tokens,
            rendered_tokens=estimate_tokens(text),
            included_chunk_indices=included,
            context_before=selection.before.text if selection.before else None,
            context_after=selection.after.text if selection.after else None,
            related_context=[c.text for c in selection.related],
            section_title=chunk.metadata.section_title,
            chapter_title=chunk.metadata.chapter_title,
        )

    def _select(
        self,
        chunk: Chunk,
        fetched: dict[int, Chunk],
        options: ContextOptions,
        own_tokens: int,
    ) -> _Selection:
        budget = options.max_tokens
        fill_limit = budget * self.config.CONTEXT_FILL_RATIO
        wanted = self.candidate_indices(chunk, options)
        selection = _Selection(total_tokens=own_tokens)

        candidates: list[tuple[str, Chunk]] = []
        for role in ("before", "after", "related"):
            for index in wanted[role]:
                neighbour = fetched.get(index)
                if neighbour is None:
                    self.logger.debug(
                        "Neighbour chunk unavailable",
                        document_id=chunk.document_id,
                        chunk_index=index,
                    )
                    continue
                candidates.append((role, neighbour))

        for role, neighbour in candidates:
            if selection.total_tokens >= fill_limit:
                break
            tokens = chunk_tokens(neighbour)
            if selection.total_tokens + tokens > budget:
                break
            selection.total_tokens += tokens
            if role == "before":
                selection.before = neighbour
            elif role == "after":
                selection.after = neighbour
            else:
                selection.related.append(neighbour)

        return selection

    @staticmethod
    def _render(chunk: Chunk, selection: _Selection, preserve_structure: bool) -> str:
        if not preserve_structure:
            parts = [c.text for c in (selection.before, chunk, selection.after) if c is not None]
            parts.extend(c.text for c in selection.related)
            return "\n\n".join(parts)

        parts: list[str] = []
        if chunk.metadata.chapter_title:
            parts.append(f"## {chunk.metadata.chapter_title}")
        if chunk.metadata.section_title:
            parts.append(f"### {chunk.metadata.section_title}")
        if selection.before is not None:
            parts.append(f"{MARKER_BEFORE}\n{selection.before.text}")
        parts.append(f"{MARKER_MATCH}\n{chunk.text}")
        if selection.after is not None:
            parts.append(f"{MARKER_AFTER}\n{selection.after.text}")
        for related in selection.related:
            parts.append(f"{MARKER_RELATED}\n{related.text}")
        return "\n\n".join(parts)
