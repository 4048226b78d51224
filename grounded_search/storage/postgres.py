"""
Grounded Search - PostgreSQL Chunk Store

Nearest-neighbor lookups run through stored procedures installed next
to the chunk table; keyword lookups query the documents table directly.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from sqlalchemy import func, select, text

from grounded_search.core.config import settings
from grounded_search.core.exceptions import KeywordSearchError, VectorStoreError
from grounded_search.core.types import Chunk, ChunkMetadata, DocumentStats, SimilarityHit
from grounded_search.storage.base import ChunkStore
from grounded_search.storage.database import Database, get_database
from grounded_search.storage.models import ChunkModel, DocumentModel

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Argument order of the similarity_search_* procedures
_PROCEDURE_ARGS = (
    "query_embedding",
    "user_id_filter",
    "document_ids_filter",
    "similarity_threshold",
    "match_count",
)


def format_embedding(embedding: list[float]) -> str:
    """Render a vector in pgvector's text input format."""
    return "[" + ",".join(repr(float(v)) for v in embedding) + "]"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the query matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _parse_metadata(raw: Any) -> ChunkMetadata:
    if isinstance(raw, ChunkMetadata):
        return raw
    if isinstance(raw, dict):
        return ChunkMetadata.model_validate(raw)
    return ChunkMetadata()


class PostgresChunkStore(ChunkStore):
    """ChunkStore backed by PostgreSQL with the pgvector extension."""

    def __init__(
        self,
        database: Optional[Database] = None,
        text_search_config: Optional[str] = None,
    ):
        self._database = database or get_database()
        self._text_search_config = text_search_config or settings.KEYWORD_TEXT_SEARCH_CONFIG

    @property
    def is_connected(self) -> bool:
        return self._database.is_connected

    async def connect(self) -> None:
        await self._database.connect()

    async def disconnect(self) -> None:
        await self._database.disconnect()

    async def health_check(self) -> dict[str, Any]:
        return await self._database.health_check()

    async def similarity_search(
        self,
        function_name: str,
        params: dict[str, Any],
    ) -> list[SimilarityHit]:
        """Call a similarity_search_* stored procedure using named arguments."""
        if not _IDENTIFIER.match(function_name):
            raise VectorStoreError(f"Invalid stored procedure name: {function_name}")

        bound = {k: v for k, v in params.items() if k in _PROCEDURE_ARGS}
        if isinstance(bound.get("query_embedding"), list):
            bound["query_embedding"] = format_embedding(bound["query_embedding"])

        arguments = []
        for name in _PROCEDURE_ARGS:
            if name not in bound:
                continue
            if name == "query_embedding":
                arguments.append(f"{name} => CAST(:{name} AS vector)")
            else:
                arguments.append(f"{name} => :{name}")

        statement = text(f"SELECT * FROM {function_name}({', '.join(arguments)})")

        try:
            async with self._database.session() as session:
                result = await session.execute(statement, bound)
                rows = result.mappings().all()
        except Exception as e:
            self.logger.error(
                "Similarity search procedure failed",
                function=function_name,
                error=str(e),
            )
            raise VectorStoreError(
                f"Vector search RPC failed: {e}",
                details={"function": function_name},
            )

        return [self._row_to_hit(row) for row in rows]

    def _row_to_hit(self, row: Any) -> SimilarityHit:
        return SimilarityHit(
            id=str(row["id"]),
            document_id=str(row["document_id"]),
            chunk_index=row.get("chunk_index") or 0,
            text=row.get("chunk_text") or "",
            token_count=row.get("token_count") or 0,
            similarity=row.get("similarity") or 0.0,
            created_at=row.get("created_at"),
            document_title=row.get("document_title"),
            document_filename=row.get("document_filename"),
            document_created_at=row.get("document_created_at"),
            metadata=_parse_metadata(row.get("metadata")),
        )

    async def keyword_search(
        self,
        query: str,
        owner_id: Optional[str],
        limit: int,
        document_ids: Optional[list[str]] = None,
        full_text: bool = False,
    ) -> list[SimilarityHit]:
        """Substring (ILIKE) or websearch full-text match over completed documents."""
        statement = select(
            DocumentModel.id,
            DocumentModel.title,
            DocumentModel.filename,
            DocumentModel.ocr_text,
            DocumentModel.created_at,
        ).where(DocumentModel.status == "completed")

        if owner_id is not None:
            statement = statement.where(DocumentModel.user_id == owner_id)

        if document_ids:
            statement = statement.where(DocumentModel.id.in_(document_ids))

        if full_text:
            config = self._text_search_config
            statement = statement.where(
                func.to_tsvector(config, DocumentModel.ocr_text).op("@@")(
                    func.websearch_to_tsquery(config, query)
                )
            )
        else:
            pattern = f"%{escape_like(query.strip())}%"
            statement = statement.where(DocumentModel.ocr_text.ilike(pattern, escape="\\"))

        statement = statement.limit(limit)

        try:
            async with self._database.session() as session:
                result = await session.execute(statement)
                rows = result.all()
        except Exception as e:
            self.logger.error("Keyword search query failed", full_text=full_text, error=str(e))
            raise KeywordSearchError(f"Keyword search failed: {e}")

        return [
            SimilarityHit(
                id=str(row.id),
                document_id=str(row.id),
                text=row.ocr_text or "",
                document_title=row.title,
                document_filename=row.filename,
                document_created_at=row.created_at,
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def fetch_chunks(
        self,
        document_id: str,
        chunk_indices: list[int],
    ) -> list[Chunk]:
        if not chunk_indices:
            return []

        statement = (
            select(ChunkModel)
            .where(
                ChunkModel.document_id == document_id,
                ChunkModel.chunk_index.in_(chunk_indices),
            )
            .order_by(ChunkModel.chunk_index)
        )

        try:
            async with self._database.session() as session:
                result = await session.execute(statement)
                models = result.scalars().all()
        except Exception as e:
            raise VectorStoreError(
                f"Failed to load chunks: {e}",
                details={"document_id": document_id},
            )

        return [
            Chunk(
                id=str(m.id),
                document_id=str(m.document_id),
                chunk_index=m.chunk_index,
                text=m.chunk_text,
                token_count=m.token_count or 0,
                metadata=_parse_metadata(m.chunk_metadata),
            )
            for m in models
        ]

    async def has_embeddings(self, document_id: str) -> bool:
        statement = (
            select(ChunkModel.id)
            .where(ChunkModel.document_id == document_id)
            .limit(1)
        )

        async with self._database.session() as session:
            result = await session.execute(statement)
            return result.first() is not None

    async def document_stats(self, owner_id: str) -> DocumentStats:
        completed = (
            DocumentModel.user_id == owner_id,
            DocumentModel.status == "completed",
        )
        total_statement = select(func.count(DocumentModel.id)).where(*completed)
        embedded_statement = select(func.count(DocumentModel.id)).where(
            *completed,
            DocumentModel.id.in_(select(ChunkModel.document_id)),
        )

        async with self._database.session() as session:
            total = (await session.execute(total_statement)).scalar_one()
            embedded = (await session.execute(embedded_statement)).scalar_one()

        return DocumentStats(
            total_documents=total or 0,
            documents_with_embeddings=embedded or 0,
        )
