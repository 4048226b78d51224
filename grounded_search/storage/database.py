"""
Grounded Search - Database Connection Management

One async engine per process. Search sessions only read, so every
session is rolled back on exit and each connection carries a server-side
statement timeout matching the search timeout.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from grounded_search.core.config import settings
from grounded_search.core.exceptions import GroundedSearchError
from grounded_search.core.logging import LoggerMixin

_PGVECTOR_VERSION_SQL = text(
    "SELECT extversion FROM pg_extension WHERE extname = 'vector'"
)


class DatabaseError(GroundedSearchError):
    """Connection or session failure."""

    def __init__(self, message: str):
        super().__init__(message, code="DATABASE_ERROR")


def redact_url(url: str) -> str:
    """Render a connection URL with the password masked."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<invalid database url>"


class Database(LoggerMixin):
    """Owns the async engine and hands out read-only sessions."""

    def __init__(
        self,
        url: Optional[str] = None,
        pool_size: Optional[int] = None,
        max_overflow: Optional[int] = None,
        statement_timeout_seconds: Optional[float] = None,
    ):
        self._url = url or settings.DATABASE_URL
        self._pool_size = pool_size or settings.DATABASE_POOL_SIZE
        self._max_overflow = max_overflow or settings.DATABASE_MAX_OVERFLOW
        self._statement_timeout_ms = int(
            (statement_timeout_seconds or settings.TIMEOUT_SEARCH_SECONDS) * 1000
        )
        self._engine: Optional[AsyncEngine] = None
        self._sessions: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def server_settings(self) -> dict[str, str]:
        """Per-connection PostgreSQL settings passed to asyncpg."""
        return {
            "application_name": settings.DATABASE_APPLICATION_NAME,
            "statement_timeout": str(self._statement_timeout_ms),
        }

    async def connect(self) -> None:
        if self._engine is not None:
            return

        try:
            engine = create_async_engine(
                self._url,
                pool_size=self._pool_size,
                max_overflow=self._max_overflow,
                pool_pre_ping=True,
                echo=settings.DEBUG,
                connect_args={"server_settings": self.server_settings},
            )
        except Exception as e:
            raise DatabaseError(f"Cannot create engine for {redact_url(self._url)}: {e}") from e

        self._engine = engine
        self._sessions = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        self.logger.info(
            "Database engine created",
            url=redact_url(self._url),
            pool_size=self._pool_size,
            statement_timeout_ms=self._statement_timeout_ms,
        )

    async def disconnect(self) -> None:
        if self._engine is None:
            return
        engine, self._engine, self._sessions = self._engine, None, None
        await engine.dispose()
        self.logger.info("Database engine disposed")

    async def health_check(self) -> dict[str, Any]:
        """
        Round-trip the database and report the pgvector version.

        ``pgvector`` is None when the extension is not installed, in which
        case vector search cannot run even though the database is up.
        """
        if self._engine is None:
            return {"status": "disconnected", "latency_ms": 0}

        started = time.perf_counter()
        try:
            async with self._engine.connect() as conn:
                version = (await conn.execute(_PGVECTOR_VERSION_SQL)).scalar_one_or_none()
        except Exception as e:
            self.logger.warning("Database health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e), "latency_ms": 0}

        return {
            "status": "healthy" if version else "degraded",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "pgvector": version,
        }

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Read-only session scope; always rolled back and closed."""
        if self._sessions is None:
            raise DatabaseError("Database not connected")

        session = self._sessions()
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


_database: Optional[Database] = None


def get_database() -> Database:
    global _database
    if _database is None:
        _database = Database()
    return _database


async def init_database() -> Database:
    db = get_database()
    await db.connect()
    return db


async def close_database() -> None:
    global _database
    if _database is not None:
        await _database.disconnect()
        _database = None
