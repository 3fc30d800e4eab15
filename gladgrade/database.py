"""
Database access for the portal.

The connection pool lives on an explicitly constructed ``Database`` object
rather than a module-level singleton. The FastAPI lifespan creates one at
start-up, stores it on ``app.state`` and disposes it at shutdown; services
receive it through dependency injection.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Union

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import Executable

logger = logging.getLogger(__name__)

Base = declarative_base()


@dataclass
class QueryResult:
    """Rows and affected row count of a single statement."""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    row_count: int = 0


class Database:
    """
    Owns the async engine (connection pool) and the session factory.

    Usage:
        database = Database.from_settings(settings)
        result = await database.execute("SELECT 1 AS ok")
        async with database.transaction() as session:
            session.add(row)
        await database.dispose()
    """

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        pool_size: int = 20,
        max_overflow: int = 10,
        pool_timeout: int = 10,
        pool_recycle: int = 1800,
    ):
        engine_kwargs: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
        # SQLite (used by the test suite) does not take queue pool options
        if not url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
            )

        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self._sessionmaker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings) -> "Database":
        """Build a Database from application settings."""
        return cls(
            settings.DATABASE_URL,
            echo=settings.DB_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )

    def session(self) -> AsyncSession:
        """Return a new session. The caller owns commit and close."""
        return self._sessionmaker()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Check out a session inside a transaction; commit on exit, roll back on error."""
        async with self._sessionmaker() as session:
            async with session.begin():
                yield session

    async def execute(
        self,
        statement: Union[str, Executable],
        params: Optional[Mapping[str, Any]] = None,
    ) -> QueryResult:
        """
        Execute one parameterized statement in its own transaction.

        Args:
            statement: SQL text with named ``:param`` placeholders, or a
                SQLAlchemy executable
            params: Bound parameter values

        Returns:
            QueryResult with rows as dicts (empty for statements without rows)
        """
        if isinstance(statement, str):
            statement = text(statement)

        async with self.transaction() as session:
            result = await session.execute(statement, params or {})
            rows = [dict(row._mapping) for row in result] if result.returns_rows else []
            return QueryResult(rows=rows, row_count=result.rowcount)

    async def create_all(self) -> None:
        """Create all tables known to the ORM metadata."""
        # Import models so they register on Base.metadata
        import gladgrade.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()
        logger.info("Database connection pool closed")


def get_database(request: Request) -> Database:
    """FastAPI dependency returning the application's Database."""
    return request.app.state.database


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a request-scoped session."""
    async with get_database(request).session() as session:
        yield session
