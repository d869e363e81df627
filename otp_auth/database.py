"""
Database Module
===============
Async SQLAlchemy engine and session handling for the SQL-backed stores.
"""

from typing import AsyncIterator, Optional
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.orm import DeclarativeBase
from contextlib import asynccontextmanager
import structlog

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


class Database:
    """
    Owns one async engine and its session factory.

    Usage:
        db = Database("postgresql+asyncpg://...")
        await db.create_schema()

        async with db.session() as session:
            ...

        await db.close()
    """

    def __init__(
        self,
        database_url: str,
        pool_size: int = 10,
        max_overflow: int = 20,
        pool_pre_ping: bool = True,
        echo: bool = False,
    ):
        """
        Args:
            database_url: Async connection string (postgresql+asyncpg://..., sqlite+aiosqlite://...)
            pool_size: Connection pool size (ignored for SQLite)
            max_overflow: Max overflow connections (ignored for SQLite)
            pool_pre_ping: Enable connection health checks
            echo: Log SQL statements
        """
        engine_kwargs = {"pool_pre_ping": pool_pre_ping, "echo": echo}
        if not database_url.startswith("sqlite"):
            engine_kwargs["pool_size"] = pool_size
            engine_kwargs["max_overflow"] = max_overflow

        self._engine: Optional[AsyncEngine] = create_async_engine(database_url, **engine_kwargs)
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database engine initialized", dialect=self._engine.dialect.name)

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database engine is closed.")
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Provide a session that commits on success and rolls back on error.

        Usage:
            async with db.session() as session:
                result = await session.execute(...)
        """
        if self._session_factory is None:
            raise RuntimeError("Database engine is closed.")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_schema(self) -> None:
        """Create tables that do not exist yet."""
        # table modules must be imported so they register on Base.metadata
        from .stores import sql  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ready")

    async def close(self) -> None:
        """Dispose the engine. Call during application shutdown."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database engine closed")
