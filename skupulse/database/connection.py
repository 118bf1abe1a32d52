"""
Database Connection Management

Async SQLAlchemy engine and session factory wrapped in an explicit handle.
The handle is created once per process and passed to whatever needs the
store, so tests can hand the sync routine an in-memory database.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from skupulse.config.settings import DatabaseSettings
from skupulse.database.models import Base

logger = structlog.get_logger(__name__)


class Database:
    """
    Connection pool handle.

    Example:
        db = Database.from_settings(settings.database)
        await db.connect()
        async with db.session() as session:
            await session.execute(query)
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_url(cls, url: str, echo: bool = False, **engine_kwargs) -> "Database":
        """Create a handle for a connection string"""
        engine_config = {"echo": echo, **engine_kwargs}
        parsed = make_url(url)
        if parsed.get_backend_name() == "sqlite":
            # One shared connection, otherwise every checkout sees a fresh :memory: db
            engine_config.setdefault("poolclass", StaticPool)
            engine_config.setdefault("connect_args", {"check_same_thread": False})
        else:
            engine_config.setdefault("pool_pre_ping", True)
        return cls(create_async_engine(url, **engine_config))

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "Database":
        """Create a handle from the database settings section"""
        url = settings.async_url
        if not url:
            raise RuntimeError("DATABASE_URL is not set")
        kwargs = {}
        if not url.startswith("sqlite"):
            kwargs.update(pool_size=settings.pool_size, max_overflow=settings.max_overflow)
        return cls.from_url(url, echo=settings.echo, **kwargs)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    async def connect(self) -> None:
        """
        Verify the store is reachable.

        Raises:
            Exception: Driver error when the connection cannot be established
        """
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info(
                "Database connection established",
                dialect=self.dialect,
                database=self.engine.url.database,
            )
        except Exception as e:
            logger.error("Failed to connect to database", error=str(e))
            raise

    async def create_all(self) -> None:
        """Create any missing tables"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get a database session from the pool.

        Commits when the block exits cleanly, rolls back and re-raises
        otherwise.

        Yields:
            AsyncSession: Database session
        """
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error("Database session error, rolling back", error=str(e), error_type=type(e).__name__)
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health(self) -> dict:
        """
        Check database health status.

        Returns:
            dict: Health status with latency information
        """
        try:
            start = time.perf_counter()
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            latency_ms = (time.perf_counter() - start) * 1000
            return {
                "status": "healthy",
                "latency_ms": round(latency_ms, 2),
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
            }

    async def dispose(self) -> None:
        """Close all pooled connections"""
        await self.engine.dispose()
        logger.info("Database connection pool closed")


async def open_database(settings: DatabaseSettings, create_tables: bool = True) -> Database:
    """Create, verify and optionally migrate a database handle"""
    db = Database.from_settings(settings)
    await db.connect()
    if create_tables:
        await db.create_all()
    return db


def session_dialect(session: AsyncSession) -> str:
    """Dialect name of the engine a session is bound to"""
    return session.get_bind().dialect.name
