"""
Database Connection Management

Async SQLAlchemy 2.0 engine and session factory wrapped in a `Database`
handle. The application creates one handle at startup, stores it on
`app.state.database` and disposes it at shutdown; request handlers receive
sessions through the `get_db_dependency` FastAPI dependency.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from src.config.settings import DatabaseSettings
from src.database.models import Base

logger = structlog.get_logger(__name__)


class Database:
    """
    Owner of the async engine and its session factory.

    Example:
        database = Database(settings.database.async_url)
        await database.connect()
        async with database.session() as db:
            result = await db.execute(query)
        await database.disconnect()
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "Database":
        return cls(settings.async_url, echo=settings.echo)

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        """
        Get the database engine.

        Raises:
            RuntimeError: If the database is not connected
        """
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call connect() first.")
        return self._engine

    async def connect(self, verify: bool = True) -> AsyncEngine:
        """
        Create the engine and session factory.

        Args:
            verify: Run `SELECT 1` to prove the connection works

        Returns:
            AsyncEngine: The initialized database engine
        """
        if self._engine is not None:
            logger.warning("Database already initialized")
            return self._engine

        engine_config = {
            "echo": self.echo,
            "pool_pre_ping": True,
        }

        if self.url.startswith("sqlite"):
            # In-memory SQLite lives and dies with a single connection
            engine_config["poolclass"] = StaticPool
            engine_config["connect_args"] = {"check_same_thread": False}
        else:
            # AsyncPG handles its own connection pooling internally
            engine_config["poolclass"] = NullPool

        self._engine = create_async_engine(self.url, **engine_config)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        if verify:
            try:
                async with self._engine.begin() as conn:
                    await conn.execute(text("SELECT 1"))
                logger.info("Database connection established", url=self._engine.url.render_as_string())
            except Exception as e:
                logger.error("Failed to connect to database", error=str(e))
                raise

        return self._engine

    async def disconnect(self) -> None:
        """Dispose of the engine and every pooled connection."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connection pool closed")

    async def create_all(self) -> None:
        """Create every table known to the model metadata."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Unit of work.

        Everything executed inside the block commits together when the block
        exits normally and rolls back together when it raises.

        Yields:
            AsyncSession: Database session
        """
        if self._session_factory is None:
            logger.error("Database not initialized when session() called")
            raise RuntimeError("Database not initialized. Call connect() first.")

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

    async def check_health(self) -> dict:
        """
        Check database health status.

        Returns:
            dict: Health status with latency information
        """
        try:
            start = time.perf_counter()
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
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


def get_database(request: Request) -> Database:
    """Database handle owned by the running application."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise RuntimeError("Database not initialized. Application lifespan has not run.")
    return database


async def get_db_dependency(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.

    Example:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db_dependency)):
            ...
    """
    async with get_database(request).session() as session:
        yield session
