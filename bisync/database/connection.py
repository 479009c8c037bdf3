"""
Database Connection Management

Async SQLAlchemy 2.0 engines for the two stores the sync talks to.
Each store is an explicit ``Database`` object built from its settings
section, so the sync can be pointed at any pair of stores (including
throwaway SQLite files in tests).
"""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional, Union

import structlog
from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bisync.config.settings import DatabaseSettings
from bisync.exceptions import ConnectivityError

logger = structlog.get_logger(__name__)


class Database:
    """
    One relational store: engine, session factory and health checks.

    The engine is created lazily on first use and disposed by ``dispose()``.

    Example:
        bi = Database("bi", "mysql+aiomysql://bi:secret@db/bi")
        await bi.connect()
        async with bi.session() as session:
            await session.execute(stmt)
    """

    def __init__(
        self,
        name: str,
        url: Union[str, URL],
        pool_size: int = 10,
        max_overflow: int = 0,
        pool_timeout: int = 30,
        echo: bool = False,
    ):
        self.name = name
        self.url = make_url(url) if isinstance(url, str) else url
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.pool_timeout = pool_timeout
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @classmethod
    def from_settings(cls, name: str, settings: DatabaseSettings) -> "Database":
        """Build a store from its settings section"""
        return cls(
            name,
            settings.get_url(),
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout,
            echo=settings.echo,
        )

    @property
    def dialect_name(self) -> str:
        """Backend name, e.g. ``mysql``, ``postgresql`` or ``sqlite``"""
        return self.url.get_backend_name()

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._create_engine()
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._create_engine()
        return self._session_factory

    def _create_engine(self) -> None:
        engine_config: Dict[str, Any] = {"echo": self.echo}

        # SQLite picks its own pool and rejects sizing arguments
        if self.dialect_name != "sqlite":
            engine_config.update({
                "pool_size": self.pool_size,
                "max_overflow": self.max_overflow,
                "pool_timeout": self.pool_timeout,
                "pool_pre_ping": True,
            })

        self._engine = create_async_engine(self.url, **engine_config)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def connect(self) -> None:
        """
        Verify the store is reachable.

        Raises:
            ConnectivityError: If ``SELECT 1`` cannot be executed
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(
                "Failed to connect to database",
                store=self.name,
                error=str(e),
            )
            raise ConnectivityError(self.name, e) from e

        logger.info(
            "Database connection established",
            store=self.name,
            host=self.url.host,
            database=self.url.database,
        )

    async def dispose(self) -> None:
        """Close all pooled connections"""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connection pool closed", store=self.name)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Transactional session.

        Commits when the block exits normally, rolls back and re-raises
        otherwise, and always closes the session.

        Yields:
            AsyncSession: Database session
        """
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error(
                "Database session error, rolling back",
                store=self.name,
                error=str(e),
                error_type=type(e).__name__,
            )
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
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            latency_ms = (time.perf_counter() - start) * 1000

            return {
                "status": "healthy",
                "latency_ms": round(latency_ms, 2),
                "pool_size": self.pool_size,
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
            }
