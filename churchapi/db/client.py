"""
Module Database Client

One lazily created SQLAlchemy async engine per module database.
Constructing a ModuleDatabase never connects; the engine is built on first
use and the first query opens the first connection.
"""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from churchapi.config import Settings, get_settings
from churchapi.db.descriptors import ConnectionDescriptor
from churchapi.db.modules import ModuleKey

logger = structlog.get_logger()


class ModuleDatabase:
    """Engine and session factory bound to a single module's descriptor."""

    def __init__(
        self,
        module: ModuleKey,
        descriptor: ConnectionDescriptor,
        settings: Settings | None = None,
    ) -> None:
        self.module = module
        self.descriptor = descriptor
        self._settings = settings
        self._lock = threading.Lock()
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    def _engine_kwargs(self) -> dict[str, object]:
        settings = self._settings or get_settings()
        engine_kwargs: dict[str, object] = {
            "echo": settings.log_level == "DEBUG",
            "connect_args": self.descriptor.connect_args(),
        }
        if settings.db_pool_mode == "null":
            engine_kwargs["poolclass"] = NullPool
        else:
            engine_kwargs["pool_size"] = max(1, int(settings.db_pool_size))
            engine_kwargs["max_overflow"] = max(0, int(settings.db_pool_max_overflow))
            engine_kwargs["pool_timeout"] = max(1, int(settings.db_pool_timeout_seconds))
            engine_kwargs["pool_recycle"] = max(60, int(settings.db_pool_recycle_seconds))
            engine_kwargs["pool_pre_ping"] = True
        return engine_kwargs

    def _ensure_engine(self) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
        with self._lock:
            if self._engine is None or self._session_factory is None:
                self._engine = create_async_engine(self.descriptor.url(), **self._engine_kwargs())
                self._session_factory = async_sessionmaker(
                    bind=self._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                    autoflush=False,
                )
                logger.info(
                    "Module database engine created",
                    module=self.module.value,
                    url=self.descriptor.redacted,
                )
            return self._engine, self._session_factory

    @property
    def engine(self) -> AsyncEngine:
        """Get the async engine, creating it on first access."""
        return self._ensure_engine()[0]

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._ensure_engine()[1]

    @property
    def has_engine(self) -> bool:
        return self._engine is not None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get an async session on this module's database.

        Usage:
            async with db.session() as session:
                result = await session.execute(...)
        """
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def dispose(self) -> None:
        """Close the connection pool."""
        with self._lock:
            engine = self._engine
            self._engine = None
            self._session_factory = None
        if engine is not None:
            await engine.dispose()
            logger.info("Module database engine closed", module=self.module.value)
