"""Database Session Manager - async connection pool with automatic rollback and health checks.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - Connection pool uses pool_pre_ping for stale connection detection
    - All SQLAlchemy exceptions mapped to DatabaseError (core/errors.py)
    - DatabasePool builds at most one DatabaseSessionManager per process at a time;
      concurrent acquire_or_init() callers all receive the same instance

Design Decisions:
    - DatabasePool lives on app.state and is injected, instead of a module-level
      handle mutated on first use
    - Lazy init behind an asyncio.Lock: the first request (or the lifespan) pays
      the engine creation, and racing callers wait for that single attempt
    - expire_on_commit=False: prevents lazy-load issues in async context
"""

import asyncio
import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

from certbridge.core.errors import DatabaseError

logger = logging.getLogger(__name__)


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        self.engine = create_async_engine(
            database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}")
            raise DatabaseError("Integrity constraint violated", "commit")
        except OperationalError as e:
            await session.rollback()
            logger.error(f"DB operational error: {e}")
            raise DatabaseError("Connection or operational error", "execute")
        except DBAPIError as e:
            await session.rollback()
            logger.error(f"DB driver error: {e}")
            raise DatabaseError("Database driver error", "query")
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise DatabaseError("Database operation failed", "unknown")
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


class DatabasePool:
    """Process-wide, lazily initialized handle to the record store database."""

    def __init__(self, factory: Callable[[], DatabaseSessionManager]):
        self._factory = factory
        self._manager: DatabaseSessionManager | None = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_url(cls, database_url: str, **kwargs) -> "DatabasePool":
        return cls(lambda: DatabaseSessionManager(database_url, **kwargs))

    @property
    def initialized(self) -> bool:
        return self._manager is not None

    async def acquire_or_init(self) -> DatabaseSessionManager:
        """Return the shared manager, creating it on first use."""
        if self._manager is not None:
            return self._manager
        async with self._lock:
            if self._manager is None:
                logger.info("Initializing database connection pool")
                self._manager = self._factory()
            return self._manager

    async def shutdown(self) -> None:
        """Dispose the engine; a later acquire_or_init() starts a fresh one."""
        async with self._lock:
            manager, self._manager = self._manager, None
        if manager is not None:
            await manager.dispose()
            logger.info("Database connection pool disposed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        manager = await self.acquire_or_init()
        async with manager.session() as session:
            yield session


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    pool: DatabasePool | None = getattr(request.app.state, "db_pool", None)
    if pool is None:
        raise RuntimeError("Database not initialized")
    async with pool.session() as session:
        yield session
