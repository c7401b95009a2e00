"""Async database manager backing the tenant directory."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tenant_gate.common.config import TenantGateSettings, get_settings
from tenant_gate.common.exceptions import DirectoryUnavailableError
from tenant_gate.common.models import Base

# Import all model modules so Base.metadata is complete for create_all().
import tenant_gate.tenants.models  # noqa: F401


def engine_options(settings: TenantGateSettings) -> dict:
    """Engine keyword arguments for the configured tenant store.

    Connecting may not outlast one tenant resolution, and stale pooled
    connections are detected before a lookup runs.
    """
    return {
        "echo": False,
        "pool_pre_ping": True,
        "connect_args": {"timeout": settings.resolution_timeout},
    }


class DatabaseManager:
    """Owns the engine and session factory for the tenants tables."""

    def __init__(self, settings: TenantGateSettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        self.engine = create_async_engine(
            self._settings.db_url, **engine_options(self._settings)
        )
        self._session_factory = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that commits on success and rolls back on error.

        Asking for a session before ``init()`` (or after ``close()``) means
        the tenant store is not available to this process.
        """
        if self._session_factory is None:
            raise DirectoryUnavailableError("Tenant store is not connected")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        if self.engine is None:
            raise RuntimeError("DatabaseManager.init() must run before create_all()")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
