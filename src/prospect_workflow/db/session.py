from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from prospect_workflow.db.base import Base


DEFAULT_SQLITE_URL = "sqlite+aiosqlite:///./prospect_workflow.db"


class Database:
    """Owns the async engine and session factory shared by the SQL stores."""

    def __init__(
        self,
        url: Optional[str] = None,
        engine_kwargs: Optional[dict[str, Any]] = None,
    ) -> None:
        self.url = url or DEFAULT_SQLITE_URL
        kwargs: dict[str, Any] = {"echo": False}
        if self.url.endswith(":memory:"):
            kwargs.update(
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        if engine_kwargs:
            kwargs.update(engine_kwargs)
        self.engine: AsyncEngine = create_async_engine(self.url, **kwargs)
        self.sessionmaker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    async def init_db(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.sessionmaker() as session:
            yield session

    async def dispose(self) -> None:
        await self.engine.dispose()


__all__ = ["DEFAULT_SQLITE_URL", "Database"]
