"""Async SQLite store for updates, files and per-host install state."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from updater.models.base import Base

if TYPE_CHECKING:
    from updater.config import Settings


def create_engine(settings: Settings) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Open the update store named by the settings.

    Returns the engine and a session factory whose sessions do not expire
    rows on commit. SQL is echoed when debug logging is on.
    """
    engine = create_async_engine(settings.resolved_database_url(), echo=settings.debug)
    return engine, async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_schema(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
