"""Shared test fixtures for the server updater."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from updater.config import Settings
from updater.context import UpdaterContext
from updater.database import init_schema
from updater.models.host import HostFile, HostUpdate
from updater.models.update import File, Update
from updater.services.host_service import ensure_host

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

TEST_HOST = "test-host"


def write_update(base_path: Path, name: str, *filenames: str) -> Path:
    """Create an update directory containing empty files."""
    update_dir = base_path / name
    update_dir.mkdir(exist_ok=True)
    for filename in filenames:
        (update_dir / filename).write_text(f"# {filename}\n")
    return update_dir


async def update_row(session: AsyncSession, name: str) -> tuple[int, bool | None]:
    """Return (id, deleted) of an update, read straight from the store."""
    result = await session.execute(
        select(Update.id, Update.deleted).where(Update.name == name)
    )
    update_id, deleted = result.one()
    return update_id, deleted


async def file_row(
    session: AsyncSession, update_name: str, name: str, extension: str
) -> tuple[int, bool | None]:
    """Return (id, deleted) of a file, read straight from the store."""
    result = await session.execute(
        select(File.id, File.deleted)
        .join(Update, File.update_id == Update.id)
        .where(Update.name == update_name, File.name == name, File.extension == extension)
    )
    file_id, deleted = result.one()
    return file_id, deleted


async def host_file_flags(
    session: AsyncSession, host_id: int, file_id: int
) -> tuple[bool, bool]:
    """Return (installed, failed) of a (host, file) row."""
    result = await session.execute(
        select(HostFile.installed, HostFile.failed).where(
            HostFile.host_id == host_id, HostFile.file_id == file_id
        )
    )
    installed, failed = result.one()
    return bool(installed), bool(failed)


async def host_update_flags(
    session: AsyncSession, host_id: int, update_id: int
) -> tuple[bool, bool, bool]:
    """Return (installed, failed, empty) of a (host, update) row."""
    result = await session.execute(
        select(HostUpdate.installed, HostUpdate.failed, HostUpdate.empty).where(
            HostUpdate.host_id == host_id, HostUpdate.update_id == update_id
        )
    )
    installed, failed, empty = result.one()
    return bool(installed), bool(failed), bool(empty)


@pytest.fixture
def base_path(tmp_path: Path) -> Path:
    """Create a temporary base path with the reserved data directory."""
    base = tmp_path / "update-files"
    base.mkdir()
    (base / "data").mkdir()
    return base


@pytest.fixture
def test_settings(base_path: Path) -> Settings:
    """Create test settings pointing at the temporary base path."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        base_path=base_path,
        server_name=TEST_HOST,
        debug=False,
    )


@pytest.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create a test database engine with the schema in place."""
    engine = create_async_engine(
        test_settings.resolved_database_url(),
        echo=False,
    )
    await init_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(
    db_engine: AsyncEngine,
) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
async def context(db_session: AsyncSession, base_path: Path) -> UpdaterContext:
    """Register the test host and build the run context."""
    host = await ensure_host(db_session, TEST_HOST)
    return UpdaterContext(base_path=base_path, host_id=host.id, host_name=host.name)
