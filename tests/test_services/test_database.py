"""Tests for database engine and schema management."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from updater.database import create_engine, init_schema
from updater.models.update import File, Update

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from updater.config import Settings


class TestDatabase:
    async def test_engine_connects(self, db_engine: AsyncEngine) -> None:
        async with db_engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            assert result.scalar() == 1

    async def test_store_file_under_data_dir(self, test_settings: Settings) -> None:
        engine, session_factory = create_engine(test_settings)
        try:
            await init_schema(engine)
            async with session_factory() as session:
                result = await session.execute(text("SELECT 42"))
                assert result.scalar() == 42
        finally:
            await engine.dispose()
        assert test_settings.database_path.exists()

    async def test_schema_tables(self, db_engine: AsyncEngine) -> None:
        async with db_engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        assert {"updates", "files", "hosts", "host_updates", "host_files"} <= set(tables)

    async def test_init_schema_is_idempotent(self, db_engine: AsyncEngine) -> None:
        await init_schema(db_engine)
        await init_schema(db_engine)


class TestUniqueness:
    async def test_duplicate_update_name_rejected(self, db_session: AsyncSession) -> None:
        db_session.add(Update(name="2024-01", added_at="2024-01-01T00:00:00+00:00"))
        await db_session.commit()
        db_session.add(Update(name="2024-01", added_at="2024-01-02T00:00:00+00:00"))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    async def test_duplicate_file_insert_is_noop_with_upsert(
        self, db_session: AsyncSession
    ) -> None:
        update = Update(name="2024-01", added_at="2024-01-01T00:00:00+00:00")
        db_session.add(update)
        await db_session.flush()
        stmt = (
            sqlite_insert(File)
            .values(update_id=update.id, name="a", extension="sh", added_at="now")
            .on_conflict_do_nothing(index_elements=[File.name, File.extension, File.update_id])
        )
        await db_session.execute(stmt)
        await db_session.execute(stmt)
        await db_session.commit()
        result = await db_session.execute(text("SELECT COUNT(*) FROM files"))
        assert result.scalar() == 1
