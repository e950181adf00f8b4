"""Query service: read-only listings of updates and files for a host."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import and_, case, false, func, select

from updater.exceptions import NotFoundError
from updater.models.host import HostFile, HostUpdate
from updater.models.update import File, Update
from updater.schemas.update import FileSummary, UpdateSummary
from updater.services.filters import not_deleted
from updater.services.status_service import status_from_flags

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql.elements import ColumnElement

    from updater.context import UpdaterContext


def display_name_expr() -> ColumnElement[str]:
    """SQL expression for ``name.extension`` (or ``name`` without an extension)."""
    return case(
        (
            and_(File.extension.is_not(None), File.extension != ""),
            File.name + "." + File.extension,
        ),
        else_=File.name,
    )


class QueryService:
    """Listings consumed by the UI and installer collaborators."""

    def __init__(self, session: AsyncSession, context: UpdaterContext) -> None:
        self.session = session
        self.context = context

    async def list_updates(self) -> list[UpdateSummary]:
        """Non-deleted updates with their rollup status, newest name first."""
        stmt = (
            select(
                Update.id,
                Update.name,
                func.coalesce(HostUpdate.installed, false()),
                func.coalesce(HostUpdate.failed, false()),
                func.coalesce(HostUpdate.empty, false()),
            )
            .outerjoin(
                HostUpdate,
                and_(
                    HostUpdate.update_id == Update.id,
                    HostUpdate.host_id == self.context.host_id,
                ),
            )
            .where(not_deleted(Update.deleted))
            .order_by(Update.name.desc())
        )
        result = await self.session.execute(stmt)
        return [
            UpdateSummary(
                id=update_id,
                name=name,
                status=status_from_flags(bool(installed), bool(failed), bool(empty)),
            )
            for update_id, name, installed, failed, empty in result.all()
        ]

    async def get_update(self, update_id: int) -> Update:
        """Fetch a non-deleted update or raise NotFoundError."""
        update = await self.session.get(Update, update_id)
        if update is None or update.deleted:
            raise NotFoundError(f"Update {update_id} not found")
        return update

    async def list_files(self, update_id: int) -> list[FileSummary]:
        """Non-deleted files of an update with this host's outcome, by display name."""
        await self.get_update(update_id)
        display_name = display_name_expr().label("display_name")
        stmt = (
            select(
                File.id,
                display_name,
                func.coalesce(HostFile.installed, false()),
                func.coalesce(HostFile.failed, false()),
            )
            .outerjoin(
                HostFile,
                and_(
                    HostFile.file_id == File.id,
                    HostFile.host_id == self.context.host_id,
                ),
            )
            .where(File.update_id == update_id, not_deleted(File.deleted))
            .order_by(display_name)
        )
        result = await self.session.execute(stmt)
        return [
            FileSummary(id=file_id, name=name, installed=bool(installed), failed=bool(failed))
            for file_id, name, installed, failed in result.all()
        ]
