"""Status service: per-host rollup of file install outcomes into update status."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from updater.exceptions import NotFoundError
from updater.models.host import HostFile, HostUpdate
from updater.models.update import File, Update
from updater.schemas.update import Status
from updater.services.filters import not_deleted

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql.elements import ColumnElement

    from updater.context import UpdaterContext

logger = logging.getLogger(__name__)


def compute_status(file_count: int, failed_count: int, installed_count: int) -> Status:
    """Derive the rollup status from counts over the non-deleted files of an update.

    Precedence is EMPTY > FAILED > INSTALLED > PENDING.
    """
    if file_count == 0:
        return Status.EMPTY
    if failed_count > 0:
        return Status.FAILED
    if installed_count >= file_count:
        return Status.INSTALLED
    return Status.PENDING


def status_flags(status: Status) -> tuple[bool, bool, bool]:
    """Map a status to the stored ``(installed, failed, empty)`` booleans."""
    return (
        status is Status.INSTALLED,
        status is Status.FAILED,
        status is Status.EMPTY,
    )


def status_from_flags(installed: bool | None, failed: bool | None, empty: bool | None) -> Status:
    """Inverse of :func:`status_flags`; missing rows read as PENDING."""
    if empty:
        return Status.EMPTY
    if failed:
        return Status.FAILED
    if installed:
        return Status.INSTALLED
    return Status.PENDING


class StatusAggregator:
    """Recomputes HostUpdate rows for the context host."""

    def __init__(self, session: AsyncSession, context: UpdaterContext) -> None:
        self.session = session
        self.context = context

    async def _count_files(self, update_id: int, *conditions: ColumnElement[bool]) -> int:
        stmt = (
            select(func.count(File.id))
            .select_from(File)
            .where(File.update_id == update_id, not_deleted(File.deleted))
        )
        if conditions:
            stmt = stmt.join(
                HostFile,
                (HostFile.file_id == File.id) & (HostFile.host_id == self.context.host_id),
            ).where(*conditions)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def recompute(self, update_id: int) -> Status:
        """Recompute and store the rollup status of one update.

        Overwrites the three flags of the (host, update) row, creating the row
        if needed. Does not commit.
        """
        if await self.session.get(Update, update_id) is None:
            raise NotFoundError(f"Update {update_id} not found")

        file_count = await self._count_files(update_id)
        failed_count = await self._count_files(update_id, HostFile.failed.is_(True))
        installed_count = await self._count_files(update_id, HostFile.installed.is_(True))
        status = compute_status(file_count, failed_count, installed_count)

        installed, failed, empty = status_flags(status)
        stmt = sqlite_insert(HostUpdate).values(
            host_id=self.context.host_id,
            update_id=update_id,
            installed=installed,
            failed=failed,
            empty=empty,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[HostUpdate.host_id, HostUpdate.update_id],
            set_={
                "installed": stmt.excluded.installed,
                "failed": stmt.excluded.failed,
                "empty": stmt.excluded.empty,
            },
        )
        await self.session.execute(stmt)
        logger.debug(
            "Update %d on host %s: %s (%d files, %d failed, %d installed)",
            update_id,
            self.context.host_name,
            status,
            file_count,
            failed_count,
            installed_count,
        )
        return status

    async def recompute_many(self, update_ids: list[int]) -> dict[int, Status]:
        """Recompute several updates, returning their statuses by id."""
        statuses: dict[int, Status] = {}
        for update_id in update_ids:
            statuses[update_id] = await self.recompute(update_id)
        return statuses
