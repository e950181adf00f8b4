"""Reconcile service: mirror the update directory tree into the store.

A pass scans the base path, inserts updates and files seen for the first time,
soft-deletes rows whose directory or file disappeared, seeds the per-host
tracking rows and recomputes rollup status for every scanned update.

Deletion is monotonic: a row marked deleted stays deleted even if its path
reappears, because the unique keys turn the re-insert into a no-op.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from updater.exceptions import FilesystemError, StoreError
from updater.filesystem.scanner import ScannedUpdate, scan_updates
from updater.models.host import HostFile, HostUpdate
from updater.models.update import File, Update
from updater.services.datetime_service import timestamp
from updater.services.filters import not_deleted
from updater.services.status_service import StatusAggregator

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from updater.context import UpdaterContext
    from updater.schemas.update import Status

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """What a reconciliation pass changed."""

    updates_added: list[str] = field(default_factory=list)
    updates_deleted: list[str] = field(default_factory=list)
    files_added: list[str] = field(default_factory=list)  # "update/filename"
    files_deleted: list[str] = field(default_factory=list)
    host_updates_added: int = 0
    host_files_added: int = 0
    statuses: dict[str, Status] = field(default_factory=dict)

    @property
    def mutation_count(self) -> int:
        """Rows inserted or soft-deleted; rollup rewrites are not counted."""
        return (
            len(self.updates_added)
            + len(self.updates_deleted)
            + len(self.files_added)
            + len(self.files_deleted)
            + self.host_updates_added
            + self.host_files_added
        )


def ensure_writable(scanned_update: ScannedUpdate) -> None:
    """Raise FilesystemError if an update directory is not writable."""
    if not os.access(scanned_update.path, os.W_OK):
        raise FilesystemError(f"Directory '{scanned_update.path}' is not writable")


class Reconciler:
    """Synchronizes the base path with the store for the context host."""

    def __init__(self, session: AsyncSession, context: UpdaterContext) -> None:
        self.session = session
        self.context = context
        self.aggregator = StatusAggregator(session, context)

    async def reconcile(self) -> ReconcileReport:
        """Run one pass and commit it.

        The whole tree is scanned and checked before the store is touched, so a
        FilesystemError on any update aborts the pass without partial writes.
        Store failures roll the pass back and surface as StoreError.
        """
        scanned = scan_updates(self.context.base_path)
        for scanned_update in scanned:
            ensure_writable(scanned_update)

        try:
            report = await self._apply(scanned)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(f"Reconciliation failed: {exc}") from exc

        logger.info(
            "Reconciled %d updates: +%d/-%d updates, +%d/-%d files",
            len(scanned),
            len(report.updates_added),
            len(report.updates_deleted),
            len(report.files_added),
            len(report.files_deleted),
        )
        return report

    async def _apply(self, scanned: list[ScannedUpdate]) -> ReconcileReport:
        report = ReconcileReport()
        update_ids = await self._sync_updates(scanned, report)

        result = await self.session.execute(
            select(HostUpdate.update_id).where(HostUpdate.host_id == self.context.host_id)
        )
        tracked_updates = set(result.scalars().all())

        for scanned_update in scanned:
            update_id = update_ids[scanned_update.name]
            file_ids = await self._sync_files(scanned_update, update_id, report)
            if update_id not in tracked_updates:
                await self._seed_host_update(update_id)
                report.host_updates_added += 1
            report.host_files_added += await self._seed_host_files(file_ids)

        statuses = await self.aggregator.recompute_many(
            [update_ids[scanned_update.name] for scanned_update in scanned]
        )
        for scanned_update in scanned:
            report.statuses[scanned_update.name] = statuses[update_ids[scanned_update.name]]
        return report

    async def _sync_updates(
        self, scanned: list[ScannedUpdate], report: ReconcileReport
    ) -> dict[str, int]:
        """Insert new updates, soft-delete vanished ones; return ids of scanned names."""
        result = await self.session.execute(select(Update))
        existing = {row.name: row for row in result.scalars().all()}
        scanned_names = [scanned_update.name for scanned_update in scanned]

        for name in scanned_names:
            if name in existing:
                continue
            logger.info("Adding update %r to database", name)
            await self.session.execute(
                sqlite_insert(Update)
                .values(name=name, added_at=timestamp())
                .on_conflict_do_nothing(index_elements=[Update.name])
            )
            report.updates_added.append(name)

        present = set(scanned_names)
        vanished = [
            row for name, row in existing.items() if name not in present and not row.deleted
        ]
        if vanished:
            for row in vanished:
                logger.info("Marking update %r as deleted", row.name)
                report.updates_deleted.append(row.name)
            await self.session.execute(
                update(Update)
                .where(Update.id.in_([row.id for row in vanished]), not_deleted(Update.deleted))
                .values(deleted=True)
            )

        if not scanned_names:
            return {}
        result = await self.session.execute(
            select(Update.name, Update.id).where(Update.name.in_(scanned_names))
        )
        return {name: update_id for name, update_id in result.all()}

    async def _sync_files(
        self, scanned_update: ScannedUpdate, update_id: int, report: ReconcileReport
    ) -> list[int]:
        """Insert new files, soft-delete vanished ones; return ids of scanned files."""
        result = await self.session.execute(select(File).where(File.update_id == update_id))
        existing = {(row.name, row.extension): row for row in result.scalars().all()}
        scanned_keys = {scanned_file.key for scanned_file in scanned_update.files}

        for scanned_file in scanned_update.files:
            if scanned_file.key in existing:
                continue
            logger.info(
                "Adding file '%s/%s' to database", scanned_update.name, scanned_file.display_name
            )
            await self.session.execute(
                sqlite_insert(File)
                .values(
                    update_id=update_id,
                    name=scanned_file.name,
                    extension=scanned_file.extension,
                    added_at=timestamp(),
                )
                .on_conflict_do_nothing(
                    index_elements=[File.name, File.extension, File.update_id]
                )
            )
            report.files_added.append(f"{scanned_update.name}/{scanned_file.display_name}")

        vanished = [
            row for key, row in existing.items() if key not in scanned_keys and not row.deleted
        ]
        if vanished:
            for row in vanished:
                logger.info(
                    "Marking file '%s/%s' as deleted", scanned_update.name, row.display_name
                )
                report.files_deleted.append(f"{scanned_update.name}/{row.display_name}")
            await self.session.execute(
                update(File)
                .where(File.id.in_([row.id for row in vanished]), not_deleted(File.deleted))
                .values(deleted=True)
            )

        result = await self.session.execute(
            select(File.id, File.name, File.extension).where(File.update_id == update_id)
        )
        return [
            file_id
            for file_id, name, extension in result.all()
            if (name, extension) in scanned_keys
        ]

    async def _seed_host_update(self, update_id: int) -> None:
        await self.session.execute(
            sqlite_insert(HostUpdate)
            .values(
                host_id=self.context.host_id,
                update_id=update_id,
                installed=False,
                failed=False,
                empty=False,
            )
            .on_conflict_do_nothing(index_elements=[HostUpdate.host_id, HostUpdate.update_id])
        )

    async def _seed_host_files(self, file_ids: list[int]) -> int:
        """Create missing (host, file) rows as not installed, not failed."""
        if not file_ids:
            return 0
        result = await self.session.execute(
            select(HostFile.file_id).where(
                HostFile.host_id == self.context.host_id, HostFile.file_id.in_(file_ids)
            )
        )
        tracked = set(result.scalars().all())
        missing = [file_id for file_id in file_ids if file_id not in tracked]
        for file_id in missing:
            await self.session.execute(
                sqlite_insert(HostFile)
                .values(
                    host_id=self.context.host_id, file_id=file_id, installed=False, failed=False
                )
                .on_conflict_do_nothing(index_elements=[HostFile.host_id, HostFile.file_id])
            )
        return len(missing)
