"""Install service: command surface for the installer collaborator.

The core never performs an installation itself. It resolves which files a
command targets, hands each one to an :class:`Installer`, and records the
outcome the installer reports, re-aggregating the owning update after every
write-back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, assert_never

from sqlalchemy import and_, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from updater.exceptions import NotFoundError, StoreError
from updater.models.host import HostFile
from updater.models.update import File, Update
from updater.services.filters import not_deleted
from updater.services.query_service import display_name_expr
from updater.services.status_service import StatusAggregator

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql import Select

    from updater.context import UpdaterContext
    from updater.schemas.update import Status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallAll:
    """Install every file of an update."""

    update_id: int


@dataclass(frozen=True)
class RetryFailed:
    """Re-install the files of an update that failed on this host."""

    update_id: int


@dataclass(frozen=True)
class InstallFile:
    """Install a single file."""

    file_id: int


InstallCommand = InstallAll | RetryFailed | InstallFile


@dataclass(frozen=True)
class InstallTarget:
    """A file handed to the installer."""

    file_id: int
    file_name: str
    update_id: int
    update_name: str
    path: Path


@dataclass(frozen=True)
class InstallOutcome:
    """Result reported by the installer for one file."""

    installed: bool
    failed: bool

    @classmethod
    def success(cls) -> InstallOutcome:
        return cls(installed=True, failed=False)

    @classmethod
    def failure(cls) -> InstallOutcome:
        return cls(installed=False, failed=True)


class Installer(Protocol):
    """External collaborator that performs the install action."""

    def install(self, target: InstallTarget) -> InstallOutcome | None:
        """Install *target*; return None when no outcome is known yet."""
        ...


@dataclass
class InstallRun:
    """Summary of an executed command."""

    command: InstallCommand
    targets: list[InstallTarget] = field(default_factory=list)
    outcomes: dict[int, InstallOutcome] = field(default_factory=dict)
    statuses: dict[int, Status] = field(default_factory=dict)  # update_id -> rollup


class InstallService:
    """Resolves commands to files and records installer outcomes for one host."""

    def __init__(self, session: AsyncSession, context: UpdaterContext) -> None:
        self.session = session
        self.context = context
        self.aggregator = StatusAggregator(session, context)

    def _target_query(self) -> Select[tuple[int, str, int, str]]:
        display_name = display_name_expr().label("display_name")
        return (
            select(File.id, display_name, Update.id, Update.name)
            .join(Update, File.update_id == Update.id)
            .where(not_deleted(File.deleted), not_deleted(Update.deleted))
            .order_by(display_name)
        )

    async def _require_update(self, update_id: int) -> None:
        update = await self.session.get(Update, update_id)
        if update is None or update.deleted:
            raise NotFoundError(f"Update {update_id} not found")

    async def resolve_targets(self, command: InstallCommand) -> list[InstallTarget]:
        """List the files *command* applies to, ordered by display name."""
        match command:
            case InstallAll(update_id=update_id):
                await self._require_update(update_id)
                stmt = self._target_query().where(File.update_id == update_id)
            case RetryFailed(update_id=update_id):
                await self._require_update(update_id)
                stmt = (
                    self._target_query()
                    .join(
                        HostFile,
                        and_(
                            HostFile.file_id == File.id,
                            HostFile.host_id == self.context.host_id,
                        ),
                    )
                    .where(File.update_id == update_id, HostFile.failed.is_(True))
                )
            case InstallFile(file_id=file_id):
                stmt = self._target_query().where(File.id == file_id)
            case _:
                assert_never(command)

        result = await self.session.execute(stmt)
        targets = [
            InstallTarget(
                file_id=file_id,
                file_name=file_name,
                update_id=update_id,
                update_name=update_name,
                path=self.context.base_path / update_name / file_name,
            )
            for file_id, file_name, update_id, update_name in result.all()
        ]
        if isinstance(command, InstallFile) and not targets:
            raise NotFoundError(f"File {command.file_id} not found")
        return targets

    async def set_file_result(self, file_id: int, *, installed: bool, failed: bool) -> Status:
        """Record the installer's outcome for a file and re-aggregate its update.

        Returns the new rollup status of the owning update.
        """
        if installed and failed:
            raise ValueError("A file cannot be both installed and failed")
        file = await self.session.get(File, file_id)
        if file is None:
            raise NotFoundError(f"File {file_id} not found")

        stmt = sqlite_insert(HostFile).values(
            host_id=self.context.host_id,
            file_id=file_id,
            installed=installed,
            failed=failed,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[HostFile.host_id, HostFile.file_id],
            set_={"installed": stmt.excluded.installed, "failed": stmt.excluded.failed},
        )
        try:
            await self.session.execute(stmt)
            status = await self.aggregator.recompute(file.update_id)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(f"Failed to record result for file {file_id}: {exc}") from exc

        logger.info(
            "Recorded file %s on host %s: installed=%s failed=%s",
            file.display_name,
            self.context.host_name,
            installed,
            failed,
        )
        return status

    async def execute(self, command: InstallCommand, installer: Installer) -> InstallRun:
        """Run *command* through *installer*, recording each reported outcome."""
        run = InstallRun(command=command, targets=await self.resolve_targets(command))
        for target in run.targets:
            logger.info("Installing %s/%s", target.update_name, target.file_name)
            outcome = installer.install(target)
            if outcome is None:
                continue
            run.outcomes[target.file_id] = outcome
            run.statuses[target.update_id] = await self.set_file_result(
                target.file_id, installed=outcome.installed, failed=outcome.failed
            )
        return run
