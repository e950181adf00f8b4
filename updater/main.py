"""Command-line entry point: bootstrap the store, reconcile, then run a command."""

from __future__ import annotations

import argparse
import asyncio
import importlib.util
import logging
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from updater.config import Settings
from updater.context import UpdaterContext
from updater.database import create_engine, init_schema
from updater.exceptions import ConfigError, FilesystemError, StoreError, UpdaterError
from updater.schemas.update import Status
from updater.services.host_service import ensure_host
from updater.services.install_service import (
    InstallAll,
    InstallCommand,
    InstallFile,
    InstallOutcome,
    InstallService,
    InstallTarget,
    RetryFailed,
)
from updater.services.query_service import QueryService
from updater.services.reconcile_service import Reconciler

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from updater.schemas.update import FileSummary, UpdateSummary

logger = logging.getLogger(__name__)

UPDATE_NAME_WIDTH = 20
FILE_NAME_WIDTH = 30

STATUS_LABELS = {
    Status.FAILED: "FAILED",
    Status.INSTALLED: "INSTALLED",
    Status.EMPTY: "EMPTY",
    Status.PENDING: "-",
}


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)


def check_dependencies(settings: Settings) -> None:
    """Ensure the database driver named by the URL is importable."""
    if "+aiosqlite" in settings.resolved_database_url() and (
        importlib.util.find_spec("aiosqlite") is None
    ):
        raise ConfigError("aiosqlite is not installed. Install with: pip install aiosqlite")


def ensure_base_path(base_path: Path) -> None:
    """Validate that the base path is an existing, readable directory."""
    if not base_path.exists():
        raise ConfigError(f"Base path '{base_path}' does not exist")
    if not base_path.is_dir():
        raise ConfigError(f"Base path '{base_path}' is not a directory")
    if not os.access(base_path, os.R_OK | os.X_OK):
        raise FilesystemError(f"Base path '{base_path}' is not readable")


def ensure_data_dir(settings: Settings) -> None:
    """Create ``<base_path>/data`` for the default store if it is missing."""
    if settings.database_url:
        return
    if settings.database_path.exists():
        return
    logger.warning("Database '%s' does not exist, creating", settings.database_path)
    try:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemError(f"Cannot create data directory '{settings.data_dir}': {exc}") from exc


def ensure_store_writable(settings: Settings) -> None:
    """Fail when the default store file exists but cannot be written."""
    if settings.database_url:
        return
    db_path = settings.database_path
    if db_path.exists() and not os.access(db_path, os.W_OK):
        raise FilesystemError(f"Database '{db_path}' is not writable")


def format_status_line(item_id: int, name: str, label: str, width: int) -> str:
    """Render ``name.....[LABEL]`` with dots up to *width*, prefixed by the id."""
    padding = "." * max(width - len(name), 0)
    return f"{item_id:>5}  {name}{padding}[{label}]"


def render_updates(updates: Sequence[UpdateSummary]) -> str:
    if not updates:
        return "No updates found"
    return "\n".join(
        format_status_line(u.id, u.name, STATUS_LABELS[u.status], UPDATE_NAME_WIDTH)
        for u in updates
    )


def render_files(files: Sequence[FileSummary]) -> str:
    if not files:
        return "No files found"
    lines: list[str] = []
    for f in files:
        if f.failed:
            label = "FAILED"
        elif f.installed:
            label = "INSTALLED"
        else:
            label = "-"
        lines.append(format_status_line(f.id, f.name, label, FILE_NAME_WIDTH))
    return "\n".join(lines)


class AnnouncingInstaller:
    """Installer that only announces each file; outcomes are reported with ``record``."""

    def install(self, target: InstallTarget) -> InstallOutcome | None:
        print(f"Installing file {target.file_name} for update {target.update_name}: {target.path}")
        return None


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="server-updater",
        description="Track update bundles and their install status on this server",
    )
    parser.add_argument("--base-path", type=Path, help="Directory holding the update folders")
    parser.add_argument("--server-name", help="Host identity (default: hostname)")
    parser.add_argument("--debug", action="store_true", default=None, help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("scan", help="Reconcile the base path and list updates")
    subparsers.add_parser("updates", help="List updates with their status")

    files_parser = subparsers.add_parser("files", help="List the files of an update")
    files_parser.add_argument("update_id", type=int)

    install_all_parser = subparsers.add_parser("install-all", help="Install all files")
    install_all_parser.add_argument("update_id", type=int)

    retry_parser = subparsers.add_parser("retry-failed", help="Retry failed files")
    retry_parser.add_argument("update_id", type=int)

    install_file_parser = subparsers.add_parser("install-file", help="Install one file")
    install_file_parser.add_argument("file_id", type=int)

    record_parser = subparsers.add_parser("record", help="Record an install outcome")
    record_parser.add_argument("file_id", type=int)
    outcome_group = record_parser.add_mutually_exclusive_group(required=True)
    outcome_group.add_argument("--installed", action="store_true")
    outcome_group.add_argument("--failed", action="store_true")

    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Build settings from the environment, with command-line overrides."""
    overrides: dict[str, object] = {}
    if args.base_path is not None:
        overrides["base_path"] = args.base_path
    if args.server_name is not None:
        overrides["server_name"] = args.server_name
    if args.debug is not None:
        overrides["debug"] = args.debug
    try:
        return Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def command_from_args(args: argparse.Namespace) -> InstallCommand | None:
    """Translate an install subcommand into a command value."""
    if args.command == "install-all":
        return InstallAll(update_id=args.update_id)
    if args.command == "retry-failed":
        return RetryFailed(update_id=args.update_id)
    if args.command == "install-file":
        return InstallFile(file_id=args.file_id)
    return None


async def _dispatch(
    args: argparse.Namespace, session: AsyncSession, context: UpdaterContext
) -> None:
    queries = QueryService(session, context)
    installs = InstallService(session, context)

    command = command_from_args(args)
    if command is not None:
        run = await installs.execute(command, AnnouncingInstaller())
        if not run.targets:
            print("Nothing to install")
        return

    if args.command == "files":
        print(render_files(await queries.list_files(args.update_id)))
    elif args.command == "record":
        status = await installs.set_file_result(
            args.file_id, installed=args.installed, failed=args.failed
        )
        print(f"Update status: {STATUS_LABELS[status]}")
    else:
        print(render_updates(await queries.list_updates()))


async def run(settings: Settings, args: argparse.Namespace) -> None:
    """Bootstrap the store, reconcile the base path, then run the requested command."""
    check_dependencies(settings)
    ensure_base_path(settings.base_path)
    ensure_data_dir(settings)

    engine, session_factory = create_engine(settings)
    try:
        try:
            await init_schema(engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to create database schema: {exc}") from exc
        ensure_store_writable(settings)

        async with session_factory() as session:
            try:
                host = await ensure_host(session, settings.resolved_server_name())
            except SQLAlchemyError as exc:
                raise StoreError(f"Failed to register host: {exc}") from exc
            context = UpdaterContext(
                base_path=settings.base_path, host_id=host.id, host_name=host.name
            )
            await Reconciler(session, context).reconcile()
            await _dispatch(args, session, context)
    finally:
        await engine.dispose()


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    args = build_parser().parse_args(argv)
    _configure_logging(bool(args.debug))
    try:
        settings = load_settings(args)
        _configure_logging(settings.debug)
        asyncio.run(run(settings, args))
    except UpdaterError as exc:
        logger.critical("%s", exc)
        return 1
    return 0


def cli_entry() -> None:
    """Console script entry point."""
    sys.exit(main())
