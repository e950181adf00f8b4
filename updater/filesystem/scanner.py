"""Read-only scanner for update directories under the base path."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from updater.config import DATA_DIR_NAME
from updater.exceptions import FilesystemError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScannedFile:
    """A file observed inside an update directory."""

    name: str
    extension: str

    @property
    def key(self) -> tuple[str, str]:
        return (self.name, self.extension)

    @property
    def display_name(self) -> str:
        if self.extension:
            return f"{self.name}.{self.extension}"
        return self.name


@dataclass(frozen=True)
class ScannedUpdate:
    """An update directory and the files directly inside it."""

    name: str
    path: Path
    files: tuple[ScannedFile, ...]


def split_extension(filename: str) -> tuple[str, str]:
    """Split a basename at its last dot.

    ``a.sh`` -> ``("a", "sh")``, ``archive.tar.gz`` -> ``("archive.tar", "gz")``,
    ``README`` -> ``("README", "")``.
    """
    name, sep, extension = filename.rpartition(".")
    if not sep:
        return filename, ""
    return name, extension


def _is_hidden(name: str) -> bool:
    return name.startswith(".")


def _ensure_readable_dir(path: Path, what: str) -> None:
    if not path.exists():
        raise FilesystemError(f"{what} '{path}' does not exist")
    if not path.is_dir():
        raise FilesystemError(f"{what} '{path}' is not a directory")
    if not os.access(path, os.R_OK | os.X_OK):
        raise FilesystemError(f"{what} '{path}' is not readable")


def discover_update_dirs(base_path: Path) -> list[Path]:
    """List update directories: immediate subdirectories except ``data`` and hidden ones."""
    _ensure_readable_dir(base_path, "Base path")
    try:
        entries = list(base_path.iterdir())
    except OSError as exc:
        raise FilesystemError(f"Cannot list base path '{base_path}': {exc}") from exc
    return sorted(
        (
            entry
            for entry in entries
            if entry.is_dir() and entry.name != DATA_DIR_NAME and not _is_hidden(entry.name)
        ),
        key=lambda p: p.name,
    )


def list_update_files(update_dir: Path) -> tuple[ScannedFile, ...]:
    """List regular, non-hidden files directly inside an update directory."""
    _ensure_readable_dir(update_dir, "Update directory")
    try:
        filenames = sorted(
            entry.name
            for entry in update_dir.iterdir()
            if entry.is_file() and not _is_hidden(entry.name)
        )
    except OSError as exc:
        raise FilesystemError(f"Cannot list update directory '{update_dir}': {exc}") from exc

    files: dict[tuple[str, str], ScannedFile] = {}
    for filename in filenames:
        name, extension = split_extension(filename)
        scanned = ScannedFile(name=name, extension=extension)
        if scanned.key in files:
            # "foo." and "foo" both split to ("foo", "")
            logger.warning(
                "Ignoring %s/%s: same name and extension as an earlier file",
                update_dir.name,
                filename,
            )
            continue
        files[scanned.key] = scanned
    return tuple(files.values())


def scan_updates(base_path: Path) -> list[ScannedUpdate]:
    """Scan the base path into an ordered listing of updates and their files.

    The result is sorted by update name and then by filename, so repeated scans
    of an unchanged tree are identical. Raises FilesystemError on the first
    directory that cannot be read.
    """
    updates: list[ScannedUpdate] = []
    for update_dir in discover_update_dirs(base_path):
        updates.append(
            ScannedUpdate(
                name=update_dir.name,
                path=update_dir,
                files=list_update_files(update_dir),
            )
        )
    logger.debug("Scanned %d updates under %s", len(updates), base_path)
    return updates
