"""Tests for the update directory scanner."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from tests.conftest import write_update
from updater.exceptions import FilesystemError
from updater.filesystem.scanner import (
    ScannedFile,
    discover_update_dirs,
    list_update_files,
    scan_updates,
    split_extension,
)


class TestSplitExtension:
    def test_simple(self) -> None:
        assert split_extension("a.sh") == ("a", "sh")

    def test_splits_at_last_dot(self) -> None:
        assert split_extension("archive.tar.gz") == ("archive.tar", "gz")

    def test_no_extension(self) -> None:
        assert split_extension("README") == ("README", "")

    def test_trailing_dot(self) -> None:
        assert split_extension("notes.") == ("notes", "")


class TestScannedFile:
    def test_display_name_with_extension(self) -> None:
        assert ScannedFile("b", "conf").display_name == "b.conf"

    def test_display_name_without_extension(self) -> None:
        assert ScannedFile("Makefile", "").display_name == "Makefile"


class TestDiscoverUpdateDirs:
    def test_excludes_data_directory(self, base_path: Path) -> None:
        write_update(base_path, "2024-01")
        names = [p.name for p in discover_update_dirs(base_path)]
        assert names == ["2024-01"]

    def test_excludes_hidden_directories_and_plain_files(self, base_path: Path) -> None:
        write_update(base_path, "2024-02")
        (base_path / ".git").mkdir()
        (base_path / "notes.txt").write_text("not an update")
        names = [p.name for p in discover_update_dirs(base_path)]
        assert names == ["2024-02"]

    def test_sorted_by_name(self, base_path: Path) -> None:
        for name in ("2024-03", "2023-12", "2024-01"):
            write_update(base_path, name)
        names = [p.name for p in discover_update_dirs(base_path)]
        assert names == ["2023-12", "2024-01", "2024-03"]

    def test_missing_base_path_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FilesystemError, match="does not exist"):
            discover_update_dirs(tmp_path / "missing")

    def test_base_path_is_file_raises(self, tmp_path: Path) -> None:
        target = tmp_path / "file"
        target.write_text("x")
        with pytest.raises(FilesystemError, match="not a directory"):
            discover_update_dirs(target)

    def test_unreadable_base_path_raises(self, base_path: Path) -> None:
        with patch("updater.filesystem.scanner.os.access", return_value=False):
            with pytest.raises(FilesystemError, match="not readable"):
                discover_update_dirs(base_path)


class TestListUpdateFiles:
    def test_lists_files_sorted(self, base_path: Path) -> None:
        update_dir = write_update(base_path, "2024-01", "b.conf", "a.sh")
        files = list_update_files(update_dir)
        assert [f.display_name for f in files] == ["a.sh", "b.conf"]
        assert files[0] == ScannedFile("a", "sh")

    def test_skips_hidden_files(self, base_path: Path) -> None:
        update_dir = write_update(base_path, "2024-01", "a.sh", ".keep", ".env.local")
        assert [f.display_name for f in list_update_files(update_dir)] == ["a.sh"]

    def test_does_not_recurse(self, base_path: Path) -> None:
        update_dir = write_update(base_path, "2024-01", "a.sh")
        nested = update_dir / "nested"
        nested.mkdir()
        (nested / "inner.sh").write_text("x")
        assert [f.display_name for f in list_update_files(update_dir)] == ["a.sh"]

    def test_colliding_keys_keep_first(self, base_path: Path) -> None:
        update_dir = write_update(base_path, "2024-01", "notes", "notes.")
        files = list_update_files(update_dir)
        assert files == (ScannedFile("notes", ""),)

    def test_listing_error_raises(self, base_path: Path) -> None:
        update_dir = write_update(base_path, "2024-01", "a.sh")
        with patch.object(Path, "iterdir", side_effect=PermissionError("denied")):
            with pytest.raises(FilesystemError, match="Cannot list update directory"):
                list_update_files(update_dir)


class TestScanUpdates:
    def test_scan_is_deterministic(self, base_path: Path) -> None:
        write_update(base_path, "2024-01", "a.sh", "b.conf")
        write_update(base_path, "2024-02")
        first = scan_updates(base_path)
        second = scan_updates(base_path)
        assert first == second
        assert [u.name for u in first] == ["2024-01", "2024-02"]
        assert [f.display_name for f in first[0].files] == ["a.sh", "b.conf"]
        assert first[1].files == ()

    def test_empty_base_path(self, base_path: Path) -> None:
        assert scan_updates(base_path) == []
