"""Unit tests for filesystem helpers."""

from __future__ import annotations

import pytest

from fsio.file_ops import (
    file_exists,
    is_file,
    read_bytes,
    remove_file,
    resolve_path,
    walk_files,
    write_bytes,
)


def test_resolve_path_expands_local_paths(local_fs, tmp_path) -> None:
    """Local paths should resolve to absolute POSIX strings."""
    resolved = resolve_path(local_fs, str(tmp_path / "a" / ".." / "b"))

    assert resolved == (tmp_path.resolve() / "b").as_posix()


def test_resolve_path_roots_memory_paths(memory_fs) -> None:
    """Virtual paths should be cleaned and rooted."""
    assert resolve_path(memory_fs, "repo//x/../y") == "/repo/y"


def test_write_bytes_creates_parents(memory_fs, memory_root) -> None:
    """Writes should create missing parent directories."""
    path = f"{memory_root}/deep/er/file"
    write_bytes(memory_fs, path, b"data")

    assert read_bytes(memory_fs, path) == b"data"


def test_existence_checks_distinguish_files_and_dirs(local_fs, tmp_path) -> None:
    """Directories exist but are not files."""
    (tmp_path / "d").mkdir()
    directory = (tmp_path / "d").as_posix()

    assert (file_exists(local_fs, directory), is_file(local_fs, directory)) == (True, False)


def test_remove_file_missing_ok(memory_fs, memory_root) -> None:
    """Removing an absent file should only fail when asked to."""
    path = f"{memory_root}/absent"
    remove_file(memory_fs, path, missing_ok=True)

    with pytest.raises(FileNotFoundError):
        remove_file(memory_fs, path)


def test_walk_files_lists_nested_files(memory_fs, memory_root) -> None:
    """Walking should yield every regular file below the root."""
    write_bytes(memory_fs, f"{memory_root}/a", b"1")
    write_bytes(memory_fs, f"{memory_root}/sub/b", b"2")

    paths = sorted(walk_files(memory_fs, memory_root))

    assert paths == [f"{memory_root}/a", f"{memory_root}/sub/b"]


def test_walk_files_on_missing_root_is_empty(memory_fs, memory_root) -> None:
    """A missing root should yield nothing."""
    assert list(walk_files(memory_fs, f"{memory_root}/nope")) == []
