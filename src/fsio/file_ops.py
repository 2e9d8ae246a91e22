"""Filesystem helpers shared by the repository layers.

Every helper takes an fsspec filesystem so the same logic runs over the
local disk, the in-memory filesystem, or any other fsspec backend. Paths
are POSIX-style strings; OS errors propagate to the calling layer, which
wraps them with its own error type.
"""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Any, Iterator

from fsspec.implementations.local import LocalFileSystem


def resolve_path(fs: Any, path: str) -> str:
    """Return the absolute, cleaned form of ``path`` on ``fs``.

    Args:
        fs: fsspec filesystem.
        path: Raw path, possibly relative or using ``~``.

    Returns:
        Normalized path string.
    """
    if isinstance(fs, LocalFileSystem):
        return Path(path).expanduser().resolve().as_posix()
    cleaned = posixpath.normpath(path)
    if fs.root_marker == "/" and not cleaned.startswith("/"):
        cleaned = "/" + cleaned
    return cleaned


def join_path(base: str, *parts: str) -> str:
    """Join path segments with forward slashes."""
    return posixpath.join(base, *parts)


def file_exists(fs: Any, path: str) -> bool:
    """Report whether something exists at ``path``.

    A stat failure other than not-found counts as existing, so callers
    never overwrite a path they could not inspect.
    """
    try:
        fs.info(path)
    except FileNotFoundError:
        return False
    except OSError:
        return True
    return True


def is_file(fs: Any, path: str) -> bool:
    """Report whether ``path`` is a regular file."""
    try:
        info = fs.info(path)
    except OSError:
        return False
    return info.get("type") == "file"


def file_size(fs: Any, path: str) -> int:
    """Return the size in bytes of the file at ``path``."""
    return int(fs.info(path).get("size") or 0)


def read_bytes(fs: Any, path: str) -> bytes:
    """Read the full contents of the file at ``path``."""
    return bytes(fs.cat_file(path))


def write_bytes(fs: Any, path: str, data: bytes) -> None:
    """Write ``data`` to ``path`` in place, creating parent directories."""
    ensure_dir(fs, posixpath.dirname(path))
    fs.pipe_file(path, data)


def ensure_dir(fs: Any, path: str) -> None:
    """Create ``path`` and its parents when missing."""
    if path:
        fs.makedirs(path, exist_ok=True)


def remove_file(fs: Any, path: str, missing_ok: bool = False) -> None:
    """Delete the file at ``path``.

    Args:
        fs: fsspec filesystem.
        path: File path.
        missing_ok: Treat an absent file as already removed.
    """
    try:
        fs.rm_file(path)
    except FileNotFoundError:
        if not missing_ok:
            raise


def walk_files(fs: Any, root: str) -> Iterator[str]:
    """Yield every regular file path under ``root`` in traversal order."""
    for dir_path, _dir_names, file_names in fs.walk(root):
        for file_name in file_names:
            yield posixpath.join(dir_path, file_name)
