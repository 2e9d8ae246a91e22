"""Repository version marker.

The ``version`` file holds the layout version as decimal text followed
by a newline.
"""

from __future__ import annotations

from typing import Any

from core.constants import VERSION_FILE_NAME
from core.errors import CairnRepoError, NoVersionError
from fsio.atomic_file import write_atomic
from fsio.file_ops import join_path, read_bytes


def read_repo_version(fs: Any, repo_path: str) -> int:
    """Read the layout version stored in ``repo_path``.

    Args:
        fs: fsspec filesystem.
        repo_path: Repository directory.

    Returns:
        Persisted version number.

    Raises:
        NoVersionError: If the version file is missing.
        CairnRepoError: If the file is unreadable or not a decimal number.
    """
    version_path = join_path(repo_path, VERSION_FILE_NAME)
    try:
        payload = read_bytes(fs, version_path)
    except FileNotFoundError as error:
        raise NoVersionError(
            f"Repository at {repo_path} has no version file. Re-run 'cairn init'."
        ) from error
    except OSError as error:
        raise CairnRepoError(f"Failed to read version file {version_path}: {error}.") from error
    text = payload.decode("utf-8", errors="replace").strip()
    try:
        return int(text)
    except ValueError as error:
        raise CairnRepoError(
            f"Version file {version_path} holds '{text}', not a number. Restore it from backup."
        ) from error


def write_repo_version(fs: Any, repo_path: str, version: int) -> None:
    """Write ``version`` into ``repo_path`` atomically."""
    version_path = join_path(repo_path, VERSION_FILE_NAME)
    try:
        write_atomic(fs, version_path, f"{version}\n".encode("utf-8"))
    except OSError as error:
        raise CairnRepoError(f"Failed to write version file {version_path}: {error}.") from error
