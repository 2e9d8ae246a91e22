"""Rename-on-close file writes.

Readers never observe a half-written target: bytes go to a hidden sibling
file that replaces the target only when the write finishes. A failed or
aborted write removes the sibling and leaves the original untouched.
"""

from __future__ import annotations

import posixpath
from types import TracebackType
from typing import Any
from uuid import uuid4

from fsio.file_ops import ensure_dir, remove_file


class AtomicFile:
    """Writable file that atomically replaces ``path`` on close."""

    def __init__(self, fs: Any, path: str) -> None:
        self._fs = fs
        self._path = path
        directory = posixpath.dirname(path)
        ensure_dir(fs, directory)
        temp_name = f".{posixpath.basename(path)}.{uuid4().hex[:12]}.tmp"
        self._temp_path = posixpath.join(directory, temp_name)
        self._handle = fs.open(self._temp_path, "wb")
        self._finished = False

    @property
    def path(self) -> str:
        return self._path

    @property
    def temp_path(self) -> str:
        return self._temp_path

    def write(self, data: bytes) -> int:
        """Buffer bytes into the temporary sibling file."""
        return int(self._handle.write(data))

    def close(self) -> None:
        """Finish the write and rename the sibling over the target.

        Raises:
            OSError: If closing or renaming fails; the sibling is removed.
        """
        if self._finished:
            return
        self._finished = True
        try:
            self._handle.close()
            self._fs.mv(self._temp_path, self._path)
        except OSError:
            remove_file(self._fs, self._temp_path, missing_ok=True)
            raise

    def abort(self) -> None:
        """Discard the write and keep the target as it was."""
        if self._finished:
            return
        self._finished = True
        try:
            self._handle.close()
        finally:
            remove_file(self._fs, self._temp_path, missing_ok=True)

    def __enter__(self) -> "AtomicFile":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()


def write_atomic(fs: Any, path: str, data: bytes) -> None:
    """Replace the file at ``path`` with ``data`` in one rename."""
    with AtomicFile(fs, path) as handle:
        handle.write(data)
