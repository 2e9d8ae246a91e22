"""File-per-key datastore on an fsspec filesystem.

Each key maps to ``<root><key>.dsobject``. Writes overwrite in place, so
a crash mid-write can leave a truncated value; callers that need
all-or-nothing replacement write through ``fsio.atomic_file`` instead.
"""

from __future__ import annotations

import posixpath
from typing import Any, Iterator

from core.constants import OBJECT_KEY_SUFFIX
from core.errors import CairnStoreError, KeyNotFoundError, StoreClosedError
from datastore.base import Datastore
from datastore.keys import StoreKey
from datastore.query import Query, QueryEntry, QueryResults, naive_query_apply
from fsio.file_ops import file_size, is_file, read_bytes, remove_file, walk_files, write_bytes


class LeafStore(Datastore):
    """Terminal store persisting every key as one file under ``root``."""

    def __init__(self, fs: Any, root: str) -> None:
        self._fs = fs
        self._root = root
        self._closed = False

    @property
    def root(self) -> str:
        return self._root

    def key_filename(self, key: str | StoreKey) -> str:
        """Return the file path backing ``key``."""
        store_key = StoreKey.of(key)
        return posixpath.join(self._root, store_key.value.lstrip("/") + OBJECT_KEY_SUFFIX)

    def get(self, key: str | StoreKey) -> bytes:
        self._ensure_open()
        file_path = self.key_filename(key)
        if not is_file(self._fs, file_path):
            raise KeyNotFoundError(f"Key {StoreKey.of(key)} not found under {self._root}.")
        try:
            return read_bytes(self._fs, file_path)
        except FileNotFoundError as error:
            raise KeyNotFoundError(
                f"Key {StoreKey.of(key)} not found under {self._root}."
            ) from error
        except OSError as error:
            raise CairnStoreError(f"Failed to read datastore file {file_path}: {error}.") from error

    def has(self, key: str | StoreKey) -> bool:
        self._ensure_open()
        return is_file(self._fs, self.key_filename(key))

    def get_size(self, key: str | StoreKey) -> int:
        self._ensure_open()
        file_path = self.key_filename(key)
        if not is_file(self._fs, file_path):
            raise KeyNotFoundError(f"Key {StoreKey.of(key)} not found under {self._root}.")
        return file_size(self._fs, file_path)

    def put(self, key: str | StoreKey, value: bytes) -> None:
        self._ensure_open()
        file_path = self.key_filename(key)
        try:
            write_bytes(self._fs, file_path, bytes(value))
        except OSError as error:
            raise CairnStoreError(
                f"Failed to write datastore file {file_path}: {error}. "
                "Check that the repository directory is writable."
            ) from error

    def delete(self, key: str | StoreKey) -> None:
        self._ensure_open()
        file_path = self.key_filename(key)
        if not is_file(self._fs, file_path):
            return
        try:
            remove_file(self._fs, file_path, missing_ok=True)
        except OSError as error:
            raise CairnStoreError(
                f"Failed to delete datastore file {file_path}: {error}."
            ) from error

    def query(self, query: Query | None = None) -> QueryResults:
        self._ensure_open()
        active_query = query or Query()

        def _produce() -> Iterator[QueryEntry]:
            self._ensure_open()
            return naive_query_apply(active_query, self._walk_entries(active_query))

        return QueryResults(active_query, _produce)

    def disk_usage(self) -> int:
        self._ensure_open()
        try:
            return sum(file_size(self._fs, path) for path in walk_files(self._fs, self._root))
        except OSError as error:
            raise CairnStoreError(
                f"Failed to measure datastore usage under {self._root}: {error}."
            ) from error

    def close(self) -> None:
        self._closed = True

    def _walk_entries(self, query: Query) -> Iterator[QueryEntry]:
        for file_path in walk_files(self._fs, self._root):
            if not file_path.endswith(OBJECT_KEY_SUFFIX):
                continue
            key = self._key_for_path(file_path)
            if query.keys_only:
                size = file_size(self._fs, file_path) if query.returns_sizes else -1
                yield QueryEntry(key=key, size=size)
                continue
            try:
                value = read_bytes(self._fs, file_path)
            except OSError as error:
                raise CairnStoreError(
                    f"Failed to read datastore file {file_path} during query: {error}."
                ) from error
            yield QueryEntry(key=key, value=value, size=len(value))

    def _key_for_path(self, file_path: str) -> str:
        relative = posixpath.relpath(file_path, self._root)[: -len(OBJECT_KEY_SUFFIX)]
        return StoreKey.of(relative).value

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedError(
                f"Datastore at {self._root} is closed. Reopen the repository to access it."
            )
