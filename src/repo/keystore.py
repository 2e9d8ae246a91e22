"""File-per-key keystore inside the repository.

Key names are encoded as ``key_`` plus lowercase unpadded base32 so any
name maps to a portable file name.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

from core.constants import KEYSTORE_FILE_PREFIX
from core.errors import CairnPermissionError, KeyExistsError, KeystoreError, NoSuchKeyError
from core.logging_config import get_logger
from fsio.file_ops import ensure_dir, is_file, join_path, read_bytes, remove_file

_LOGGER = get_logger(__name__)


def encode_key_name(name: str) -> str:
    encoded = base64.b32encode(name.encode("utf-8")).decode("ascii")
    return KEYSTORE_FILE_PREFIX + encoded.rstrip("=").lower()


def decode_key_name(file_name: str) -> str:
    """Invert ``encode_key_name``.

    Raises:
        ValueError: If the file name is not a keystore entry.
    """
    if not file_name.startswith(KEYSTORE_FILE_PREFIX):
        raise ValueError(f"'{file_name}' lacks the '{KEYSTORE_FILE_PREFIX}' prefix")
    encoded = file_name[len(KEYSTORE_FILE_PREFIX) :].upper()
    padded = encoded + "=" * (-len(encoded) % 8)
    try:
        return base64.b32decode(padded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as error:
        raise ValueError(f"'{file_name}' is not valid base32: {error}") from error


class FileKeystore:
    """Named opaque key blobs stored one file per key."""

    def __init__(self, fs: Any, root: str) -> None:
        self._fs = fs
        self._root = root
        try:
            ensure_dir(fs, root)
        except PermissionError as error:
            raise CairnPermissionError(
                f"Permission denied creating keystore at {root}. Check directory permissions."
            ) from error

    @property
    def root(self) -> str:
        return self._root

    def has(self, name: str) -> bool:
        return is_file(self._fs, self._key_path(name))

    def put(self, name: str, data: bytes) -> None:
        """Store ``data`` under ``name``.

        Raises:
            KeyExistsError: If ``name`` is already stored.
        """
        key_path = self._key_path(name)
        try:
            with self._fs.open(key_path, "xb") as handle:
                handle.write(data)
        except FileExistsError as error:
            raise KeyExistsError(
                f"Key '{name}' already exists in keystore {self._root}. Delete it first."
            ) from error
        except OSError as error:
            raise KeystoreError(f"Failed to write key '{name}' to {key_path}: {error}.") from error

    def get(self, name: str) -> bytes:
        """Return the blob stored under ``name``.

        Raises:
            NoSuchKeyError: If ``name`` is not stored.
        """
        key_path = self._key_path(name)
        try:
            return read_bytes(self._fs, key_path)
        except FileNotFoundError as error:
            raise NoSuchKeyError(f"Key '{name}' not found in keystore {self._root}.") from error
        except OSError as error:
            raise KeystoreError(f"Failed to read key '{name}' from {key_path}: {error}.") from error

    def delete(self, name: str) -> None:
        key_path = self._key_path(name)
        try:
            remove_file(self._fs, key_path)
        except FileNotFoundError as error:
            raise NoSuchKeyError(f"Key '{name}' not found in keystore {self._root}.") from error
        except OSError as error:
            raise KeystoreError(f"Failed to delete key '{name}' at {key_path}: {error}.") from error

    def list(self) -> list[str]:
        """Names of every stored key, sorted; undecodable entries are skipped."""
        try:
            entries = self._fs.ls(self._root, detail=False)
        except FileNotFoundError:
            return []
        names = []
        for entry in entries:
            file_name = entry.rstrip("/").rsplit("/", 1)[-1]
            try:
                names.append(decode_key_name(file_name))
            except ValueError as error:
                _LOGGER.warning("keystore_entry_skipped", file_name=file_name, error=str(error))
        return sorted(names)

    def _key_path(self, name: str) -> str:
        if not name:
            raise KeystoreError("Key name must not be empty.")
        return join_path(self._root, encode_key_name(name))
