"""Open repository handle.

A ``Repository`` owns the repository lock, the composed datastore, and
the keystore from open until close. Config mutations go through the
coordinator mutex and are written atomically.
"""

from __future__ import annotations

from types import TracebackType
from typing import Any
from uuid import uuid4

from core.constants import (
    API_FILE_NAME,
    CONFIG_BACKUP_PREFIX,
    CONFIG_FILE_NAME,
    PRIVATE_KEY_SELECTOR,
    SWARM_KEY_FILE_NAME,
)
from core.errors import (
    CairnConfigError,
    CairnRepoError,
    RepoAlreadyClosedError,
    RepoClosedError,
)
from core.logging_config import get_logger
from datastore.base import Datastore
from fsio.file_ops import join_path, read_bytes, remove_file, write_bytes
from lock.process_lock import LockHandle
from repo.config_file import RepoConfig, map_get_kv, map_set_kv, write_config_file
from repo.coordinator import RepoCoordinator
from repo.keystore import FileKeystore

_LOGGER = get_logger(__name__)


class Repository:
    """Handle on an open repository; create it with ``open_repo``."""

    def __init__(
        self,
        fs: Any,
        path: str,
        config: RepoConfig,
        datastore: Datastore,
        keystore: FileKeystore,
        lock_handle: LockHandle,
        coordinator: RepoCoordinator,
    ) -> None:
        self._fs = fs
        self._path = path
        self._config = config
        self._datastore = datastore
        self._keystore = keystore
        self._lock_handle = lock_handle
        self._coordinator = coordinator
        self._closed = False

    @property
    def path(self) -> str:
        return self._path

    @property
    def closed(self) -> bool:
        return self._closed

    def config(self) -> RepoConfig:
        """Return the loaded config document."""
        self._ensure_open()
        return RepoConfig(self._config.to_dict())

    def set_config(self, config: RepoConfig) -> None:
        """Replace the config document, keeping the stored private key.

        Raises:
            RepoClosedError: If the repository was closed.
            CairnConfigError: If the config cannot be written.
        """
        with self._coordinator.mutex:
            self._ensure_open()
            document = config.to_dict()
            self._write_config(document)

    def set_config_key(self, key: str, value: Any) -> None:
        """Set one dotted config key, for example ``Datastore.GCPeriod``.

        Raises:
            CairnConfigError: If the key targets the private key or a
                non-object intermediate value.
        """
        if key.lower() == PRIVATE_KEY_SELECTOR.lower():
            raise CairnConfigError(
                f"Config key '{PRIVATE_KEY_SELECTOR}' cannot be changed through config updates."
            )
        with self._coordinator.mutex:
            self._ensure_open()
            document = self._config.to_dict()
            map_set_kv(document, key, value)
            self._write_config(document)

    def get_config_key(self, key: str) -> Any:
        """Read one dotted config key."""
        self._ensure_open()
        return map_get_kv(self._config.to_dict(), key)

    def backup_config(self, prefix: str = CONFIG_BACKUP_PREFIX) -> str:
        """Copy the on-disk config next to it and return the copy's path."""
        with self._coordinator.mutex:
            self._ensure_open()
            config_path = join_path(self._path, CONFIG_FILE_NAME)
            backup_path = join_path(self._path, f"{prefix}{uuid4().hex[:12]}")
            try:
                write_bytes(self._fs, backup_path, read_bytes(self._fs, config_path))
            except OSError as error:
                raise CairnConfigError(
                    f"Failed to back up config {config_path} to {backup_path}: {error}."
                ) from error
            _LOGGER.info("config_backed_up", backup_path=backup_path)
            return backup_path

    def datastore(self) -> Datastore:
        self._ensure_open()
        return self._datastore

    def storage_usage(self) -> int:
        """Bytes occupied by the datastore on disk."""
        self._ensure_open()
        return self._datastore.disk_usage()

    def keystore(self) -> FileKeystore:
        self._ensure_open()
        return self._keystore

    def set_api_addr(self, addr: str) -> None:
        """Publish the API address by renaming a fully written temp file."""
        self._ensure_open()
        api_path = join_path(self._path, API_FILE_NAME)
        temp_path = join_path(self._path, f".{API_FILE_NAME}.tmp")
        try:
            write_bytes(self._fs, temp_path, addr.encode("utf-8"))
            self._fs.mv(temp_path, api_path)
        except OSError as error:
            raise CairnRepoError(f"Failed to write API file {api_path}: {error}.") from error

    def api_addr(self) -> str | None:
        """Return the published API address, None when none is published."""
        self._ensure_open()
        try:
            payload = read_bytes(self._fs, join_path(self._path, API_FILE_NAME))
        except FileNotFoundError:
            return None
        return payload.decode("utf-8").strip()

    def swarm_key(self) -> bytes | None:
        """Return the private network key, None when the repo has none."""
        self._ensure_open()
        try:
            return read_bytes(self._fs, join_path(self._path, SWARM_KEY_FILE_NAME))
        except FileNotFoundError:
            return None

    def close(self) -> None:
        """Close the datastore and release the repository lock.

        Raises:
            RepoAlreadyClosedError: If called more than once.
        """
        with self._coordinator.mutex:
            if self._closed:
                raise RepoAlreadyClosedError(f"Repository at {self._path} is already closed.")
            api_path = join_path(self._path, API_FILE_NAME)
            try:
                remove_file(self._fs, api_path, missing_ok=True)
            except OSError as error:
                _LOGGER.warning("api_file_remove_failed", path=api_path, error=str(error))
            self._datastore.close()
            self._closed = True
            self._lock_handle.release()
            _LOGGER.info("repo_closed", repo_path=self._path)

    def _write_config(self, document: dict[str, Any]) -> None:
        current = self._config.to_dict()
        try:
            private_key = map_get_kv(current, PRIVATE_KEY_SELECTOR)
        except CairnConfigError:
            private_key = None
        if private_key is not None:
            map_set_kv(document, PRIVATE_KEY_SELECTOR, private_key)
        updated = RepoConfig(document)
        write_config_file(self._fs, join_path(self._path, CONFIG_FILE_NAME), updated)
        self._config = updated

    def _ensure_open(self) -> None:
        if self._closed:
            raise RepoClosedError(
                f"Repository at {self._path} is closed. Open it again with open_repo."
            )

    def __enter__(self) -> "Repository":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if not self._closed:
            self.close()
