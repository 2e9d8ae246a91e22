"""Portable lock-file protocol guarding one repository per process.

The lock is a file created exclusively inside the repository directory
holding ``{"owner_pid": N}``. A lock left by a dead owner is removed and
re-acquired; a live or unprobeable owner blocks acquisition.
"""

from __future__ import annotations

import json
import os
import threading
from types import TracebackType
from typing import Any, Callable

from core.constants import LOCK_FILE_NAME
from core.errors import (
    CairnLockError,
    CairnPermissionError,
    LockContentsError,
    LockCreateError,
    RepoLockedError,
)
from core.logging_config import get_logger
from fsio.file_ops import file_exists, join_path, read_bytes, remove_file, resolve_path
from lock.liveness import ProcessLiveness, probe_process

_LOGGER = get_logger(__name__)

LivenessProbe = Callable[[int], ProcessLiveness]


class LockRegistry:
    """Lock paths held by this process.

    Attributes:
        mutex: Serializes check-and-create across threads.
    """

    def __init__(self) -> None:
        self.mutex = threading.RLock()
        self._held: set[str] = set()

    def is_held(self, path: str) -> bool:
        with self.mutex:
            return path in self._held

    def add(self, path: str) -> None:
        with self.mutex:
            self._held.add(path)

    def discard(self, path: str) -> None:
        with self.mutex:
            self._held.discard(path)

    def held_paths(self) -> tuple[str, ...]:
        with self.mutex:
            return tuple(sorted(self._held))


class LockHandle:
    """Held repository lock; release exactly once."""

    def __init__(self, fs: Any, path: str, registry: LockRegistry, owner_pid: int) -> None:
        self._fs = fs
        self._path = path
        self._registry = registry
        self._owner_pid = owner_pid
        self._mutex = threading.Lock()
        self._released = False
        self._release_error: CairnLockError | None = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def owner_pid(self) -> int:
        return self._owner_pid

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Unregister and delete the lock file.

        No file handle is held: the lock file is closed right after its
        metadata is written, so release only removes it.

        Later calls are no-ops, except that a failure from the first call
        is raised again.

        Raises:
            CairnLockError: If the lock file could not be removed.
        """
        with self._mutex:
            if self._released:
                if self._release_error is not None:
                    raise self._release_error
                return
            self._released = True
            self._registry.discard(self._path)
            try:
                remove_file(self._fs, self._path, missing_ok=True)
            except OSError as error:
                self._release_error = CairnLockError(
                    f"Failed to remove lock file {self._path}: {error}. Delete it manually."
                )
                raise self._release_error from error
            _LOGGER.info("lock_released", path=self._path)

    def __enter__(self) -> "LockHandle":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.release()


def acquire_lock(
    fs: Any,
    path: str,
    registry: LockRegistry,
    probe: LivenessProbe = probe_process,
) -> LockHandle:
    """Take the lock file at ``path``.

    Args:
        fs: fsspec filesystem holding the lock file.
        path: Lock file path.
        registry: Locks already held by this process.
        probe: Liveness check for the pid recorded in an existing lock.

    Returns:
        Handle that releases the lock.

    Raises:
        RepoLockedError: If this process, another live process, or an
            unprobeable process holds the lock.
        LockContentsError: If an existing lock file holds invalid metadata.
        LockCreateError: If the lock file cannot be created exclusively.
        CairnPermissionError: If the filesystem denies creating the file.
    """
    lock_path = resolve_path(fs, path)
    with registry.mutex:
        if registry.is_held(lock_path):
            raise RepoLockedError(
                f"Lock {lock_path} is already held by this process. "
                "Close the open repository first.",
                "by_us",
            )
        _clear_stale_lock(fs, lock_path, probe)
        owner_pid = os.getpid()
        _create_lock_file(fs, lock_path, owner_pid)
        registry.add(lock_path)
    _LOGGER.info("lock_acquired", path=lock_path, owner_pid=owner_pid)
    return LockHandle(fs, lock_path, registry, owner_pid)


def lock_repo(
    fs: Any,
    repo_dir: str,
    registry: LockRegistry,
    lock_file_name: str = LOCK_FILE_NAME,
    probe: LivenessProbe = probe_process,
) -> LockHandle:
    """Lock the repository at ``repo_dir``."""
    return acquire_lock(fs, join_path(repo_dir, lock_file_name), registry, probe)


def is_locked(
    fs: Any,
    repo_dir: str,
    registry: LockRegistry,
    lock_file_name: str = LOCK_FILE_NAME,
    probe: LivenessProbe = probe_process,
) -> bool:
    """Report whether anyone holds the repository lock.

    Probes by acquiring and immediately releasing the lock. A missing
    repository directory is reported as unlocked.
    """
    if not file_exists(fs, repo_dir):
        return False
    try:
        handle = lock_repo(fs, repo_dir, registry, lock_file_name, probe)
    except RepoLockedError:
        return True
    handle.release()
    return False


def read_lock_owner(fs: Any, path: str) -> int | None:
    """Return the pid recorded in the lock file, None when it is absent or empty.

    Raises:
        LockContentsError: If the file holds anything but ``{"owner_pid": N}``.
    """
    try:
        payload = read_bytes(fs, path)
    except FileNotFoundError:
        return None
    if not payload.strip():
        return None
    try:
        metadata = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise LockContentsError(
            f"Lock file {path} is not valid JSON: {error}. Remove it if no process owns it."
        ) from error
    owner_pid = metadata.get("owner_pid") if isinstance(metadata, dict) else None
    if isinstance(owner_pid, bool) or not isinstance(owner_pid, int) or owner_pid <= 0:
        raise LockContentsError(
            f"Lock file {path} has no valid 'owner_pid'. Remove it if no process owns it."
        )
    return owner_pid


def _clear_stale_lock(fs: Any, lock_path: str, probe: LivenessProbe) -> None:
    if not file_exists(fs, lock_path):
        return
    owner_pid = read_lock_owner(fs, lock_path)
    if owner_pid is None:
        return
    liveness = probe(owner_pid)
    if liveness is ProcessLiveness.ALIVE:
        raise RepoLockedError(
            f"Lock {lock_path} is held by running process {owner_pid}. Stop it and retry.",
            "by_other",
        )
    if liveness is ProcessLiveness.UNKNOWN:
        raise RepoLockedError(
            f"Lock {lock_path} is held by process {owner_pid} whose state cannot be checked. "
            "Remove the lock file if that process is gone.",
            "indeterminate",
        )
    _LOGGER.warning("lock_stale_removed", path=lock_path, owner_pid=owner_pid)
    try:
        remove_file(fs, lock_path, missing_ok=True)
    except OSError as error:
        raise LockCreateError(
            f"Failed to remove stale lock file {lock_path}: {error}. Delete it manually."
        ) from error


def _create_lock_file(fs: Any, lock_path: str, owner_pid: int) -> None:
    payload = json.dumps({"owner_pid": owner_pid}).encode("utf-8")
    try:
        handle = fs.open(lock_path, "xb")
    except FileExistsError as error:
        raise LockCreateError(
            f"Lock file {lock_path} already exists. Remove it if no process owns the repository."
        ) from error
    except PermissionError as error:
        raise CairnPermissionError(
            f"Permission denied creating lock file {lock_path}. Check directory permissions."
        ) from error
    except OSError as error:
        raise LockCreateError(f"Failed to create lock file {lock_path}: {error}.") from error
    try:
        with handle:
            handle.write(payload)
    except OSError as error:
        remove_file(fs, lock_path, missing_ok=True)
        raise LockCreateError(
            f"Failed to write lock metadata to {lock_path}: {error}."
        ) from error
