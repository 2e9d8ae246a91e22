"""Repository init and open.

``init_repo`` lays out a fresh repository; ``open_repo`` locks it,
checks its version and writability, validates the configured datastore
against the persisted DiskSpec, and returns a ``Repository``.
"""

from __future__ import annotations

import posixpath
from typing import Any

from core.constants import (
    CONFIG_FILE_NAME,
    KEYSTORE_DIR_NAME,
    LEGACY_REPO_DIR_NAME,
    REPO_DATASTORE_METRICS_PREFIX,
    REPO_VERSION,
    SPEC_FILE_NAME,
    WRITABLE_CHECK_FILE_NAME,
)
from core.errors import (
    CairnConfigError,
    CairnError,
    CairnPermissionError,
    CairnRepoError,
    LegacyRepoError,
    NeedsMigrationError,
    NotInitializedError,
    ProgramVersionTooLowError,
    SpecMismatchError,
)
from core.logging_config import get_logger
from datastore.base import Datastore
from datastore.composition import DatastoreRegistry, parse_spec
from datastore.measure_store import MeasureStore
from fsio.atomic_file import write_atomic
from fsio.file_ops import (
    ensure_dir,
    file_exists,
    join_path,
    read_bytes,
    remove_file,
    resolve_path,
    write_bytes,
)
from lock.liveness import probe_process
from lock.process_lock import LivenessProbe, LockHandle, lock_repo
from repo.config_file import (
    DatastoreSection,
    RepoConfig,
    default_repo_config,
    read_config_file,
    write_config_file,
)
from repo.coordinator import DEFAULT_COORDINATOR, RepoCoordinator
from repo.keystore import FileKeystore
from repo.repository import Repository
from repo.version_file import read_repo_version, write_repo_version

_LOGGER = get_logger(__name__)


def is_initialized(fs: Any, path: str) -> bool:
    """Report whether ``path`` holds both a config and a datastore spec."""
    repo_path = resolve_path(fs, path)
    return file_exists(fs, join_path(repo_path, CONFIG_FILE_NAME)) and file_exists(
        fs, join_path(repo_path, SPEC_FILE_NAME)
    )


def check_writable(fs: Any, path: str) -> None:
    """Create ``path`` if needed and prove a file can be written in it.

    Raises:
        CairnPermissionError: If writing is denied.
        CairnRepoError: If the directory cannot be used for another reason.
    """
    probe_path = join_path(path, WRITABLE_CHECK_FILE_NAME)
    try:
        ensure_dir(fs, path)
        write_bytes(fs, probe_path, b"")
        remove_file(fs, probe_path, missing_ok=True)
    except PermissionError as error:
        raise CairnPermissionError(
            f"Repository directory {path} is not writable. Fix its permissions and retry."
        ) from error
    except OSError as error:
        raise CairnRepoError(
            f"Repository directory {path} is unusable: {error}. Check the path and retry."
        ) from error


def init_repo(
    fs: Any,
    path: str,
    config: RepoConfig | None = None,
    coordinator: RepoCoordinator | None = None,
    registry: DatastoreRegistry | None = None,
) -> None:
    """Lay out a repository at ``path``; a no-op once it is initialized.

    A partial layout left by an interrupted init is completed: an existing
    config is kept and the DiskSpec is derived from it.

    Args:
        fs: fsspec filesystem.
        path: Repository directory.
        config: Config document, the default config when omitted.
        coordinator: Lifecycle coordinator, the process default when omitted.
        registry: Datastore type registry, the built-ins when omitted.

    Raises:
        CairnConfigError: If the config has no usable datastore spec.
        CairnPermissionError: If the directory is not writable.
    """
    active_coordinator = coordinator or DEFAULT_COORDINATOR
    repo_path = resolve_path(fs, path)
    config_path = join_path(repo_path, CONFIG_FILE_NAME)
    with active_coordinator.mutex:
        if is_initialized(fs, repo_path):
            _LOGGER.info("repo_already_initialized", repo_path=repo_path)
            return
        config_present = file_exists(fs, config_path)
        if config_present:
            repo_config = read_config_file(fs, config_path)
            _LOGGER.warning("repo_init_resumed", repo_path=repo_path)
        else:
            repo_config = config or default_repo_config()
        section = _require_spec(repo_config.datastore, repo_path)
        disk_spec = parse_spec(section.spec, registry).disk_spec()
        check_writable(fs, repo_path)
        if not config_present:
            write_config_file(fs, config_path, repo_config)
        spec_path = join_path(repo_path, SPEC_FILE_NAME)
        if not file_exists(fs, spec_path):
            try:
                write_atomic(fs, spec_path, disk_spec.to_bytes())
            except OSError as error:
                raise CairnRepoError(
                    f"Failed to write datastore spec {spec_path}: {error}."
                ) from error
        write_repo_version(fs, repo_path, REPO_VERSION)
    _LOGGER.info("repo_initialized", repo_path=repo_path, version=REPO_VERSION)


def open_repo(
    fs: Any,
    path: str,
    coordinator: RepoCoordinator | None = None,
    expected_version: int = REPO_VERSION,
    registry: DatastoreRegistry | None = None,
    probe: LivenessProbe = probe_process,
) -> Repository:
    """Open the repository at ``path`` for exclusive use by this process.

    Args:
        fs: fsspec filesystem.
        path: Repository directory.
        coordinator: Lifecycle coordinator, the process default when omitted.
        expected_version: Layout version this program understands.
        registry: Datastore type registry, the built-ins when omitted.
        probe: Liveness check used for stale lock recovery.

    Returns:
        Open repository; close it to release the lock.

    Raises:
        NotInitializedError: If no repository exists at ``path``.
        RepoLockedError: If the repository is locked.
        NoVersionError: If the version file is missing.
        NeedsMigrationError: If the repository is older than expected.
        ProgramVersionTooLowError: If the repository is newer than expected.
        CairnConfigError: If the config is invalid or predates datastore specs.
        SpecMismatchError: If the configured datastore disagrees with disk.
    """
    active_coordinator = coordinator or DEFAULT_COORDINATOR
    repo_path = resolve_path(fs, path)
    with active_coordinator.mutex:
        _require_initialized(fs, repo_path)
        lock_handle = lock_repo(fs, repo_path, active_coordinator.lock_registry, probe=probe)
        try:
            repository = _open_locked(
                fs, repo_path, lock_handle, active_coordinator, expected_version, registry
            )
        except Exception as error:
            _LOGGER.error("repo_open_failed", repo_path=repo_path, error=str(error))
            _release_quietly(lock_handle)
            raise
    _LOGGER.info("repo_opened", repo_path=repo_path, version=expected_version)
    return repository


def _open_locked(
    fs: Any,
    repo_path: str,
    lock_handle: LockHandle,
    coordinator: RepoCoordinator,
    expected_version: int,
    registry: DatastoreRegistry | None,
) -> Repository:
    _check_version(read_repo_version(fs, repo_path), expected_version, repo_path)
    check_writable(fs, repo_path)
    config = read_config_file(fs, join_path(repo_path, CONFIG_FILE_NAME))
    section = _require_spec(config.datastore, repo_path)
    if section.no_sync:
        _LOGGER.warning("config_nosync_ignored", repo_path=repo_path)
    datastore = _open_datastore(fs, repo_path, section, registry)
    try:
        keystore = FileKeystore(fs, join_path(repo_path, KEYSTORE_DIR_NAME))
    except Exception:
        datastore.close()
        raise
    return Repository(
        fs=fs,
        path=repo_path,
        config=config,
        datastore=datastore,
        keystore=keystore,
        lock_handle=lock_handle,
        coordinator=coordinator,
    )


def _open_datastore(
    fs: Any,
    repo_path: str,
    section: DatastoreSection,
    registry: DatastoreRegistry | None,
) -> Datastore:
    datastore_config = parse_spec(section.spec, registry)
    spec_path = join_path(repo_path, SPEC_FILE_NAME)
    try:
        persisted = read_bytes(fs, spec_path).decode("utf-8").strip()
    except OSError as error:
        raise CairnRepoError(f"Failed to read datastore spec {spec_path}: {error}.") from error
    fresh = datastore_config.disk_spec().to_string()
    if fresh != persisted:
        raise SpecMismatchError(
            f"Datastore config in {repo_path} does not match the layout on disk.\n"
            f"  on disk: {persisted}\n  from config: {fresh}\n"
            "Restore the previous Datastore.Spec or convert the datastore before opening."
        )
    return MeasureStore(datastore_config.create(fs, repo_path), REPO_DATASTORE_METRICS_PREFIX)


def _check_version(persisted: int, expected: int, repo_path: str) -> None:
    if persisted < expected:
        raise NeedsMigrationError(
            f"Repository at {repo_path} is version {persisted}; this program expects "
            f"{expected}. Migrate the repository before opening it."
        )
    if persisted > expected:
        raise ProgramVersionTooLowError(
            f"Repository at {repo_path} is version {persisted}, newer than supported "
            f"version {expected}. Upgrade this program."
        )


def _require_initialized(fs: Any, repo_path: str) -> None:
    if is_initialized(fs, repo_path):
        return
    legacy_path = join_path(posixpath.dirname(repo_path), LEGACY_REPO_DIR_NAME)
    if file_exists(fs, legacy_path):
        raise LegacyRepoError(
            f"No repository at {repo_path}, but a legacy repository exists at {legacy_path}. "
            "Migrate it to the current layout first."
        )
    raise NotInitializedError(
        f"No repository initialized at {repo_path}. Run 'cairn init' first."
    )


def _require_spec(section: DatastoreSection, repo_path: str) -> DatastoreSection:
    if section.spec is not None:
        return section
    if section.legacy_type is not None or section.legacy_path is not None:
        raise CairnConfigError(
            f"Config for {repo_path} uses the legacy 'Datastore.Type'/'Datastore.Path' form. "
            "Migrate it to a 'Datastore.Spec' tree."
        )
    raise CairnConfigError(
        f"Config for {repo_path} is missing 'Datastore.Spec'. Add a datastore spec tree."
    )


def _release_quietly(lock_handle: LockHandle) -> None:
    try:
        lock_handle.release()
    except CairnError as error:
        _LOGGER.error("lock_release_failed", path=lock_handle.path, error=str(error))
