"""High-level SDK entry point bound to runtime settings.

This module wires ``CairnSettings`` to the lifecycle functions so callers
name a repository once instead of passing a filesystem and path around.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping

from core.config import CairnSettings
from fsio.file_ops import resolve_path
from lock.process_lock import is_locked
from repo.config_file import RepoConfig, default_repo_config
from repo.coordinator import DEFAULT_COORDINATOR, RepoCoordinator
from repo.lifecycle import init_repo, is_initialized, open_repo
from repo.repository import Repository
from repo.version_file import read_repo_version


class CairnClient:
    """Primary SDK entry point for one repository."""

    def __init__(
        self,
        settings: CairnSettings | None = None,
        fs: Any | None = None,
        coordinator: RepoCoordinator | None = None,
    ) -> None:
        """Create SDK client.

        Args:
            settings: Runtime settings, read from the environment when omitted.
            fs: Filesystem override, built from settings when omitted.
            coordinator: Lifecycle coordinator, the process default when omitted.
        """
        self._settings = settings or CairnSettings.from_env()
        self._fs = fs if fs is not None else self._settings.filesystem()
        self._coordinator = coordinator or DEFAULT_COORDINATOR
        self._repo_path = resolve_path(self._fs, self._settings.repo_path)

    @property
    def repo_path(self) -> str:
        return self._repo_path

    @property
    def fs(self) -> Any:
        return self._fs

    def init(self, spec: Mapping[str, Any] | None = None) -> str:
        """Initialize the repository, optionally with a custom datastore spec.

        Returns:
            Repository path.
        """
        config: RepoConfig | None = None
        if spec is not None:
            base_config = default_repo_config()
            config = base_config.with_datastore(replace(base_config.datastore, spec=dict(spec)))
        init_repo(self._fs, self._repo_path, config, self._coordinator)
        return self._repo_path

    def is_initialized(self) -> bool:
        return is_initialized(self._fs, self._repo_path)

    def open(self) -> Repository:
        """Open the repository; close the result to release the lock."""
        return open_repo(self._fs, self._repo_path, self._coordinator)

    def is_locked(self) -> bool:
        return is_locked(self._fs, self._repo_path, self._coordinator.lock_registry)

    def repo_version(self) -> int:
        """Return the layout version recorded on disk."""
        return read_repo_version(self._fs, self._repo_path)
