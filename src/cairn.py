"""Public SDK surface for Cairn.

This module provides a stable import path for library users.
It re-exports the client, lifecycle functions, and datastore building blocks.
"""

from __future__ import annotations

from core.config import CairnSettings
from datastore.base import Datastore
from datastore.composition import (
    DEFAULT_REGISTRY,
    DatastoreConfig,
    DatastoreRegistry,
    DiskSpec,
    build_store,
    disk_spec_for,
)
from datastore.keys import StoreKey
from datastore.query import Query, QueryEntry, QueryOrder
from lock.liveness import ProcessLiveness, probe_process
from lock.process_lock import LockHandle, LockRegistry, acquire_lock, is_locked, lock_repo
from repo.client import CairnClient
from repo.config_file import RepoConfig, default_datastore_spec, default_repo_config
from repo.coordinator import RepoCoordinator
from repo.lifecycle import init_repo, is_initialized, open_repo
from repo.repository import Repository

__all__ = [
    "CairnClient",
    "CairnSettings",
    "DEFAULT_REGISTRY",
    "Datastore",
    "DatastoreConfig",
    "DatastoreRegistry",
    "DiskSpec",
    "LockHandle",
    "LockRegistry",
    "ProcessLiveness",
    "Query",
    "QueryEntry",
    "QueryOrder",
    "RepoConfig",
    "RepoCoordinator",
    "Repository",
    "StoreKey",
    "acquire_lock",
    "build_store",
    "default_datastore_spec",
    "default_repo_config",
    "disk_spec_for",
    "init_repo",
    "is_initialized",
    "is_locked",
    "lock_repo",
    "open_repo",
    "probe_process",
]
