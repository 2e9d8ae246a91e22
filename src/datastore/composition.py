"""Datastore composition engine.

A datastore spec is a JSON-like tree of nodes keyed by ``type``. The
registry turns each node into a ``DatastoreConfig`` that can report its
persisted ``DiskSpec`` and build the live store tree it describes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import json
import posixpath
from typing import Any, Callable, Mapping

from core.constants import MAX_SPEC_DEPTH
from core.errors import CairnPermissionError, CairnStoreError, DatastoreSpecError
from core.logging_config import get_logger
from datastore.base import Datastore
from datastore.keys import StoreKey
from datastore.leaf_store import LeafStore
from datastore.log_store import LogStore
from datastore.measure_store import MeasureStore
from datastore.memory_store import MemoryStore
from datastore.mount_store import Mount, MountStore
from datastore.spec_fields import (
    expect_mapping,
    required_mapping,
    required_sequence,
    required_string,
)
from fsio.file_ops import ensure_dir, join_path

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class DiskSpec:
    """Minimal description of on-disk layout.

    Two trees with equal DiskSpecs read and write the same files, even if
    their wrapper layers differ.
    """

    payload: Mapping[str, Any] | None

    def to_string(self) -> str:
        """Canonical JSON: sorted keys, no whitespace."""
        return json.dumps(self.payload, sort_keys=True, separators=(",", ":"))

    def to_bytes(self) -> bytes:
        return self.to_string().encode("utf-8")


class DatastoreConfig(ABC):
    """Parsed spec node able to describe and construct its store."""

    @abstractmethod
    def disk_spec(self) -> DiskSpec:
        """Return the on-disk layout this node produces."""

    @abstractmethod
    def create(self, fs: Any, repo_path: str) -> Datastore:
        """Build the live store rooted at ``repo_path``."""


DatastoreFactory = Callable[[Mapping[str, object], "DatastoreRegistry", int], DatastoreConfig]


class DatastoreRegistry:
    """Mapping from spec ``type`` names to config factories."""

    def __init__(self) -> None:
        self._factories: dict[str, DatastoreFactory] = {}

    def register(self, type_name: str, factory: DatastoreFactory) -> None:
        """Register a factory for ``type_name``.

        Raises:
            DatastoreSpecError: If the name is already registered.
        """
        if type_name in self._factories:
            raise DatastoreSpecError(
                f"Datastore type '{type_name}' is already registered. Choose a different name."
            )
        self._factories[type_name] = factory

    def types(self) -> tuple[str, ...]:
        return tuple(sorted(self._factories))

    def parse(self, spec: object, depth: int = 1) -> DatastoreConfig:
        """Parse one spec node and its children.

        Args:
            spec: Spec mapping with a ``type`` field.
            depth: Nesting level of this node, 1 for the root.

        Returns:
            Config for the node.

        Raises:
            DatastoreSpecError: If any node is malformed, names an unknown
                type, or nesting exceeds ``MAX_SPEC_DEPTH``.
        """
        if depth > MAX_SPEC_DEPTH:
            raise DatastoreSpecError(
                f"Datastore spec nests deeper than {MAX_SPEC_DEPTH} levels. "
                "Flatten the datastore tree."
            )
        node = expect_mapping(spec, "datastore spec")
        type_name = required_string(node, "type", "datastore spec")
        factory = self._factories.get(type_name)
        if factory is None:
            supported_rows = ", ".join(self.types())
            raise DatastoreSpecError(
                f"Unknown datastore type '{type_name}'. Use one of: {supported_rows}."
            )
        return factory(node, self, depth)


class MemConfig(DatastoreConfig):
    """Volatile in-memory store with no disk footprint."""

    def disk_spec(self) -> DiskSpec:
        return DiskSpec(None)

    def create(self, fs: Any, repo_path: str) -> Datastore:
        return MemoryStore()


@dataclass(frozen=True)
class LogConfig(DatastoreConfig):
    child: DatastoreConfig
    name: str

    def disk_spec(self) -> DiskSpec:
        return self.child.disk_spec()

    def create(self, fs: Any, repo_path: str) -> Datastore:
        return LogStore(self.child.create(fs, repo_path), self.name)


@dataclass(frozen=True)
class MeasureConfig(DatastoreConfig):
    child: DatastoreConfig
    prefix: str

    def disk_spec(self) -> DiskSpec:
        return self.child.disk_spec()

    def create(self, fs: Any, repo_path: str) -> Datastore:
        return MeasureStore(self.child.create(fs, repo_path), self.prefix)


@dataclass(frozen=True)
class LeafConfig(DatastoreConfig):
    """File-per-key store under ``path``, relative to the repo unless absolute."""

    path: str

    def disk_spec(self) -> DiskSpec:
        return DiskSpec({"type": "leaf", "path": self.path})

    def create(self, fs: Any, repo_path: str) -> Datastore:
        root = self.path if posixpath.isabs(self.path) else join_path(repo_path, self.path)
        try:
            ensure_dir(fs, root)
        except PermissionError as error:
            raise CairnPermissionError(
                f"Permission denied creating datastore directory {root}. Check permissions."
            ) from error
        except OSError as error:
            raise CairnStoreError(
                f"Failed to create datastore directory {root}: {error}."
            ) from error
        return LeafStore(fs, root)


@dataclass(frozen=True)
class MountConfig(DatastoreConfig):
    """Mount table sorted by mountpoint, descending."""

    mounts: tuple[tuple[StoreKey, DatastoreConfig], ...]

    def disk_spec(self) -> DiskSpec:
        mount_rows = []
        for prefix, child in self.mounts:
            child_payload = dict(child.disk_spec().payload or {})
            child_payload["mountpoint"] = prefix.value
            mount_rows.append(child_payload)
        return DiskSpec({"type": "mount", "mounts": mount_rows})

    def create(self, fs: Any, repo_path: str) -> Datastore:
        built: list[Mount] = []
        try:
            for prefix, child in self.mounts:
                built.append(Mount(prefix=prefix, store=child.create(fs, repo_path)))
        except Exception:
            for mount in built:
                try:
                    mount.store.close()
                except Exception as close_error:  # noqa: BLE001
                    _LOGGER.warning(
                        "mount_cleanup_failed", prefix=str(mount.prefix), error=str(close_error)
                    )
            raise
        return MountStore(built)


def _parse_mem(
    spec: Mapping[str, object], registry: DatastoreRegistry, depth: int
) -> DatastoreConfig:
    return MemConfig()


def _parse_log(
    spec: Mapping[str, object], registry: DatastoreRegistry, depth: int
) -> DatastoreConfig:
    name = required_string(spec, "name", "log datastore spec")
    child_spec = required_mapping(spec, "child", "log datastore spec")
    return LogConfig(child=registry.parse(child_spec, depth + 1), name=name)


def _parse_measure(
    spec: Mapping[str, object], registry: DatastoreRegistry, depth: int
) -> DatastoreConfig:
    prefix = required_string(spec, "prefix", "measure datastore spec")
    child_spec = required_mapping(spec, "child", "measure datastore spec")
    return MeasureConfig(child=registry.parse(child_spec, depth + 1), prefix=prefix)


def _parse_leaf(
    spec: Mapping[str, object], registry: DatastoreRegistry, depth: int
) -> DatastoreConfig:
    return LeafConfig(path=required_string(spec, "path", "leaf datastore spec"))


def _parse_mount(
    spec: Mapping[str, object], registry: DatastoreRegistry, depth: int
) -> DatastoreConfig:
    mount_rows = required_sequence(spec, "mounts", "mount datastore spec")
    parsed: list[tuple[StoreKey, DatastoreConfig]] = []
    seen: set[str] = set()
    for index, mount_value in enumerate(mount_rows):
        context = f"mount datastore spec entry #{index + 1}"
        mount_mapping = expect_mapping(mount_value, context)
        prefix = StoreKey.of(required_string(mount_mapping, "mountpoint", context))
        if prefix.value in seen:
            raise DatastoreSpecError(
                f"Invalid {context}: duplicate mountpoint '{prefix}'. Use unique mountpoints."
            )
        seen.add(prefix.value)
        child_spec = {key: value for key, value in mount_mapping.items() if key != "mountpoint"}
        parsed.append((prefix, registry.parse(child_spec, depth + 1)))
    parsed.sort(key=lambda row: row[0].value, reverse=True)
    return MountConfig(mounts=tuple(parsed))


def default_registry() -> DatastoreRegistry:
    """Build a registry holding the built-in datastore types."""
    registry = DatastoreRegistry()
    registry.register("mem", _parse_mem)
    registry.register("log", _parse_log)
    registry.register("measure", _parse_measure)
    registry.register("mount", _parse_mount)
    registry.register("leaf", _parse_leaf)
    return registry


DEFAULT_REGISTRY = default_registry()


def parse_spec(spec: object, registry: DatastoreRegistry | None = None) -> DatastoreConfig:
    return (registry or DEFAULT_REGISTRY).parse(spec)


def build_store(
    spec: object,
    fs: Any,
    repo_path: str,
    registry: DatastoreRegistry | None = None,
) -> Datastore:
    """Parse ``spec`` and build its live store tree.

    Args:
        spec: Datastore spec mapping.
        fs: fsspec filesystem backing leaf stores.
        repo_path: Directory relative leaf paths resolve against.
        registry: Type registry, the built-ins when omitted.

    Returns:
        Root datastore of the tree.
    """
    return parse_spec(spec, registry).create(fs, repo_path)


def disk_spec_for(spec: object, registry: DatastoreRegistry | None = None) -> DiskSpec:
    """Return the DiskSpec the given spec would persist."""
    return parse_spec(spec, registry).disk_spec()
