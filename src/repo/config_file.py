"""Repository configuration document.

The ``config`` file is a JSON object. Only the ``Datastore`` section and
the protected private key are interpreted; every other key round-trips
untouched.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
import json
from typing import Any, Mapping

from core.constants import (
    BLOCKS_LEAF_PATH,
    BLOCKS_METRICS_PREFIX,
    BLOCKS_MOUNTPOINT,
    DEFAULT_BLOOM_FILTER_SIZE,
    DEFAULT_GC_PERIOD,
    DEFAULT_STORAGE_GC_WATERMARK,
    DEFAULT_STORAGE_MAX,
    ROOT_LEAF_PATH,
    ROOT_METRICS_PREFIX,
    ROOT_MOUNTPOINT,
)
from core.errors import CairnConfigError
from fsio.atomic_file import write_atomic
from fsio.file_ops import read_bytes

DATASTORE_SECTION_KEY = "Datastore"


@dataclass(frozen=True)
class DatastoreSection:
    """Typed view of the ``Datastore`` config section.

    Attributes:
        spec: Datastore spec tree, None when absent.
        storage_max: Soft storage limit, for example ``10GB``.
        storage_gc_watermark: Percent of ``storage_max`` that triggers GC.
        gc_period: Interval between GC runs, for example ``1h``.
        bloom_filter_size: Bloom filter bytes, 0 to disable.
        no_sync: Legacy flag, ignored with a warning.
        legacy_type: Pre-spec datastore type, set only by old configs.
        legacy_path: Pre-spec datastore path, set only by old configs.
    """

    spec: Mapping[str, Any] | None = None
    storage_max: str = DEFAULT_STORAGE_MAX
    storage_gc_watermark: int = DEFAULT_STORAGE_GC_WATERMARK
    gc_period: str = DEFAULT_GC_PERIOD
    bloom_filter_size: int = DEFAULT_BLOOM_FILTER_SIZE
    no_sync: bool = False
    legacy_type: str | None = None
    legacy_path: str | None = None

    @classmethod
    def from_dict(cls, raw: object) -> "DatastoreSection":
        """Parse the raw section mapping.

        Raises:
            CairnConfigError: If a field has the wrong type.
        """
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise CairnConfigError(
                f"Config section '{DATASTORE_SECTION_KEY}' must be an object, "
                f"got {type(raw).__name__}."
            )
        spec = raw.get("Spec")
        if spec is not None and not isinstance(spec, Mapping):
            raise CairnConfigError("Config field 'Datastore.Spec' must be an object.")
        return cls(
            spec=copy.deepcopy(dict(spec)) if spec is not None else None,
            storage_max=_typed(raw, "StorageMax", str, DEFAULT_STORAGE_MAX),
            storage_gc_watermark=_typed(
                raw, "StorageGCWatermark", int, DEFAULT_STORAGE_GC_WATERMARK
            ),
            gc_period=_typed(raw, "GCPeriod", str, DEFAULT_GC_PERIOD),
            bloom_filter_size=_typed(raw, "BloomFilterSize", int, DEFAULT_BLOOM_FILTER_SIZE),
            no_sync=_typed(raw, "NoSync", bool, False),
            legacy_type=_typed(raw, "Type", str, None),
            legacy_path=_typed(raw, "Path", str, None),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "StorageMax": self.storage_max,
            "StorageGCWatermark": self.storage_gc_watermark,
            "GCPeriod": self.gc_period,
            "BloomFilterSize": self.bloom_filter_size,
            "Spec": copy.deepcopy(dict(self.spec)) if self.spec is not None else None,
        }
        if self.no_sync:
            payload["NoSync"] = True
        if self.legacy_type is not None:
            payload["Type"] = self.legacy_type
        if self.legacy_path is not None:
            payload["Path"] = self.legacy_path
        return payload


class RepoConfig:
    """Repository config document with a typed datastore view."""

    def __init__(self, document: Mapping[str, Any] | None = None) -> None:
        self._document: dict[str, Any] = copy.deepcopy(dict(document or {}))

    @property
    def datastore(self) -> DatastoreSection:
        return DatastoreSection.from_dict(self._document.get(DATASTORE_SECTION_KEY))

    def with_datastore(self, section: DatastoreSection) -> "RepoConfig":
        """Copy of this config with the datastore section replaced."""
        document = self.to_dict()
        document[DATASTORE_SECTION_KEY] = section.to_dict()
        return RepoConfig(document)

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._document)

    def to_bytes(self) -> bytes:
        return (json.dumps(self._document, indent=2) + "\n").encode("utf-8")

    @classmethod
    def from_bytes(cls, payload: bytes, source: str = "config") -> "RepoConfig":
        """Decode a JSON config document.

        Raises:
            CairnConfigError: If the payload is not a JSON object.
        """
        try:
            document = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as error:
            raise CairnConfigError(
                f"Failed to parse config at {source}: {error}. Fix the JSON and retry."
            ) from error
        if not isinstance(document, dict):
            raise CairnConfigError(
                f"Config at {source} must be a JSON object, got {type(document).__name__}."
            )
        return cls(document)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RepoConfig):
            return NotImplemented
        return self._document == other._document

    def __repr__(self) -> str:
        return f"RepoConfig({self._document!r})"


def default_datastore_spec() -> dict[str, Any]:
    """Spec for a blocks mount plus a root mount, each a measured leaf."""
    return {
        "type": "mount",
        "mounts": [
            {
                "mountpoint": BLOCKS_MOUNTPOINT,
                "type": "measure",
                "prefix": BLOCKS_METRICS_PREFIX,
                "child": {"type": "leaf", "path": BLOCKS_LEAF_PATH},
            },
            {
                "mountpoint": ROOT_MOUNTPOINT,
                "type": "measure",
                "prefix": ROOT_METRICS_PREFIX,
                "child": {"type": "leaf", "path": ROOT_LEAF_PATH},
            },
        ],
    }


def default_repo_config() -> RepoConfig:
    """Config written by ``init`` when the caller supplies none."""
    section = DatastoreSection(spec=default_datastore_spec())
    return RepoConfig({DATASTORE_SECTION_KEY: section.to_dict()})


def read_config_file(fs: Any, path: str) -> RepoConfig:
    """Load the config document at ``path``.

    Raises:
        CairnConfigError: If the file is missing, unreadable, or invalid.
    """
    try:
        payload = read_bytes(fs, path)
    except FileNotFoundError as error:
        raise CairnConfigError(
            f"Config file not found at {path}. Run 'cairn init' to create the repository."
        ) from error
    except OSError as error:
        raise CairnConfigError(
            f"Failed to read config at {path}: {error}. Check file permissions."
        ) from error
    return RepoConfig.from_bytes(payload, source=path)


def write_config_file(fs: Any, path: str, config: RepoConfig) -> None:
    """Atomically replace the config document at ``path``."""
    try:
        write_atomic(fs, path, config.to_bytes())
    except OSError as error:
        raise CairnConfigError(
            f"Failed to write config at {path}: {error}. Check file permissions."
        ) from error


def map_get_kv(document: Mapping[str, Any], key: str) -> Any:
    """Look up a dotted key such as ``Datastore.StorageMax``.

    Each segment matches exactly first, then case-insensitively.

    Raises:
        CairnConfigError: If any segment is missing or not an object.
    """
    current: Any = document
    walked: list[str] = []
    for segment in _split_key(key):
        if not isinstance(current, Mapping):
            raise CairnConfigError(
                f"Config key '{'.'.join(walked)}' is not an object; cannot read '{key}'."
            )
        matched = _match_segment(current, segment)
        if matched is None:
            raise CairnConfigError(f"Config key '{key}' not found. Check the key name.")
        walked.append(matched)
        current = current[matched]
    return current


def map_set_kv(document: dict[str, Any], key: str, value: Any) -> None:
    """Set a dotted key in place, creating intermediate objects.

    Existing segments are matched case-insensitively so a key keeps its
    stored spelling.

    Raises:
        CairnConfigError: If a segment on the way is not an object.
    """
    segments = _split_key(key)
    current: dict[str, Any] = document
    for index, segment in enumerate(segments):
        matched = _match_segment(current, segment) or segment
        if index == len(segments) - 1:
            current[matched] = value
            return
        child = current.get(matched)
        if child is None:
            child = {}
            current[matched] = child
        if not isinstance(child, dict):
            raise CairnConfigError(
                f"Config key '{'.'.join(segments[: index + 1])}' is not an object; "
                f"cannot set '{key}'."
            )
        current = child


def _split_key(key: str) -> list[str]:
    segments = key.split(".")
    if not key or any(not segment for segment in segments):
        raise CairnConfigError(
            f"Invalid config key '{key}'. Use dotted names like 'Datastore.GCPeriod'."
        )
    return segments


def _match_segment(mapping: Mapping[str, Any], segment: str) -> str | None:
    if segment in mapping:
        return segment
    lowered = segment.lower()
    for candidate in mapping:
        if isinstance(candidate, str) and candidate.lower() == lowered:
            return candidate
    return None


def _typed(raw: Mapping[str, Any], field_name: str, expected: type, default: Any) -> Any:
    value = raw.get(field_name)
    if value is None:
        return default
    if expected is int and isinstance(value, bool):
        raise CairnConfigError(f"Config field 'Datastore.{field_name}' must be an integer.")
    if not isinstance(value, expected):
        raise CairnConfigError(
            f"Config field 'Datastore.{field_name}' must be of type {expected.__name__}."
        )
    return value
