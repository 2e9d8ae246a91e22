"""Runtime settings model for Cairn.

This module owns all environment variable parsing and validation.
Other modules consume a typed settings object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any

import fsspec

from core.constants import DEFAULT_FS_PROTOCOL, DEFAULT_REPO_DIR
from core.errors import CairnConfigError


@dataclass(frozen=True)
class CairnSettings:
    """Validated runtime settings.

    Attributes:
        repo_path: Repository directory on the selected filesystem.
        fs_protocol: fsspec protocol name of the backing filesystem.
    """

    repo_path: str
    fs_protocol: str

    @classmethod
    def from_env(cls) -> "CairnSettings":
        """Build settings from process environment variables.

        Returns:
            A validated settings object.

        Raises:
            CairnConfigError: If environment values are invalid.
        """
        fs_protocol = _parse_protocol(os.getenv("CAIRN_FS", DEFAULT_FS_PROTOCOL))
        repo_path = _parse_repo_path(os.getenv("CAIRN_PATH", ""), fs_protocol)
        return cls(repo_path=repo_path, fs_protocol=fs_protocol)

    def filesystem(self) -> Any:
        """Instantiate the fsspec filesystem named by ``fs_protocol``."""
        return fsspec.filesystem(self.fs_protocol)


def _parse_protocol(raw_value: str) -> str:
    """Validate the filesystem protocol environment value.

    Args:
        raw_value: Raw string from environment.

    Returns:
        Normalized protocol name.

    Raises:
        CairnConfigError: If fsspec does not know the protocol.
    """
    protocol = raw_value.strip().lower()
    if protocol not in fsspec.available_protocols():
        raise CairnConfigError(
            f"Invalid CAIRN_FS value: unknown filesystem protocol '{raw_value}'. "
            "Set CAIRN_FS to an fsspec protocol such as 'file' or 'memory'."
        )
    return protocol


def _parse_repo_path(raw_value: str, fs_protocol: str) -> str:
    """Resolve the repository path, defaulting to the home directory.

    Args:
        raw_value: Raw CAIRN_PATH value, possibly empty.
        fs_protocol: Already validated protocol.

    Returns:
        Repository path string.

    Raises:
        CairnConfigError: If the home directory cannot be determined.
    """
    value = raw_value.strip()
    if value and fs_protocol != DEFAULT_FS_PROTOCOL:
        return value
    try:
        return str(Path(value or DEFAULT_REPO_DIR).expanduser())
    except RuntimeError as error:
        raise CairnConfigError(
            "Could not determine CAIRN_PATH: home directory is not set. "
            "Set CAIRN_PATH to an explicit repository directory."
        ) from error
