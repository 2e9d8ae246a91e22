"""Unit tests for core config parsing."""

from __future__ import annotations

import os

import pytest
from fsspec.implementations.memory import MemoryFileSystem

from core.config import CairnSettings
from core.errors import CairnConfigError


def test_from_env_reads_repo_path(monkeypatch: pytest.MonkeyPatch) -> None:
    """Settings should resolve the repo path from environment."""
    monkeypatch.setenv("CAIRN_PATH", "./.tmp-cairn")
    monkeypatch.delenv("CAIRN_FS", raising=False)

    settings = CairnSettings.from_env()

    assert settings.repo_path.endswith(".tmp-cairn") and settings.fs_protocol == "file"


def test_from_env_defaults_to_home_repo(monkeypatch: pytest.MonkeyPatch) -> None:
    """Without CAIRN_PATH the repo should live under the home directory."""
    monkeypatch.delenv("CAIRN_PATH", raising=False)
    monkeypatch.setenv("HOME", "/home/tester")

    settings = CairnSettings.from_env()

    assert settings.repo_path.endswith(".cairn")


def test_from_env_selects_memory_filesystem(monkeypatch: pytest.MonkeyPatch) -> None:
    """A memory protocol should build fsspec's in-memory filesystem."""
    monkeypatch.setenv("CAIRN_FS", "Memory")
    monkeypatch.setenv("CAIRN_PATH", "/repo")

    settings = CairnSettings.from_env()

    assert isinstance(settings.filesystem(), MemoryFileSystem) and settings.repo_path == "/repo"


def test_from_env_raises_for_unknown_protocol(monkeypatch: pytest.MonkeyPatch) -> None:
    """Settings should fail for filesystems fsspec does not know."""
    monkeypatch.setenv("CAIRN_FS", "not-a-protocol")

    with pytest.raises(CairnConfigError):
        CairnSettings.from_env()

    assert os.getenv("CAIRN_FS") == "not-a-protocol"
