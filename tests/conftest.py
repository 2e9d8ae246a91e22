"""Pytest configuration for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator
from uuid import uuid4

import pytest
from fsspec.implementations.local import LocalFileSystem
from fsspec.implementations.memory import MemoryFileSystem


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture
def memory_fs() -> MemoryFileSystem:
    """In-memory fsspec filesystem; its store is shared process-wide."""
    return MemoryFileSystem()


@pytest.fixture
def memory_root(memory_fs: MemoryFileSystem) -> Iterator[str]:
    """Unique directory on the in-memory filesystem, removed afterwards."""
    root = f"/cairn-test-{uuid4().hex}"
    memory_fs.makedirs(root, exist_ok=True)
    yield root
    if memory_fs.exists(root):
        memory_fs.rm(root, recursive=True)


@pytest.fixture
def local_fs() -> LocalFileSystem:
    return LocalFileSystem()
