"""Unit tests for the repository lock-file protocol."""

from __future__ import annotations

import json
import os
import subprocess
import sys

import pytest

from core.errors import LockContentsError, LockCreateError, RepoLockedError
from lock.liveness import ProcessLiveness
from lock.process_lock import LockRegistry, acquire_lock, is_locked, lock_repo


def _write_lock(fs, repo_dir: str, payload: bytes) -> str:
    path = f"{repo_dir}/repo.lock"
    fs.pipe_file(path, payload)
    return path


def _probe(liveness: ProcessLiveness):
    return lambda pid: liveness


def test_acquire_writes_owner_pid(memory_fs, memory_root) -> None:
    """The lock file should record this process as owner."""
    handle = lock_repo(memory_fs, memory_root, LockRegistry())

    assert json.loads(memory_fs.cat_file(handle.path)) == {"owner_pid": os.getpid()}


def test_second_acquire_in_same_registry_is_by_us(memory_fs, memory_root) -> None:
    """Re-locking a held path in one process should report by_us."""
    registry = LockRegistry()
    lock_repo(memory_fs, memory_root, registry)

    with pytest.raises(RepoLockedError) as error_info:
        lock_repo(memory_fs, memory_root, registry)

    assert error_info.value.kind == "by_us"


def test_live_owner_in_other_registry_is_by_other(memory_fs, memory_root) -> None:
    """A lock held by a live process should block a separate registry."""
    lock_repo(memory_fs, memory_root, LockRegistry())

    with pytest.raises(RepoLockedError) as error_info:
        lock_repo(memory_fs, memory_root, LockRegistry())

    assert error_info.value.kind == "by_other"


def test_release_allows_reacquire(memory_fs, memory_root) -> None:
    """After release, the next acquire should succeed and own the file."""
    registry = LockRegistry()
    lock_repo(memory_fs, memory_root, registry).release()

    handle = lock_repo(memory_fs, memory_root, registry)

    assert registry.held_paths() == (handle.path,)


def test_release_deletes_file_and_is_idempotent(memory_fs, memory_root) -> None:
    """Releasing twice should be harmless and leave no lock file."""
    handle = lock_repo(memory_fs, memory_root, LockRegistry())
    handle.release()
    handle.release()

    assert not memory_fs.exists(handle.path)


def test_context_manager_releases(memory_fs, memory_root) -> None:
    """Leaving the with-block should release the lock."""
    registry = LockRegistry()
    with lock_repo(memory_fs, memory_root, registry):
        pass

    assert registry.held_paths() == ()


def test_stale_lock_from_dead_owner_is_replaced(memory_fs, memory_root) -> None:
    """A lock whose owner is dead should be taken over."""
    _write_lock(memory_fs, memory_root, b'{"owner_pid": 424242}')

    handle = lock_repo(memory_fs, memory_root, LockRegistry(), probe=_probe(ProcessLiveness.DEAD))

    assert handle.owner_pid == os.getpid()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX liveness probe")
def test_stale_lock_from_exited_process_is_replaced(local_fs, tmp_path) -> None:
    """A lock left by a real exited process should be recovered."""
    child = subprocess.Popen([sys.executable, "-c", "pass"])
    child.wait()
    (tmp_path / "repo.lock").write_text(json.dumps({"owner_pid": child.pid}), encoding="utf-8")

    handle = lock_repo(local_fs, tmp_path.as_posix(), LockRegistry())

    assert json.loads((tmp_path / "repo.lock").read_text(encoding="utf-8")) == {
        "owner_pid": handle.owner_pid
    }


def test_unprobeable_owner_is_indeterminate(memory_fs, memory_root) -> None:
    """Unknown liveness should block acquisition without stealing the lock."""
    _write_lock(memory_fs, memory_root, b'{"owner_pid": 7}')

    with pytest.raises(RepoLockedError) as error_info:
        lock_repo(memory_fs, memory_root, LockRegistry(), probe=_probe(ProcessLiveness.UNKNOWN))

    assert error_info.value.kind == "indeterminate"


@pytest.mark.parametrize("payload", [b"not json", b'{"pid": 1}', b'{"owner_pid": "1"}', b"[1]"])
def test_invalid_lock_contents_are_kept(memory_fs, memory_root, payload: bytes) -> None:
    """Undecodable lock files should fail and stay on disk."""
    path = _write_lock(memory_fs, memory_root, payload)

    with pytest.raises(LockContentsError):
        lock_repo(memory_fs, memory_root, LockRegistry())

    assert memory_fs.cat_file(path) == payload


def test_empty_lock_file_blocks_creation(memory_fs, memory_root) -> None:
    """An empty leftover lock file should fail the exclusive create."""
    _write_lock(memory_fs, memory_root, b"")

    with pytest.raises(LockCreateError):
        lock_repo(memory_fs, memory_root, LockRegistry())


def test_is_locked_probes_without_holding(memory_fs, memory_root) -> None:
    """Probing an unlocked repo should leave it unlocked."""
    registry = LockRegistry()
    first = is_locked(memory_fs, memory_root, registry)

    assert (first, memory_fs.exists(f"{memory_root}/repo.lock")) == (False, False)


def test_is_locked_reports_held_lock(memory_fs, memory_root) -> None:
    """A held lock should be reported from any registry."""
    lock_repo(memory_fs, memory_root, LockRegistry())

    assert is_locked(memory_fs, memory_root, LockRegistry())


def test_acquire_lock_normalizes_path(memory_fs, memory_root) -> None:
    """Equivalent spellings of a path should count as the same lock."""
    registry = LockRegistry()
    acquire_lock(memory_fs, f"{memory_root}/repo.lock", registry)

    with pytest.raises(RepoLockedError):
        acquire_lock(memory_fs, f"{memory_root}/./sub/../repo.lock", registry)


def test_is_locked_on_missing_directory_is_false(local_fs, tmp_path) -> None:
    """A repository directory that does not exist is not locked."""
    missing = (tmp_path / "absent").as_posix()

    assert is_locked(local_fs, missing, LockRegistry()) is False
