"""Unit tests for repository init and open."""

from __future__ import annotations

import json

import pytest

from core.errors import (
    CairnConfigError,
    LegacyRepoError,
    NeedsMigrationError,
    NoVersionError,
    NotInitializedError,
    ProgramVersionTooLowError,
    RepoLockedError,
    SpecMismatchError,
)
from lock.process_lock import LockRegistry, is_locked
from repo.config_file import RepoConfig, default_repo_config
from repo.coordinator import RepoCoordinator
from repo.lifecycle import init_repo, is_initialized, open_repo


def _repo(memory_root: str) -> str:
    return f"{memory_root}/repo"


def test_init_lays_out_repository(memory_fs, memory_root) -> None:
    """Init should write config, DiskSpec, and version files."""
    repo_path = _repo(memory_root)
    init_repo(memory_fs, repo_path, coordinator=RepoCoordinator())

    assert (
        is_initialized(memory_fs, repo_path),
        memory_fs.cat_file(f"{repo_path}/version"),
        json.loads(memory_fs.cat_file(f"{repo_path}/datastore_spec"))["type"],
    ) == (True, b"11\n", "mount")


def test_init_is_idempotent(memory_fs, memory_root) -> None:
    """A second init should leave existing files untouched."""
    repo_path = _repo(memory_root)
    coordinator = RepoCoordinator()
    init_repo(memory_fs, repo_path, coordinator=coordinator)
    names = ("config", "datastore_spec", "version")
    before = [memory_fs.cat_file(f"{repo_path}/{name}") for name in names]
    custom = RepoConfig({"Datastore": {"Spec": {"type": "mem"}}})

    init_repo(memory_fs, repo_path, custom, coordinator=coordinator)

    assert [memory_fs.cat_file(f"{repo_path}/{name}") for name in names] == before


def test_init_completes_interrupted_layout(memory_fs, memory_root) -> None:
    """Init should finish a repository that only has its config file."""
    repo_path = _repo(memory_root)
    coordinator = RepoCoordinator()
    memory_fs.pipe_file(f"{repo_path}/config", default_repo_config().to_bytes())

    init_repo(memory_fs, repo_path, coordinator=coordinator)

    with open_repo(memory_fs, repo_path, coordinator=coordinator) as repository:
        repository.datastore().put("/k", b"v")
    assert memory_fs.cat_file(f"{repo_path}/version") == b"11\n"


def test_init_keeps_existing_config_when_completing(memory_fs, memory_root) -> None:
    """Resuming init should derive the DiskSpec from the stored config."""
    repo_path = _repo(memory_root)
    stored = RepoConfig({"Datastore": {"Spec": {"type": "leaf", "path": "only"}}})
    memory_fs.pipe_file(f"{repo_path}/config", stored.to_bytes())

    init_repo(memory_fs, repo_path, coordinator=RepoCoordinator())

    assert json.loads(memory_fs.cat_file(f"{repo_path}/datastore_spec")) == {
        "path": "only",
        "type": "leaf",
    }


def test_init_rejects_config_without_spec(memory_fs, memory_root) -> None:
    """Init needs a datastore spec to record a DiskSpec."""
    with pytest.raises(CairnConfigError):
        init_repo(memory_fs, _repo(memory_root), RepoConfig({}), coordinator=RepoCoordinator())


def test_open_uninitialized_path_fails(memory_fs, memory_root) -> None:
    """Opening an empty directory should report it is not initialized."""
    with pytest.raises(NotInitializedError):
        open_repo(memory_fs, _repo(memory_root), coordinator=RepoCoordinator())


def test_open_hints_at_legacy_repository(memory_fs, memory_root) -> None:
    """A legacy sibling directory should produce a migration hint."""
    memory_fs.makedirs(f"{memory_root}/.cairn-v0", exist_ok=True)
    memory_fs.pipe_file(f"{memory_root}/.cairn-v0/config", b"{}")

    with pytest.raises(LegacyRepoError):
        open_repo(memory_fs, f"{memory_root}/.cairn", coordinator=RepoCoordinator())


@pytest.mark.parametrize(
    ("persisted", "expected_error"),
    [(10, NeedsMigrationError), (12, ProgramVersionTooLowError)],
)
def test_version_gate(memory_fs, memory_root, persisted: int, expected_error) -> None:
    """Older repos need migration; newer repos need a newer program."""
    repo_path = _repo(memory_root)
    coordinator = RepoCoordinator()
    init_repo(memory_fs, repo_path, coordinator=coordinator)
    memory_fs.pipe_file(f"{repo_path}/version", f"{persisted}\n".encode("utf-8"))

    with pytest.raises(expected_error):
        open_repo(memory_fs, repo_path, coordinator=coordinator)


def test_matching_version_opens(memory_fs, memory_root) -> None:
    """A repo at the expected version should open."""
    repo_path = _repo(memory_root)
    coordinator = RepoCoordinator()
    init_repo(memory_fs, repo_path, coordinator=coordinator)

    with open_repo(memory_fs, repo_path, coordinator=coordinator) as repository:
        opened = not repository.closed

    assert opened


def test_missing_version_file(memory_fs, memory_root) -> None:
    """A repo without a version file should not open."""
    repo_path = _repo(memory_root)
    coordinator = RepoCoordinator()
    init_repo(memory_fs, repo_path, coordinator=coordinator)
    memory_fs.rm_file(f"{repo_path}/version")

    with pytest.raises(NoVersionError):
        open_repo(memory_fs, repo_path, coordinator=coordinator)


def test_failed_open_releases_lock(memory_fs, memory_root) -> None:
    """Any failure after locking should leave the repo unlocked."""
    repo_path = _repo(memory_root)
    coordinator = RepoCoordinator()
    init_repo(memory_fs, repo_path, coordinator=coordinator)
    memory_fs.pipe_file(f"{repo_path}/version", b"12\n")

    with pytest.raises(ProgramVersionTooLowError):
        open_repo(memory_fs, repo_path, coordinator=coordinator)

    assert not is_locked(memory_fs, repo_path, coordinator.lock_registry)


def test_spec_drift_is_detected(memory_fs, memory_root) -> None:
    """Changing the on-disk layout in config should refuse to open."""
    repo_path = _repo(memory_root)
    coordinator = RepoCoordinator()
    init_repo(memory_fs, repo_path, coordinator=coordinator)
    config = json.loads(memory_fs.cat_file(f"{repo_path}/config"))
    config["Datastore"]["Spec"]["mounts"][0]["child"]["path"] = "moved-blocks"
    memory_fs.pipe_file(f"{repo_path}/config", json.dumps(config).encode("utf-8"))

    with pytest.raises(SpecMismatchError):
        open_repo(memory_fs, repo_path, coordinator=coordinator)


def test_wrapper_only_change_is_not_drift(memory_fs, memory_root) -> None:
    """Adding a log wrapper should not alter the DiskSpec."""
    repo_path = _repo(memory_root)
    coordinator = RepoCoordinator()
    init_repo(memory_fs, repo_path, coordinator=coordinator)
    config = json.loads(memory_fs.cat_file(f"{repo_path}/config"))
    spec = config["Datastore"]["Spec"]
    config["Datastore"]["Spec"] = {"type": "log", "name": "root", "child": spec}
    memory_fs.pipe_file(f"{repo_path}/config", json.dumps(config).encode("utf-8"))

    with open_repo(memory_fs, repo_path, coordinator=coordinator) as repository:
        repository.datastore().put("/k", b"v")

    assert memory_fs.cat_file(f"{repo_path}/datastore/k.dsobject") == b"v"


def test_reordered_mounts_are_not_drift(memory_fs, memory_root) -> None:
    """Listing the mounts in another order should still open the repository."""
    repo_path = _repo(memory_root)
    coordinator = RepoCoordinator()
    init_repo(memory_fs, repo_path, coordinator=coordinator)
    config = json.loads(memory_fs.cat_file(f"{repo_path}/config"))
    config["Datastore"]["Spec"]["mounts"].reverse()
    memory_fs.pipe_file(f"{repo_path}/config", json.dumps(config).encode("utf-8"))

    with open_repo(memory_fs, repo_path, coordinator=coordinator) as repository:
        repository.datastore().put("/blocks/b", b"v")

    assert memory_fs.cat_file(f"{repo_path}/blocks/b.dsobject") == b"v"


def test_legacy_datastore_config_is_rejected(memory_fs, memory_root) -> None:
    """Pre-spec datastore configs should ask for migration."""
    repo_path = _repo(memory_root)
    coordinator = RepoCoordinator()
    init_repo(memory_fs, repo_path, coordinator=coordinator)
    legacy = {"Datastore": {"Type": "leveldb", "Path": "datastore"}}
    memory_fs.pipe_file(f"{repo_path}/config", json.dumps(legacy).encode("utf-8"))

    with pytest.raises(CairnConfigError, match="legacy"):
        open_repo(memory_fs, repo_path, coordinator=coordinator)


def test_second_open_in_process_is_locked_by_us(memory_fs, memory_root) -> None:
    """Only one open handle per repository per coordinator is allowed."""
    repo_path = _repo(memory_root)
    coordinator = RepoCoordinator()
    init_repo(memory_fs, repo_path, coordinator=coordinator)
    repository = open_repo(memory_fs, repo_path, coordinator=coordinator)

    with pytest.raises(RepoLockedError) as error_info:
        open_repo(memory_fs, repo_path, coordinator=coordinator)
    repository.close()

    assert error_info.value.kind == "by_us"


def test_open_from_other_coordinator_is_locked_by_other(memory_fs, memory_root) -> None:
    """A separate registry should see a live owner."""
    repo_path = _repo(memory_root)
    init_repo(memory_fs, repo_path, coordinator=RepoCoordinator())
    repository = open_repo(memory_fs, repo_path, coordinator=RepoCoordinator())

    with pytest.raises(RepoLockedError) as error_info:
        open_repo(memory_fs, repo_path, coordinator=RepoCoordinator(LockRegistry()))
    repository.close()

    assert error_info.value.kind == "by_other"


def test_custom_spec_is_persisted(memory_fs, memory_root) -> None:
    """Init should record the DiskSpec of a caller-supplied spec."""
    repo_path = _repo(memory_root)
    config = default_repo_config()
    document = config.to_dict()
    document["Datastore"]["Spec"] = {"type": "leaf", "path": "flat"}
    init_repo(memory_fs, repo_path, RepoConfig(document), coordinator=RepoCoordinator())

    assert memory_fs.cat_file(f"{repo_path}/datastore_spec") == b'{"path":"flat","type":"leaf"}'
