"""Unit tests for loading datastore spec files."""

from __future__ import annotations

import pytest

from core.errors import DatastoreSpecError
from datastore.spec_file import load_spec_file


def test_loads_json_spec(tmp_path) -> None:
    """JSON spec files should load as mappings."""
    spec_file = tmp_path / "spec.json"
    spec_file.write_text('{"type": "leaf", "path": "flat"}', encoding="utf-8")

    assert load_spec_file(str(spec_file)) == {"type": "leaf", "path": "flat"}


def test_loads_yaml_mount_spec(tmp_path) -> None:
    """YAML spec files should load nested mount tables."""
    spec_file = tmp_path / "spec.yaml"
    spec_file.write_text(
        "type: mount\nmounts:\n  - mountpoint: /\n    type: mem\n",
        encoding="utf-8",
    )

    assert load_spec_file(str(spec_file))["mounts"] == [{"mountpoint": "/", "type": "mem"}]


def test_missing_file_is_reported(tmp_path) -> None:
    """A missing spec file should raise a spec error."""
    with pytest.raises(DatastoreSpecError, match="does not exist"):
        load_spec_file(str(tmp_path / "absent.yaml"))


def test_non_mapping_root_is_rejected(tmp_path) -> None:
    """A spec must be a mapping at the root."""
    spec_file = tmp_path / "spec.yaml"
    spec_file.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(DatastoreSpecError):
        load_spec_file(str(spec_file))
