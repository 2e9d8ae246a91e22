"""Loading datastore specs from declarative files.

YAML is a superset of JSON, so one loader accepts both formats.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, cast

from core.errors import CairnDependencyError, DatastoreSpecError
from datastore.spec_fields import expect_mapping


def load_spec_file(spec_path: str) -> dict[str, Any]:
    """Load a datastore spec tree from a YAML or JSON file.

    Args:
        spec_path: Local file path.

    Returns:
        Spec mapping, not yet validated against a registry.

    Raises:
        CairnDependencyError: If PyYAML is unavailable.
        DatastoreSpecError: If the file is missing, unreadable, or not a mapping.
    """
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise CairnDependencyError(
            "Datastore spec files require PyYAML. Install with 'pip install pyyaml'."
        ) from error
    spec_file = Path(spec_path).expanduser().resolve()
    if not spec_file.exists():
        raise DatastoreSpecError(
            f"Datastore spec file does not exist at {spec_file}. Provide a valid file path."
        )
    try:
        payload = cast(object, yaml.safe_load(spec_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise DatastoreSpecError(
            f"Failed to read datastore spec at {spec_file}: {error}. Check file permissions."
        ) from error
    except yaml.YAMLError as error:
        raise DatastoreSpecError(
            f"Failed to parse datastore spec at {spec_file}: {error}. Fix the syntax and retry."
        ) from error
    if payload is None:
        raise DatastoreSpecError(f"Datastore spec at {spec_file} is empty. Define a 'type'.")
    return dict(expect_mapping(payload, f"datastore spec at {spec_file}"))
