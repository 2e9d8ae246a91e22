"""Field parsing helpers for datastore spec trees.

Every helper raises ``DatastoreSpecError`` naming the offending field so
a malformed spec fails as a whole with one actionable message.
"""

from __future__ import annotations

from typing import Mapping, Sequence

from core.errors import DatastoreSpecError


def expect_mapping(value: object, context: str) -> Mapping[str, object]:
    """Return ``value`` as a string-keyed mapping."""
    if isinstance(value, Mapping):
        normalized_mapping = {}
        for key, payload in value.items():
            if not isinstance(key, str):
                raise DatastoreSpecError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
            normalized_mapping[key] = payload
        return normalized_mapping
    raise DatastoreSpecError(
        f"Invalid {context}: expected object mapping, got {type(value).__name__}."
    )


def expect_sequence(value: object, context: str) -> Sequence[object]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return value
    raise DatastoreSpecError(f"Invalid {context}: expected list, got {type(value).__name__}.")


def required_string(spec: Mapping[str, object], field_name: str, context: str) -> str:
    """Read a required non-empty string field from one spec node."""
    value = spec.get(field_name)
    if value is None:
        raise DatastoreSpecError(f"Invalid {context}: missing required field '{field_name}'.")
    if not isinstance(value, str):
        raise DatastoreSpecError(f"Invalid {context}: field '{field_name}' must be a string.")
    stripped = value.strip()
    if not stripped:
        raise DatastoreSpecError(f"Invalid {context}: field '{field_name}' must not be empty.")
    return stripped


def required_mapping(
    spec: Mapping[str, object], field_name: str, context: str
) -> Mapping[str, object]:
    """Read a required nested spec mapping."""
    if field_name not in spec or spec[field_name] is None:
        raise DatastoreSpecError(f"Invalid {context}: missing required field '{field_name}'.")
    return expect_mapping(spec[field_name], f"{context} field '{field_name}'")


def required_sequence(
    spec: Mapping[str, object], field_name: str, context: str
) -> Sequence[object]:
    """Read a required list field."""
    if field_name not in spec or spec[field_name] is None:
        raise DatastoreSpecError(f"Invalid {context}: missing required field '{field_name}'.")
    return expect_sequence(spec[field_name], f"{context} field '{field_name}'")
