"""Hierarchical datastore keys.

Keys are slash-delimited, case-sensitive strings that always start with
``/`` and never end with one (except the root key). Ordering is plain
string ordering.
"""

from __future__ import annotations

from dataclasses import dataclass
import posixpath


@dataclass(frozen=True, order=True)
class StoreKey:
    """Cleaned datastore key.

    Attributes:
        value: Canonical key string, e.g. ``/blocks/abc``.
    """

    value: str

    @classmethod
    def of(cls, raw: "str | StoreKey") -> "StoreKey":
        """Build a key from a raw string, cleaning it into canonical form."""
        if isinstance(raw, StoreKey):
            return raw
        return cls(clean_key(raw))

    def __str__(self) -> str:
        return self.value

    @property
    def is_root(self) -> bool:
        return self.value == "/"

    @property
    def name(self) -> str:
        """Last path segment of the key."""
        return self.value.rsplit("/", 1)[-1]

    def parent(self) -> "StoreKey":
        """Key one segment up; the root is its own parent."""
        return StoreKey(posixpath.dirname(self.value) or "/")

    def child(self, name: str) -> "StoreKey":
        """Key for ``name`` nested under this key."""
        return StoreKey.of(f"{self.value}/{name}")

    def is_ancestor_of(self, other: "StoreKey") -> bool:
        """Segment-aware ancestry: ``/a`` contains ``/a/b`` but not ``/ab``."""
        if self.is_root:
            return not other.is_root
        return other.value.startswith(self.value + "/")

    def is_descendant_of(self, other: "StoreKey") -> bool:
        return other.is_ancestor_of(self)

    def relative_to(self, prefix: "StoreKey") -> "StoreKey":
        """Strip ``prefix`` from this key, keeping the remainder rooted.

        Raises:
            ValueError: If ``prefix`` neither equals nor contains this key.
        """
        if prefix == self:
            return StoreKey("/")
        if not prefix.is_ancestor_of(self):
            raise ValueError(f"Key {self.value} is not under {prefix.value}.")
        if prefix.is_root:
            return self
        return StoreKey(self.value[len(prefix.value) :])

    def rebase(self, prefix: "StoreKey") -> "StoreKey":
        """Nest this key under ``prefix``."""
        if prefix.is_root:
            return self
        if self.is_root:
            return prefix
        return StoreKey(prefix.value + self.value)


def clean_key(raw: str) -> str:
    """Normalize a raw key string into canonical form."""
    cleaned = posixpath.normpath("/" + raw)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned
