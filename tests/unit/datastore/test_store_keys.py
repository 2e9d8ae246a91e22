"""Unit tests for datastore key normalization and ancestry."""

from __future__ import annotations

import pytest

from datastore.keys import StoreKey, clean_key


def test_clean_key_collapses_dots_and_slashes() -> None:
    """Raw keys should normalize to one rooted canonical form."""
    cleaned = clean_key("a//b/./c/../d/")

    assert cleaned == "/a/b/d"


def test_clean_key_maps_empty_to_root() -> None:
    """An empty key should normalize to the root key."""
    assert clean_key("") == "/"


def test_ancestry_is_segment_aware() -> None:
    """A prefix should contain its children but not siblings sharing text."""
    prefix = StoreKey.of("/a")

    contains_child = prefix.is_ancestor_of(StoreKey.of("/a/b"))
    contains_sibling = prefix.is_ancestor_of(StoreKey.of("/ab"))

    assert contains_child and not contains_sibling


def test_root_is_ancestor_of_every_other_key() -> None:
    """Root should be an ancestor of non-root keys only."""
    root = StoreKey.of("/")

    assert root.is_ancestor_of(StoreKey.of("/x")) and not root.is_ancestor_of(root)


def test_relative_to_strips_prefix() -> None:
    """Stripping a mount prefix should leave a rooted residual key."""
    residual = StoreKey.of("/blocks/abc/def").relative_to(StoreKey.of("/blocks"))

    assert residual.value == "/abc/def"


def test_relative_to_equal_key_is_root() -> None:
    """A key relative to itself should be the root key."""
    assert StoreKey.of("/a/b").relative_to(StoreKey.of("/a/b")).is_root


def test_relative_to_rejects_unrelated_prefix() -> None:
    """Keys outside the prefix should not be rebased silently."""
    with pytest.raises(ValueError):
        StoreKey.of("/ab").relative_to(StoreKey.of("/a"))


def test_rebase_inverts_relative_to() -> None:
    """Rebasing a residual key should restore the full key."""
    prefix = StoreKey.of("/a")
    key = StoreKey.of("/a/b/c")

    assert key.relative_to(prefix).rebase(prefix) == key


def test_parent_child_and_name() -> None:
    """Navigation helpers should agree with the key's segments."""
    key = StoreKey.of("/a").child("b")

    assert (key.value, key.name, key.parent().value) == ("/a/b", "b", "/a")


def test_keys_order_by_string() -> None:
    """Keys should sort by their canonical string."""
    keys = sorted([StoreKey.of("/b"), StoreKey.of("/a/z"), StoreKey.of("/a")])

    assert [str(key) for key in keys] == ["/a", "/a/z", "/b"]
