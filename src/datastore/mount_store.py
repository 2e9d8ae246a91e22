"""Prefix-routing datastore that composes child stores.

Each key is served by the mount with the longest prefix that equals or
contains it; the child sees the key with that prefix stripped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence

from core.errors import CairnStoreError, KeyNotFoundError, NoMountError
from core.logging_config import get_logger
from datastore.base import Datastore
from datastore.keys import StoreKey
from datastore.query import Query, QueryEntry, QueryResults, naive_query_apply

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class Mount:
    """A child store attached at ``prefix``."""

    prefix: StoreKey
    store: Datastore


class MountStore(Datastore):
    """Route operations to child stores by key prefix."""

    def __init__(self, mounts: Sequence[Mount]) -> None:
        ordered = sorted(mounts, key=lambda mount: mount.prefix.value, reverse=True)
        seen: set[str] = set()
        for mount in ordered:
            if mount.prefix.value in seen:
                raise CairnStoreError(
                    f"Duplicate mount prefix {mount.prefix}. Give every mount a unique mountpoint."
                )
            seen.add(mount.prefix.value)
        self._mounts = tuple(ordered)

    @property
    def mounts(self) -> tuple[Mount, ...]:
        return self._mounts

    def lookup(self, key: str | StoreKey) -> tuple[Datastore, StoreKey, StoreKey] | None:
        """Find the store serving ``key``.

        Returns:
            ``(store, mount_prefix, residual_key)`` or None when no mount
            covers the key.
        """
        store_key = StoreKey.of(key)
        for mount in self._mounts:
            if mount.prefix == store_key or mount.prefix.is_ancestor_of(store_key):
                return mount.store, mount.prefix, store_key.relative_to(mount.prefix)
        return None

    def get(self, key: str | StoreKey) -> bytes:
        route = self.lookup(key)
        if route is None:
            raise KeyNotFoundError(f"Key {StoreKey.of(key)} not found: no mount covers it.")
        store, _, residual = route
        return store.get(residual)

    def has(self, key: str | StoreKey) -> bool:
        route = self.lookup(key)
        if route is None:
            return False
        store, _, residual = route
        return store.has(residual)

    def get_size(self, key: str | StoreKey) -> int:
        route = self.lookup(key)
        if route is None:
            raise KeyNotFoundError(f"Key {StoreKey.of(key)} not found: no mount covers it.")
        store, _, residual = route
        return store.get_size(residual)

    def put(self, key: str | StoreKey, value: bytes) -> None:
        store, _, residual = self._require_route(key)
        store.put(residual, value)

    def delete(self, key: str | StoreKey) -> None:
        store, _, residual = self._require_route(key)
        store.delete(residual)

    def query(self, query: Query | None = None) -> QueryResults:
        active_query = query or Query()

        def _produce() -> Iterator[QueryEntry]:
            return naive_query_apply(active_query, self._merged_entries(active_query))

        return QueryResults(active_query, _produce)

    def sync(self, prefix: str | StoreKey = "/") -> None:
        for mount, child_prefix in self._related_mounts(StoreKey.of(prefix)):
            mount.store.sync(child_prefix)

    def disk_usage(self) -> int:
        return sum(mount.store.disk_usage() for mount in self._mounts)

    def close(self) -> None:
        """Close every child, re-raising the first failure after all were tried."""
        first_error: Exception | None = None
        for mount in self._mounts:
            try:
                mount.store.close()
            except Exception as error:  # noqa: BLE001
                _LOGGER.warning("mount_close_failed", prefix=str(mount.prefix), error=str(error))
                if first_error is None:
                    first_error = error
        if first_error is not None:
            raise first_error

    def _require_route(self, key: str | StoreKey) -> tuple[Datastore, StoreKey, StoreKey]:
        route = self.lookup(key)
        if route is None:
            raise NoMountError(
                f"No mount covers key {StoreKey.of(key)}. Add a mount for it or a root mount '/'."
            )
        return route

    def _related_mounts(self, prefix: StoreKey) -> list[tuple[Mount, StoreKey]]:
        related: list[tuple[Mount, StoreKey]] = []
        covering = self.lookup(prefix)
        for mount in self._mounts:
            if prefix.is_ancestor_of(mount.prefix):
                related.append((mount, StoreKey("/")))
            elif covering is not None and mount.prefix == covering[1]:
                related.append((mount, covering[2]))
        return related

    def _merged_entries(self, query: Query) -> Iterator[QueryEntry]:
        for mount, child_prefix in self._related_mounts(StoreKey.of(query.prefix)):
            results = mount.store.query(
                Query(
                    prefix=child_prefix.value,
                    keys_only=query.keys_only,
                    returns_sizes=query.returns_sizes,
                )
            )
            for entry in results:
                full_key = StoreKey.of(entry.key).rebase(mount.prefix)
                yield QueryEntry(key=full_key.value, value=entry.value, size=entry.size)
