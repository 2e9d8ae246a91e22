"""Thread-safe in-memory datastore.

Nothing is persisted: the store starts empty every time it is created.
"""

from __future__ import annotations

import threading

from core.errors import KeyNotFoundError, StoreClosedError
from datastore.base import Datastore
from datastore.keys import StoreKey
from datastore.query import Query, QueryEntry, QueryResults, naive_query_apply


class MemoryStore(Datastore):
    """Dictionary-backed store guarded by a mutex."""

    def __init__(self) -> None:
        self._values: dict[str, bytes] = {}
        self._mutex = threading.Lock()
        self._closed = False

    def get(self, key: str | StoreKey) -> bytes:
        store_key = StoreKey.of(key)
        with self._mutex:
            self._ensure_open()
            try:
                return self._values[store_key.value]
            except KeyError as error:
                raise KeyNotFoundError(f"Key {store_key} not found in memory store.") from error

    def put(self, key: str | StoreKey, value: bytes) -> None:
        store_key = StoreKey.of(key)
        with self._mutex:
            self._ensure_open()
            self._values[store_key.value] = bytes(value)

    def delete(self, key: str | StoreKey) -> None:
        store_key = StoreKey.of(key)
        with self._mutex:
            self._ensure_open()
            self._values.pop(store_key.value, None)

    def query(self, query: Query | None = None) -> QueryResults:
        active_query = query or Query()
        with self._mutex:
            self._ensure_open()

        def _produce():
            with self._mutex:
                self._ensure_open()
                snapshot = list(self._values.items())
            entries = [
                QueryEntry(key=key, value=value, size=len(value)) for key, value in snapshot
            ]
            return naive_query_apply(active_query, entries)

        return QueryResults(active_query, _produce)

    def close(self) -> None:
        with self._mutex:
            self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedError("Memory datastore is closed. Reopen the repository.")
