"""Buffered write batches.

A batch collects puts and deletes and applies them one by one on commit.
There is no atomicity across keys: a failure mid-commit leaves earlier
operations applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from datastore.keys import StoreKey

if TYPE_CHECKING:
    from datastore.base import Datastore


@dataclass(frozen=True)
class BatchOp:
    """One pending batch operation; ``value`` is None for deletes."""

    key: StoreKey
    value: bytes | None


class BasicBatch:
    """Batch that replays buffered operations against a store."""

    def __init__(self, store: "Datastore") -> None:
        self._store = store
        self._ops: dict[StoreKey, BatchOp] = {}

    def put(self, key: str | StoreKey, value: bytes) -> None:
        store_key = StoreKey.of(key)
        self._ops.pop(store_key, None)
        self._ops[store_key] = BatchOp(key=store_key, value=bytes(value))

    def delete(self, key: str | StoreKey) -> None:
        store_key = StoreKey.of(key)
        self._ops.pop(store_key, None)
        self._ops[store_key] = BatchOp(key=store_key, value=None)

    def pending(self) -> tuple[BatchOp, ...]:
        """Buffered operations in application order."""
        return tuple(self._ops.values())

    def commit(self) -> None:
        """Apply buffered operations in order, then clear the buffer."""
        for op in self.pending():
            if op.value is None:
                self._store.delete(op.key)
            else:
                self._store.put(op.key, op.value)
            del self._ops[op.key]
