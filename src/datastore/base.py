"""Datastore contract shared by every store in a composed tree.

Concrete stores implement ``get``, ``put``, ``delete``, ``query`` and
``close``; existence and size checks fall back to ``get`` semantics.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType

from core.errors import KeyNotFoundError
from datastore.batch import BasicBatch
from datastore.keys import StoreKey
from datastore.query import Query, QueryResults


class Datastore(ABC):
    """Abstract key-value store over ``StoreKey`` keys and byte values."""

    @abstractmethod
    def get(self, key: str | StoreKey) -> bytes:
        """Return the value stored under ``key``.

        Raises:
            KeyNotFoundError: If the key has no value.
            StoreClosedError: If the store was closed.
        """

    @abstractmethod
    def put(self, key: str | StoreKey, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def delete(self, key: str | StoreKey) -> None:
        """Remove ``key``; removing an absent key is not an error."""

    @abstractmethod
    def query(self, query: Query | None = None) -> QueryResults:
        """Return entries matching ``query``."""

    @abstractmethod
    def close(self) -> None:
        """Release resources; later data access raises StoreClosedError."""

    def has(self, key: str | StoreKey) -> bool:
        try:
            self.get(key)
        except KeyNotFoundError:
            return False
        return True

    def get_size(self, key: str | StoreKey) -> int:
        return len(self.get(key))

    def batch(self) -> BasicBatch:
        """Return a buffer of puts and deletes applied on commit."""
        return BasicBatch(self)

    def sync(self, prefix: str | StoreKey = "/") -> None:
        """Flush writes under ``prefix`` to durable storage."""

    def disk_usage(self) -> int:
        """Bytes this store occupies on disk; zero for non-persistent stores."""
        return 0

    def __enter__(self) -> "Datastore":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()
