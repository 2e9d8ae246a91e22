"""Datastore wrapper that logs every operation it forwards."""

from __future__ import annotations

from core.logging_config import get_logger
from datastore.base import Datastore
from datastore.batch import BasicBatch
from datastore.keys import StoreKey
from datastore.query import Query, QueryResults

_LOGGER = get_logger(__name__)


class LogStore(Datastore):
    """Transparent wrapper emitting one structured event per call."""

    def __init__(self, child: Datastore, name: str) -> None:
        self._child = child
        self._name = name

    @property
    def child(self) -> Datastore:
        return self._child

    def get(self, key: str | StoreKey) -> bytes:
        self._log("get", key)
        return self._child.get(key)

    def has(self, key: str | StoreKey) -> bool:
        self._log("has", key)
        return self._child.has(key)

    def get_size(self, key: str | StoreKey) -> int:
        self._log("get_size", key)
        return self._child.get_size(key)

    def put(self, key: str | StoreKey, value: bytes) -> None:
        self._log("put", key, size=len(value))
        self._child.put(key, value)

    def delete(self, key: str | StoreKey) -> None:
        self._log("delete", key)
        self._child.delete(key)

    def query(self, query: Query | None = None) -> QueryResults:
        active_query = query or Query()
        _LOGGER.info("datastore_query", store=self._name, prefix=active_query.prefix)
        return self._child.query(active_query)

    def batch(self) -> BasicBatch:
        _LOGGER.info("datastore_batch", store=self._name)
        return BasicBatch(self)

    def sync(self, prefix: str | StoreKey = "/") -> None:
        self._log("sync", prefix)
        self._child.sync(prefix)

    def disk_usage(self) -> int:
        return self._child.disk_usage()

    def close(self) -> None:
        _LOGGER.info("datastore_close", store=self._name)
        self._child.close()

    def _log(self, op: str, key: str | StoreKey, **fields: object) -> None:
        _LOGGER.info("datastore_op", store=self._name, op=op, key=str(StoreKey.of(key)), **fields)
