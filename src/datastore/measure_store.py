"""Datastore wrapper collecting per-operation metrics.

Counters are kept in process and named ``<prefix>.<op>.<metric>`` with
metrics ``calls``, ``errors``, ``bytes`` and ``latency_seconds``.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import threading
import time
from typing import Iterator

from core.errors import KeyNotFoundError
from datastore.base import Datastore
from datastore.batch import BasicBatch
from datastore.keys import StoreKey
from datastore.query import Query, QueryResults


@dataclass
class OpStats:
    """Running totals for one datastore operation."""

    calls: int = 0
    errors: int = 0
    bytes: int = 0
    latency_seconds: float = 0.0


class MeasureStore(Datastore):
    """Transparent wrapper recording call counts, errors, sizes and latency."""

    def __init__(self, child: Datastore, prefix: str) -> None:
        self._child = child
        self._prefix = prefix
        self._stats: dict[str, OpStats] = {}
        self._mutex = threading.Lock()

    @property
    def child(self) -> Datastore:
        return self._child

    @property
    def prefix(self) -> str:
        return self._prefix

    def get(self, key: str | StoreKey) -> bytes:
        with self._measure("get") as stats:
            value = self._child.get(key)
            stats.bytes += len(value)
            return value

    def has(self, key: str | StoreKey) -> bool:
        with self._measure("has"):
            return self._child.has(key)

    def get_size(self, key: str | StoreKey) -> int:
        with self._measure("get_size"):
            return self._child.get_size(key)

    def put(self, key: str | StoreKey, value: bytes) -> None:
        with self._measure("put") as stats:
            self._child.put(key, value)
            stats.bytes += len(value)

    def delete(self, key: str | StoreKey) -> None:
        with self._measure("delete"):
            self._child.delete(key)

    def query(self, query: Query | None = None) -> QueryResults:
        with self._measure("query"):
            return self._child.query(query)

    def batch(self) -> BasicBatch:
        with self._measure("batch"):
            return BasicBatch(self)

    def sync(self, prefix: str | StoreKey = "/") -> None:
        with self._measure("sync"):
            self._child.sync(prefix)

    def disk_usage(self) -> int:
        return self._child.disk_usage()

    def close(self) -> None:
        self._child.close()

    def metrics(self) -> dict[str, float]:
        """Snapshot of every counter, keyed by full metric name."""
        with self._mutex:
            snapshot: dict[str, float] = {}
            for op, stats in sorted(self._stats.items()):
                base = f"{self._prefix}.{op}"
                snapshot[f"{base}.calls"] = stats.calls
                snapshot[f"{base}.errors"] = stats.errors
                snapshot[f"{base}.bytes"] = stats.bytes
                snapshot[f"{base}.latency_seconds"] = stats.latency_seconds
            return snapshot

    @contextmanager
    def _measure(self, op: str) -> Iterator[OpStats]:
        pending = OpStats(calls=1)
        started = time.perf_counter()
        try:
            yield pending
        except KeyNotFoundError:
            raise
        except Exception:
            pending.errors += 1
            raise
        finally:
            pending.latency_seconds = time.perf_counter() - started
            self._record(op, pending)

    def _record(self, op: str, pending: OpStats) -> None:
        with self._mutex:
            stats = self._stats.setdefault(op, OpStats())
            stats.calls += pending.calls
            stats.errors += pending.errors
            stats.bytes += pending.bytes
            stats.latency_seconds += pending.latency_seconds
