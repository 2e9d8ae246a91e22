"""Datastore query model and naive result processing.

Stores without an index gather every entry and hand the full list to
``naive_query_apply``, which filters, orders, and pages it in memory.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import operator
from typing import Any, Callable, Iterable, Iterator, Literal

from datastore.keys import StoreKey

CompareOp = Literal["==", "!=", "<", "<=", ">", ">="]
OrderField = Literal["key", "value", "size"]

_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


@dataclass(frozen=True)
class QueryEntry:
    """One query result row.

    Attributes:
        key: Canonical key string.
        value: Stored bytes, or None for keys-only queries.
        size: Value length in bytes, or -1 when not requested.
    """

    key: str
    value: bytes | None = None
    size: int = -1


QueryFilter = Callable[[QueryEntry], bool]


@dataclass(frozen=True)
class QueryOrder:
    """Sort criterion applied to query results."""

    field: OrderField = "key"
    descending: bool = False


@dataclass(frozen=True)
class Query:
    """Datastore query options.

    Attributes:
        prefix: Only keys at or below this key are returned.
        filters: Predicates every returned entry must satisfy.
        orders: Sort criteria, most significant first.
        offset: Number of leading results to skip.
        limit: Maximum number of results, 0 for unlimited.
        keys_only: Skip loading values.
        returns_sizes: Populate ``QueryEntry.size``.
    """

    prefix: str = "/"
    filters: tuple[QueryFilter, ...] = field(default_factory=tuple)
    orders: tuple[QueryOrder, ...] = field(default_factory=tuple)
    offset: int = 0
    limit: int = 0
    keys_only: bool = False
    returns_sizes: bool = False

    def unpaged(self) -> "Query":
        """Copy of this query without ordering, offset, or limit."""
        return replace(self, orders=(), offset=0, limit=0)


class QueryResults:
    """Lazy, finite, restartable query result sequence.

    Each iteration calls the producer again, so results reflect the store
    at the time iteration starts.
    """

    def __init__(self, query: Query, producer: Callable[[], Iterator[QueryEntry]]) -> None:
        self.query = query
        self._producer = producer

    def __iter__(self) -> Iterator[QueryEntry]:
        return self._producer()

    def rest(self) -> list[QueryEntry]:
        """Collect every remaining entry into a list."""
        return list(self)

    def keys(self) -> list[str]:
        return [entry.key for entry in self]


def key_prefix_filter(prefix: str) -> QueryFilter:
    """Keep entries whose key sits at or below ``prefix``."""
    prefix_key = StoreKey.of(prefix)

    def _matches(entry: QueryEntry) -> bool:
        entry_key = StoreKey.of(entry.key)
        return entry_key == prefix_key or prefix_key.is_ancestor_of(entry_key)

    return _matches


def key_compare_filter(op: CompareOp, key: str) -> QueryFilter:
    """Keep entries whose key compares to ``key`` under ``op``."""
    compare = _comparator(op)
    target = StoreKey.of(key).value
    return lambda entry: compare(entry.key, target)


def value_compare_filter(op: CompareOp, value: bytes) -> QueryFilter:
    """Keep entries whose loaded value compares to ``value`` under ``op``."""
    compare = _comparator(op)
    return lambda entry: entry.value is not None and compare(entry.value, value)


def naive_query_apply(query: Query, entries: Iterable[QueryEntry]) -> Iterator[QueryEntry]:
    """Apply prefix, filters, orders, offset, and limit to raw entries.

    Args:
        query: Query options.
        entries: Unordered, unfiltered store entries.

    Returns:
        Iterator over matching entries.
    """
    prefix_filter = key_prefix_filter(query.prefix)
    selected = (
        _shape_entry(query, entry)
        for entry in entries
        if prefix_filter(entry) and all(check(entry) for check in query.filters)
    )
    if query.orders:
        ordered = list(selected)
        for order in reversed(query.orders):
            ordered.sort(key=_order_key(order.field), reverse=order.descending)
        selected = iter(ordered)
    return _page(selected, query.offset, query.limit)


def _shape_entry(query: Query, entry: QueryEntry) -> QueryEntry:
    value = None if query.keys_only else entry.value
    size = entry.size if query.returns_sizes else -1
    if query.returns_sizes and size < 0 and entry.value is not None:
        size = len(entry.value)
    return QueryEntry(key=entry.key, value=value, size=size)


def _order_key(order_field: OrderField) -> Callable[[QueryEntry], Any]:
    if order_field == "key":
        return lambda entry: entry.key
    if order_field == "value":
        return lambda entry: entry.value or b""
    return lambda entry: entry.size


def _page(entries: Iterator[QueryEntry], offset: int, limit: int) -> Iterator[QueryEntry]:
    emitted = 0
    for index, entry in enumerate(entries):
        if index < offset:
            continue
        if limit and emitted >= limit:
            return
        emitted += 1
        yield entry


def _comparator(op: str) -> Callable[[Any, Any], bool]:
    try:
        return _COMPARATORS[op]
    except KeyError as error:
        raise ValueError(
            f"Unsupported comparison operator '{op}'. Use one of: {', '.join(_COMPARATORS)}."
        ) from error
