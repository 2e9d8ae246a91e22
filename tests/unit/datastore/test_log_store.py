"""Unit tests for the logging datastore wrapper."""

from __future__ import annotations

import json

from datastore.log_store import LogStore
from datastore.memory_store import MemoryStore


def test_operations_are_logged_and_forwarded(capsys) -> None:
    """Each call should emit an event naming the store and operation."""
    store = LogStore(MemoryStore(), "audit")
    store.put("/a", b"v")

    events = [json.loads(line) for line in capsys.readouterr().err.splitlines() if line]

    assert any(
        event.get("event") == "datastore_op"
        and event.get("store") == "audit"
        and event.get("op") == "put"
        and event.get("key") == "/a"
        for event in events
    ) and store.get("/a") == b"v"
