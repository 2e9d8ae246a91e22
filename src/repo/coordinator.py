"""Process-wide coordination of repository lifecycle operations."""

from __future__ import annotations

import threading

from lock.process_lock import LockRegistry


class RepoCoordinator:
    """Serializes init, open, close, and config mutation.

    Attributes:
        mutex: Reentrant lock held by every state-mutating repo operation.
        lock_registry: Lock files held by this process.
    """

    def __init__(self, lock_registry: LockRegistry | None = None) -> None:
        self.mutex = threading.RLock()
        self.lock_registry = lock_registry or LockRegistry()


DEFAULT_COORDINATOR = RepoCoordinator()
