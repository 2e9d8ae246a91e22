"""Cairn exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations

from typing import Literal

LockContention = Literal["by_us", "by_other", "indeterminate"]


class CairnError(Exception):
    """Base exception for all Cairn failures."""


class CairnConfigError(CairnError):
    """Raised for invalid runtime or repository configuration."""


class DatastoreSpecError(CairnConfigError):
    """Raised when a datastore spec is malformed or names an unknown type."""


class CairnDependencyError(CairnError):
    """Raised when an optional runtime dependency is missing."""


class CairnPermissionError(CairnError, PermissionError):
    """Raised when the filesystem refuses access to a repository path."""


class CairnStoreError(CairnError):
    """Raised for datastore read and write failures."""


class KeyNotFoundError(CairnStoreError):
    """Raised when a datastore key has no value."""


class StoreClosedError(CairnStoreError):
    """Raised when a closed datastore is accessed."""


class NoMountError(CairnStoreError):
    """Raised when a key matches no mount in a mount table."""


class CairnLockError(CairnError):
    """Raised for repository lock failures."""


class RepoLockedError(CairnLockError):
    """Raised when the repository lock is held.

    Attributes:
        kind: ``by_us`` when this process holds it, ``by_other`` when a live
            process does, ``indeterminate`` when the owner cannot be probed.
    """

    def __init__(self, message: str, kind: LockContention) -> None:
        super().__init__(message)
        self.kind: LockContention = kind


class LockContentsError(CairnLockError):
    """Raised when an existing lock file holds undecodable metadata."""


class LockCreateError(CairnLockError):
    """Raised when the lock file cannot be created exclusively."""


class CairnRepoError(CairnError):
    """Raised for repository lifecycle failures."""


class NotInitializedError(CairnRepoError):
    """Raised when opening a path that holds no repository."""


class LegacyRepoError(NotInitializedError):
    """Raised when only a repository at the legacy location exists."""


class NoVersionError(CairnRepoError):
    """Raised when the repository version file is missing."""


class NeedsMigrationError(CairnRepoError):
    """Raised when the repository is older than this program expects."""


class ProgramVersionTooLowError(CairnRepoError):
    """Raised when the repository is newer than this program supports."""


class SpecMismatchError(CairnRepoError):
    """Raised when the configured datastore disagrees with the one on disk."""


class RepoClosedError(CairnRepoError):
    """Raised when a closed repository is accessed."""


class RepoAlreadyClosedError(RepoClosedError):
    """Raised when a repository is closed twice."""


class KeystoreError(CairnError):
    """Raised for keystore failures."""


class KeyExistsError(KeystoreError):
    """Raised when storing a key under a name that is already taken."""


class NoSuchKeyError(KeystoreError):
    """Raised when a named key is absent from the keystore."""
