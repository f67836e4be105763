"""
Domain exceptions for Cosmikit.

Notes
-----
Engine code does not raise generic exceptions for expected failure modes. Every
storage failure maps to a StorageError subclass whose `kind` tells the UI how
to present it (and whether a retry makes sense).
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Presentation-level classification of a failure."""

    NOT_INITIALIZED = "not_initialized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID = "invalid"
    STORAGE = "storage"

    @property
    def retryable(self) -> bool:
        """Return True when retrying the same request may succeed later."""
        return self in (ErrorKind.NOT_INITIALIZED, ErrorKind.STORAGE)


class CosmikitError(RuntimeError):
    """Base exception for all Cosmikit domain failures."""


class StorageError(CosmikitError):
    """
    Base error for storage and data-access operations.

    Parameters
    ----------
    message:
        Human-readable description.
    operation:
        Name of the storage operation that failed, for example "delete_project".
    entity_id:
        Identifier of the entity involved, if any.
    """

    kind: ErrorKind = ErrorKind.STORAGE

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        entity_id: int | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.entity_id = entity_id

    def __str__(self) -> str:
        base = super().__str__()
        if self.operation is None:
            return base
        if self.entity_id is None:
            return f"{self.operation}: {base}"
        return f"{self.operation}({self.entity_id}): {base}"


class NotInitializedError(StorageError):
    """Raised when storage is used before its handle has been installed."""

    kind = ErrorKind.NOT_INITIALIZED


class NotFoundError(StorageError):
    """Raised when a referenced entity id does not exist."""

    kind = ErrorKind.NOT_FOUND


class ConflictError(StorageError):
    """Raised when a uniqueness constraint would be violated."""

    kind = ErrorKind.CONFLICT


class InvalidInputError(StorageError):
    """Raised when an argument violates an entity invariant (e.g. blank name)."""

    kind = ErrorKind.INVALID


class StorageIOError(StorageError):
    """Raised when the backing store is unreachable, corrupted, or rejects a query."""


class MigrationError(StorageIOError):
    """Raised when a schema migration step fails during startup."""


def describe_error(exc: BaseException) -> tuple[ErrorKind, str]:
    """
    Convert an exception into a kind tag plus display text.

    Parameters
    ----------
    exc:
        Any exception raised by a task.

    Returns
    -------
    tuple[ErrorKind, str]
        Kind for presentation decisions and a message suitable for display.
    """
    if isinstance(exc, StorageError):
        return exc.kind, str(exc)
    text = str(exc) or type(exc).__name__
    return ErrorKind.STORAGE, text
