"""Typed errors raised by document store implementations.

Callers catch StoreError at the session boundary; the subclasses let the
session controller tell a lost optimistic-concurrency race (retry) apart
from an unreachable backend (surface to the user).
"""


class StoreError(Exception):
    """Base exception for document store failures."""


class InvalidPathError(StoreError, ValueError):
    """Document or collection path is malformed (empty segment, traversal, etc.)."""


class DocumentNotFoundError(StoreError):
    """A partial update targeted a document that does not exist."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"document not found: {path}")


class VersionConflictError(StoreError):
    """A conditional write found a different version than the caller expected.

    Attributes:
        path: The document path that was written.
        expected: The version the writer read before computing its update.
        actual: The version currently stored (0 when the document is absent).

    """

    def __init__(self, path: str, *, expected: int, actual: int) -> None:
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(f"version conflict on {path}: expected {expected}, found {actual}")


class StoreUnavailableError(StoreError):
    """The backend cannot be reached; the operation was not applied."""
