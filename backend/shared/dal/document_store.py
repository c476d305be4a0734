"""Abstract interface for the shared document store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from shared.dal.exceptions import VersionConflictError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shared.dal.listeners import CollectionListener, DocumentListener, ErrorListener, Subscription
    from shared.dal.models import BatchResult, DocumentSnapshot


def check_expected_version(path: str, current: DocumentSnapshot | None, expected_version: int | None) -> None:
    """Raise VersionConflictError when a conditional write no longer matches.

    expected_version=None makes the write unconditional; 0 means "must be absent".
    """
    if expected_version is None:
        return
    actual = current.version if current is not None else 0
    if actual != expected_version:
        raise VersionConflictError(path, expected=expected_version, actual=actual)


class DocumentStore(ABC):
    """Shared mutable document store with push notifications.

    Every write replaces a whole document or overwrites whole top-level
    fields; there are no cross-document transactions. Each write bumps the
    document version, and writers may pass expected_version to turn a
    blind overwrite into a compare-and-set.

    Implementations can be in-process, SQLite, or a hosted backend.
    """

    @abstractmethod
    async def get_document(self, path: str) -> DocumentSnapshot | None: ...

    @abstractmethod
    async def list_documents(self, collection: str) -> dict[str, DocumentSnapshot]:
        """Return the collection's documents keyed by id, in insertion order."""
        ...

    @abstractmethod
    async def set_document(
        self,
        path: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
        expected_version: int | None = None,
    ) -> DocumentSnapshot:
        """Replace a document (merge=False) or overwrite only the given fields (merge=True).

        Creates the document when absent.
        """
        ...

    @abstractmethod
    async def create_document(self, path: str, data: dict[str, Any]) -> bool:
        """Create a document only if absent. Return True if this call created it."""
        ...

    @abstractmethod
    async def update_document(
        self,
        path: str,
        fields: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> DocumentSnapshot:
        """Overwrite the given top-level fields. Raise DocumentNotFoundError when absent."""
        ...

    @abstractmethod
    async def delete_document(self, path: str) -> None: ...

    @abstractmethod
    async def batch_update(self, updates: Sequence[tuple[str, dict[str, Any]]]) -> BatchResult:
        """Apply several partial updates, best effort.

        Not atomic: each update succeeds or fails on its own and the
        result reports which paths were written.
        """
        ...

    @abstractmethod
    def subscribe_document(
        self,
        path: str,
        on_change: DocumentListener,
        on_error: ErrorListener,
    ) -> Subscription:
        """Deliver the current document immediately, then every later mutation."""
        ...

    @abstractmethod
    def subscribe_collection(
        self,
        collection: str,
        on_change: CollectionListener,
        on_error: ErrorListener,
    ) -> Subscription:
        """Deliver the current collection immediately, then the whole collection after every mutation."""
        ...
