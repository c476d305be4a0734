"""In-process document store for local play and tests."""

from __future__ import annotations

import asyncio
import copy
from typing import TYPE_CHECKING, Any

import structlog

from shared.dal.document_store import DocumentStore, check_expected_version
from shared.dal.exceptions import DocumentNotFoundError, StoreError, StoreUnavailableError
from shared.dal.listeners import ListenerRegistry, Subscription
from shared.dal.models import BatchResult, DocumentSnapshot
from shared.dal.paths import is_direct_child, parent_collection, split_path

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shared.dal.listeners import CollectionListener, DocumentListener, ErrorListener

logger = structlog.get_logger()


class MemoryDocumentStore(DocumentStore):
    """Keep documents in a dict and notify subscribers in write order.

    Every operation first yields to the event loop (optionally sleeping
    latency seconds), so two clients sharing one store interleave their
    read-modify-write cycles the way networked clients do. The mutation
    itself happens without further awaits and is atomic per document.
    """

    def __init__(self, latency: float = 0.0) -> None:
        self._latency = latency
        self._documents: dict[str, DocumentSnapshot] = {}
        self._listeners = ListenerRegistry()
        self._failure: Exception | None = None

    @property
    def connected(self) -> bool:
        return self._failure is None

    def disconnect(self, cause: Exception | None = None) -> None:
        """Simulate losing the backend.

        Later operations raise StoreUnavailableError; live listeners get the
        error once and are dropped.
        """
        self._failure = cause or ConnectionError("document store disconnected")
        logger.warning("document store disconnected", cause=str(self._failure))
        self._listeners.notify_error(self._unavailable())

    def _unavailable(self) -> StoreUnavailableError:
        error = StoreUnavailableError(str(self._failure))
        error.__cause__ = self._failure
        return error

    async def _round_trip(self) -> None:
        await asyncio.sleep(self._latency)
        if self._failure is not None:
            raise self._unavailable()

    async def get_document(self, path: str) -> DocumentSnapshot | None:
        split_path(path)
        await self._round_trip()
        return self._documents.get(path)

    async def list_documents(self, collection: str) -> dict[str, DocumentSnapshot]:
        split_path(collection)
        await self._round_trip()
        return self._collection(collection)

    async def set_document(
        self,
        path: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
        expected_version: int | None = None,
    ) -> DocumentSnapshot:
        parent_collection(path)
        await self._round_trip()
        current = self._documents.get(path)
        check_expected_version(path, current, expected_version)
        if merge and current is not None:
            data = {**current.data, **data}
        return self._write(path, data, current)

    async def create_document(self, path: str, data: dict[str, Any]) -> bool:
        parent_collection(path)
        await self._round_trip()
        if path in self._documents:
            return False
        self._write(path, data, None)
        return True

    async def update_document(
        self,
        path: str,
        fields: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> DocumentSnapshot:
        parent_collection(path)
        await self._round_trip()
        return self._apply_update(path, fields, expected_version)

    async def delete_document(self, path: str) -> None:
        collection = parent_collection(path)
        await self._round_trip()
        if self._documents.pop(path, None) is None:
            return
        self._listeners.notify_document(path, None)
        self._listeners.notify_collection(collection, self._collection(collection))

    async def batch_update(self, updates: Sequence[tuple[str, dict[str, Any]]]) -> BatchResult:
        await self._round_trip()
        result = BatchResult()
        for path, fields in updates:
            try:
                self._apply_update(path, fields, None)
            except StoreError as exc:
                result.failed[path] = str(exc)
            else:
                result.succeeded.append(path)
        return result

    def subscribe_document(
        self,
        path: str,
        on_change: DocumentListener,
        on_error: ErrorListener,
    ) -> Subscription:
        split_path(path)
        if self._failure is not None:
            on_error(self._unavailable())
            return Subscription(lambda: None)
        subscription = self._listeners.add_document(path, on_change, on_error)
        on_change(self._documents.get(path))
        return subscription

    def subscribe_collection(
        self,
        collection: str,
        on_change: CollectionListener,
        on_error: ErrorListener,
    ) -> Subscription:
        split_path(collection)
        if self._failure is not None:
            on_error(self._unavailable())
            return Subscription(lambda: None)
        subscription = self._listeners.add_collection(collection, on_change, on_error)
        on_change(self._collection(collection))
        return subscription

    def _apply_update(self, path: str, fields: dict[str, Any], expected_version: int | None) -> DocumentSnapshot:
        parent_collection(path)
        current = self._documents.get(path)
        if current is None:
            raise DocumentNotFoundError(path)
        check_expected_version(path, current, expected_version)
        return self._write(path, {**current.data, **fields}, current)

    def _write(self, path: str, data: dict[str, Any], current: DocumentSnapshot | None) -> DocumentSnapshot:
        snapshot = DocumentSnapshot(
            path=path,
            data=copy.deepcopy(data),
            version=(current.version if current is not None else 0) + 1,
        )
        self._documents[path] = snapshot
        collection = parent_collection(path)
        self._listeners.notify_document(path, snapshot)
        if self._listeners.has_collection_listeners(collection):
            self._listeners.notify_collection(collection, self._collection(collection))
        return snapshot

    def _collection(self, collection: str) -> dict[str, DocumentSnapshot]:
        return {snap.id: snap for path, snap in self._documents.items() if is_direct_child(collection, path)}
