"""Push-notification bookkeeping shared by document store implementations."""

from __future__ import annotations

from collections.abc import Callable
from itertools import count
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from shared.dal.models import DocumentSnapshot

logger = structlog.get_logger()

# Called with the new snapshot, or None when the document is absent/deleted.
DocumentListener = Callable[["DocumentSnapshot | None"], None]
# Called with the whole collection (document id -> snapshot) in insertion order.
CollectionListener = Callable[[dict[str, "DocumentSnapshot"]], None]
ErrorListener = Callable[[Exception], None]


class Subscription:
    """Handle returned by subscribe_*; unsubscribe() is idempotent."""

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel: Callable[[], None] | None = cancel

    @property
    def active(self) -> bool:
        return self._cancel is not None

    def unsubscribe(self) -> None:
        cancel, self._cancel = self._cancel, None
        if cancel is not None:
            cancel()


class ListenerRegistry:
    """Track document and collection listeners and fan out notifications.

    Listener callbacks run synchronously inside the writer's coroutine, in
    write order. A failing callback is logged and does not abort the write
    or starve the remaining listeners. After an error is delivered the
    listener is dropped: a subscription does not survive a backend failure.
    """

    def __init__(self) -> None:
        self._ids = count()
        self._documents: dict[int, tuple[str, DocumentListener, ErrorListener]] = {}
        self._collections: dict[int, tuple[str, CollectionListener, ErrorListener]] = {}

    def add_document(self, path: str, on_change: DocumentListener, on_error: ErrorListener) -> Subscription:
        key = next(self._ids)
        self._documents[key] = (path, on_change, on_error)
        return Subscription(lambda: self._documents.pop(key, None))

    def add_collection(
        self,
        collection: str,
        on_change: CollectionListener,
        on_error: ErrorListener,
    ) -> Subscription:
        key = next(self._ids)
        self._collections[key] = (collection, on_change, on_error)
        return Subscription(lambda: self._collections.pop(key, None))

    def has_collection_listeners(self, collection: str) -> bool:
        return any(c == collection for c, _, _ in self._collections.values())

    def notify_document(self, path: str, snapshot: DocumentSnapshot | None) -> None:
        for listener_path, on_change, _ in list(self._documents.values()):
            if listener_path == path:
                self._deliver(on_change, snapshot)

    def notify_collection(self, collection: str, documents: dict[str, DocumentSnapshot]) -> None:
        for listener_collection, on_change, _ in list(self._collections.values()):
            if listener_collection == collection:
                self._deliver(on_change, dict(documents))

    def notify_error(self, error: Exception) -> None:
        """Deliver an error to every listener, then drop them all."""
        error_callbacks = [on_error for _, _, on_error in self._documents.values()]
        error_callbacks += [on_error for _, _, on_error in self._collections.values()]
        self._documents.clear()
        self._collections.clear()
        for on_error in error_callbacks:
            self._deliver(on_error, error)

    @staticmethod
    def _deliver(callback: Callable[[object], None], payload: object) -> None:
        try:
            callback(payload)
        except Exception:
            logger.exception("store listener callback failed")
