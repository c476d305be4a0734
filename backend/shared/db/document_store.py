"""SQLite-backed document store."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from typing import TYPE_CHECKING, Any

import structlog

from shared.dal.document_store import DocumentStore, check_expected_version
from shared.dal.exceptions import DocumentNotFoundError, StoreError, StoreUnavailableError, VersionConflictError
from shared.dal.listeners import ListenerRegistry, Subscription
from shared.dal.models import BatchResult, DocumentSnapshot
from shared.dal.paths import parent_collection, split_path

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from shared.dal.listeners import CollectionListener, DocumentListener, ErrorListener
    from shared.db.connection import Database

logger = structlog.get_logger()


class SqliteDocumentStore(DocumentStore):
    """SQLite implementation of DocumentStore.

    Stores each document as a JSON blob with a version column. Every write
    is an UPDATE guarded by the version that was read, so writers on other
    connections to the same file cannot be overwritten unseen. The asyncio
    lock only orders writers sharing this instance.
    Subscribers are notified in-process only: several clients must share
    this store instance to see each other's writes live; a second process
    on the same file sees the data on its next read.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()
        self._listeners = ListenerRegistry()

    def _connection(self) -> sqlite3.Connection:
        try:
            return self._db.connection
        except RuntimeError as exc:
            raise StoreUnavailableError(str(exc)) from exc

    async def get_document(self, path: str) -> DocumentSnapshot | None:
        split_path(path)
        return self._read(path)

    async def list_documents(self, collection: str) -> dict[str, DocumentSnapshot]:
        split_path(collection)
        return self._read_collection(collection)

    async def set_document(
        self,
        path: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
        expected_version: int | None = None,
    ) -> DocumentSnapshot:
        parent_collection(path)

        def replace(current: DocumentSnapshot | None) -> dict[str, Any]:
            return {**current.data, **data} if merge and current is not None else data

        async with self._lock:
            snapshot = self._read_modify_write(path, replace, expected_version)
        self._notify(snapshot.path, snapshot)
        return snapshot

    async def create_document(self, path: str, data: dict[str, Any]) -> bool:
        parent_collection(path)
        async with self._lock:
            try:
                snapshot = self._write(path, data, None)
            except VersionConflictError:
                logger.debug("document already exists, create skipped", path=path)
                return False
        self._notify(path, snapshot)
        return True

    async def update_document(
        self,
        path: str,
        fields: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> DocumentSnapshot:
        parent_collection(path)
        async with self._lock:
            snapshot = self._update(path, fields, expected_version)
        self._notify(path, snapshot)
        return snapshot

    async def delete_document(self, path: str) -> None:
        parent_collection(path)
        async with self._lock:
            conn = self._connection()
            cursor = conn.execute("DELETE FROM documents WHERE path = ?", (path,))
            conn.commit()
        if cursor.rowcount:
            self._notify(path, None)

    async def batch_update(self, updates: Sequence[tuple[str, dict[str, Any]]]) -> BatchResult:
        result = BatchResult()
        written: list[DocumentSnapshot] = []
        async with self._lock:
            for path, fields in updates:
                try:
                    written.append(self._update(path, fields, None))
                except StoreError as exc:
                    result.failed[path] = str(exc)
                else:
                    result.succeeded.append(path)
        for snapshot in written:
            self._notify(snapshot.path, snapshot)
        return result

    def subscribe_document(
        self,
        path: str,
        on_change: DocumentListener,
        on_error: ErrorListener,
    ) -> Subscription:
        try:
            current = self._read(path)
        except StoreUnavailableError as exc:
            on_error(exc)
            return Subscription(lambda: None)
        subscription = self._listeners.add_document(path, on_change, on_error)
        on_change(current)
        return subscription

    def subscribe_collection(
        self,
        collection: str,
        on_change: CollectionListener,
        on_error: ErrorListener,
    ) -> Subscription:
        try:
            current = self._read_collection(collection)
        except StoreUnavailableError as exc:
            on_error(exc)
            return Subscription(lambda: None)
        subscription = self._listeners.add_collection(collection, on_change, on_error)
        on_change(current)
        return subscription

    def _read(self, path: str) -> DocumentSnapshot | None:
        row = self._connection().execute("SELECT version, data FROM documents WHERE path = ?", (path,)).fetchone()
        if row is None:
            return None
        return DocumentSnapshot(path=path, version=row[0], data=json.loads(row[1]))

    def _read_collection(self, collection: str) -> dict[str, DocumentSnapshot]:
        rows = self._connection().execute(
            "SELECT path, version, data FROM documents WHERE collection = ? ORDER BY rowid",
            (collection,),
        ).fetchall()
        snapshots = [DocumentSnapshot(path=row[0], version=row[1], data=json.loads(row[2])) for row in rows]
        return {snap.id: snap for snap in snapshots}

    def _update(self, path: str, fields: dict[str, Any], expected_version: int | None) -> DocumentSnapshot:
        def merge_fields(current: DocumentSnapshot | None) -> dict[str, Any]:
            if current is None:
                raise DocumentNotFoundError(path)
            return {**current.data, **fields}

        return self._read_modify_write(path, merge_fields, expected_version)

    def _read_modify_write(
        self,
        path: str,
        change: Callable[[DocumentSnapshot | None], dict[str, Any]],
        expected_version: int | None,
    ) -> DocumentSnapshot:
        """Write change(current) only if the row still holds the version that was read.

        Other connections to the same file commit without taking this
        store's lock. When one wins the race the guarded write fails and
        the cycle re-reads; a conditional write then fails its version check.
        """
        while True:
            current = self._read(path)
            check_expected_version(path, current, expected_version)
            try:
                return self._write(path, change(current), current)
            except VersionConflictError:
                logger.debug("document changed by another connection, re-reading", path=path)

    def _write(self, path: str, data: dict[str, Any], current: DocumentSnapshot | None) -> DocumentSnapshot:
        """Insert (current is None) or compare-and-set one row, then commit.

        Raises VersionConflictError when the row was created or changed
        since current was read.
        """
        conn = self._connection()
        payload = json.dumps(data)
        if current is None:
            try:
                conn.execute(
                    "INSERT INTO documents (path, collection, version, data) VALUES (?, ?, 1, ?)",
                    (path, parent_collection(path), payload),
                )
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                raise VersionConflictError(path, expected=0, actual=self._stored_version(path)) from exc
            version = 1
        else:
            version = current.version + 1
            cursor = conn.execute(
                "UPDATE documents SET version = ?, data = ? WHERE path = ? AND version = ?",
                (version, payload, path, current.version),
            )
            if cursor.rowcount == 0:
                conn.rollback()
                raise VersionConflictError(path, expected=current.version, actual=self._stored_version(path))
        conn.commit()
        return DocumentSnapshot(path=path, data=json.loads(payload), version=version)

    def _stored_version(self, path: str) -> int:
        row = self._connection().execute("SELECT version FROM documents WHERE path = ?", (path,)).fetchone()
        return row[0] if row is not None else 0

    def _notify(self, path: str, snapshot: DocumentSnapshot | None) -> None:
        collection = parent_collection(path)
        self._listeners.notify_document(path, snapshot)
        if self._listeners.has_collection_listeners(collection):
            self._listeners.notify_collection(collection, self._read_collection(collection))
