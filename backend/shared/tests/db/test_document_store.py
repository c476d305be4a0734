"""SqliteDocumentStore specifics: persistence, closed database, raw rows."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from shared.dal.exceptions import StoreUnavailableError, VersionConflictError
from shared.db import Database, SqliteDocumentStore

if TYPE_CHECKING:
    from pathlib import Path

DOC = "bingo/game/current"


@pytest.fixture
def db(tmp_path: Path):
    database = Database(tmp_path / "store.db")
    database.connect()
    yield database
    database.close()


class TestSqliteDocumentStore:
    async def test_rows_hold_json_and_version(self, db: Database) -> None:
        store = SqliteDocumentStore(db)
        await store.set_document(DOC, {"status": "waiting"})
        await store.update_document(DOC, {"status": "playing"})

        row = db.connection.execute("SELECT collection, version, data FROM documents WHERE path = ?", (DOC,)).fetchone()
        assert row[0] == "bingo/game"
        assert row[1] == 2
        assert json.loads(row[2]) == {"status": "playing"}

    async def test_data_survives_a_new_store_instance(self, db: Database) -> None:
        await SqliteDocumentStore(db).set_document(DOC, {"caller": "alice"})

        snapshot = await SqliteDocumentStore(db).get_document(DOC)

        assert snapshot.data == {"caller": "alice"}

    async def test_failed_create_leaves_connection_usable(self, db: Database) -> None:
        store = SqliteDocumentStore(db)
        await store.create_document(DOC, {"caller": "alice"})

        assert await store.create_document(DOC, {"caller": "bob"}) is False

        await store.update_document(DOC, {"status": "playing"})
        assert (await store.get_document(DOC)).data == {"caller": "alice", "status": "playing"}

    async def test_closed_database_is_unavailable(self, db: Database) -> None:
        store = SqliteDocumentStore(db)
        db.close()

        with pytest.raises(StoreUnavailableError, match="not connected"):
            await store.get_document(DOC)
        with pytest.raises(StoreUnavailableError):
            await store.set_document(DOC, {})

    async def test_subscribe_on_closed_database_reports_error(self, db: Database) -> None:
        store = SqliteDocumentStore(db)
        db.close()
        errors, changes = [], []

        store.subscribe_collection("bingo/players", changes.append, errors.append)

        assert changes == []
        assert isinstance(errors[0], StoreUnavailableError)

    async def test_writes_from_another_instance_are_not_pushed(self, db: Database) -> None:
        watcher = SqliteDocumentStore(db)
        seen = []
        watcher.subscribe_document(DOC, seen.append, pytest.fail)

        await SqliteDocumentStore(db).set_document(DOC, {"n": 1})

        assert seen == [None]
        assert (await watcher.get_document(DOC)).data == {"n": 1}


class TestOtherConnectionRaces:
    """Another Database on the same file commits between our read and our write."""

    @pytest.fixture
    def other(self, db: Database):
        database = Database(db.path)
        database.connect()
        yield database
        database.close()

    @staticmethod
    def _commit_between_read_and_write(monkeypatch, store: SqliteDocumentStore, other: Database, data: dict) -> None:
        read = store._read
        raced = []

        def read_then_race(path):
            snapshot = read(path)
            if not raced and snapshot is not None:
                raced.append(path)
                other.connection.execute(
                    "UPDATE documents SET version = version + 1, data = ? WHERE path = ?",
                    (json.dumps(data), path),
                )
                other.connection.commit()
            return snapshot

        monkeypatch.setattr(store, "_read", read_then_race)

    async def test_conditional_update_conflicts(self, db: Database, other: Database, monkeypatch) -> None:
        store = SqliteDocumentStore(db)
        first = await store.set_document(DOC, {"called_numbers": []})
        self._commit_between_read_and_write(monkeypatch, store, other, {"called_numbers": [7]})

        with pytest.raises(VersionConflictError) as excinfo:
            await store.update_document(DOC, {"called_numbers": [9]}, expected_version=first.version)

        assert excinfo.value.actual == 2
        snapshot = await SqliteDocumentStore(other).get_document(DOC)
        assert snapshot.data == {"called_numbers": [7]}
        assert snapshot.version == 2

    async def test_unconditional_update_rereads_and_keeps_other_fields(
        self,
        db: Database,
        other: Database,
        monkeypatch,
    ) -> None:
        store = SqliteDocumentStore(db)
        await store.set_document(DOC, {"called_numbers": [], "status": "waiting"})
        self._commit_between_read_and_write(monkeypatch, store, other, {"called_numbers": [7], "status": "playing"})

        snapshot = await store.update_document(DOC, {"winner": "bob"})

        assert snapshot.version == 3
        assert snapshot.data == {"called_numbers": [7], "status": "playing", "winner": "bob"}

    async def test_create_loses_to_other_connection(self, db: Database, other: Database) -> None:
        store = SqliteDocumentStore(db)
        assert await SqliteDocumentStore(other).create_document(DOC, {"caller": "bob"}) is True

        assert await store.create_document(DOC, {"caller": "alice"}) is False
        assert (await store.get_document(DOC)).data == {"caller": "bob"}

    async def test_set_expecting_absent_conflicts_with_other_insert(self, db: Database, other: Database) -> None:
        store = SqliteDocumentStore(db)
        await SqliteDocumentStore(other).set_document(DOC, {"caller": "bob"})

        with pytest.raises(VersionConflictError):
            await store.set_document(DOC, {"caller": "alice"}, expected_version=0)
