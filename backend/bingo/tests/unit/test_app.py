"""Tests for the composition root."""

import logging

import pytest

from bingo.app import create_controller, create_store
from bingo.session.identity import StaticIdentity
from bingo.settings import BingoSettings
from shared.dal.memory_store import MemoryDocumentStore
from shared.db.document_store import SqliteDocumentStore
from shared.logging import remove_handlers


@pytest.fixture(autouse=True)
def _cleanup_root_logger():
    """create_controller configures logging; drop its handlers afterwards."""
    root = logging.getLogger()
    level = root.level
    yield
    remove_handlers()
    root.setLevel(level)


class TestCreateStore:
    def test_memory_store_without_path(self):
        assert isinstance(create_store(BingoSettings(store_path=None)), MemoryDocumentStore)

    def test_sqlite_store_with_path(self, tmp_path):
        store = create_store(BingoSettings(store_path=str(tmp_path / "bingo.db")))
        assert isinstance(store, SqliteDocumentStore)
        assert (tmp_path / "bingo.db").exists()


class TestCreateController:
    async def test_uses_identity_and_app_id(self):
        settings = BingoSettings(app_id="hall-3")
        controller = create_controller(settings, identity=StaticIdentity("dana"))

        assert controller.participant_id == "dana"
        assert controller.paths.session == "hall-3/game/current"

    async def test_controllers_can_share_a_store(self):
        store = MemoryDocumentStore()
        settings = BingoSettings(app_id="shared")
        first = create_controller(settings, identity=StaticIdentity("p1"), store=store)
        second = create_controller(settings, identity=StaticIdentity("p2"), store=store)

        await first.start()
        await second.start()

        assert set(second.directory) == {"p1", "p2"}
        assert second.session is not None
        assert second.session.caller == "p1"

        await first.stop()
        await second.stop()

    async def test_anonymous_identity_by_default(self):
        controller = create_controller(BingoSettings())
        assert len(controller.participant_id) == 32

    async def test_applies_log_settings(self, tmp_path):
        settings = BingoSettings(log_level="warning", log_format="json", log_dir=str(tmp_path))
        create_controller(settings, identity=StaticIdentity("erin"))

        assert logging.getLogger().level == logging.WARNING
        (log_file,) = tmp_path.iterdir()
        assert log_file.name.endswith("_erin.log")
