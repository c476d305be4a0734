"""Store failures and malformed shared documents as seen by SessionController."""

from bingo.logic.enums import GameStatus
from bingo.session.view import MSG_ACTION_FAILED, MSG_CONNECTION_LOST
from bingo.tests.helpers import wait_until


class TestConnectionLoss:
    async def test_subscription_error_degrades_view(self, alice, bob, store):
        await alice.call_number()
        called = bob.session.called_numbers

        store.disconnect()

        assert bob.view.degraded
        assert bob.view.message == MSG_CONNECTION_LOST
        assert bob.session.called_numbers == called

    async def test_actions_fail_quietly_after_disconnect(self, alice, store):
        store.disconnect()

        assert await alice.call_number() is None
        assert alice.view.message == MSG_CONNECTION_LOST

    async def test_action_failure_sets_notice(self, alice, store):
        await alice.call_number()
        # actions fail but the subscription was never told
        store._failure = ConnectionError("flaky")

        assert await alice.call_number() is None
        assert alice.view.message == MSG_ACTION_FAILED
        assert not alice.view.degraded

    async def test_reset_failure_returns_empty_result(self, alice, store):
        store.disconnect()

        result = await alice.reset()

        assert result.succeeded == []
        assert result.failed == {}


class TestMalformedDocuments:
    async def test_malformed_session_is_ignored(self, alice, store):
        await alice.call_number()
        before = alice.session

        await store.set_document(alice.paths.session, {"status": "bogus", "called_numbers": [0, 99]})

        assert alice.session == before
        assert alice.session.status == GameStatus.PLAYING

    async def test_malformed_participant_is_ignored(self, alice, store):
        await store.set_document(alice.paths.player("mallory"), {"card": "not a card"})

        assert "mallory" not in alice.directory
        assert list(alice.directory) == ["alice"]

    async def test_session_without_caller_falls_back_to_first_player(self, alice, bob, store):
        await store.set_document(alice.paths.session, {"called_numbers": [], "status": "waiting", "winner": None})

        assert bob.session.caller is None
        assert alice.is_caller
        assert not bob.is_caller

    async def test_deleted_session_is_recreated(self, alice, bob, store):
        await store.delete_document(alice.paths.session)

        await wait_until(lambda: alice.session is not None and bob.session is not None)

        assert alice.session.status == GameStatus.WAITING
        assert alice.session.caller in {"alice", "bob"}
        assert alice.session == bob.session
