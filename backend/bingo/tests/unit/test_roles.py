"""Tests for caller resolution and presence."""

from datetime import UTC, datetime, timedelta

from bingo.session.models import GameSession, ParticipantRecord
from bingo.session.roles import active_participants, is_caller, resolve_caller

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)


def _directory(*ids, last_active=None):
    return {pid: ParticipantRecord(id=pid, last_active=last_active) for pid in ids}


class TestResolveCaller:
    def test_explicit_caller_wins_over_directory_order(self):
        session = GameSession(caller="carol")
        assert resolve_caller(session, _directory("alice", "bob", "carol")) == "carol"

    def test_explicit_caller_holds_even_when_absent_from_directory(self):
        assert resolve_caller(GameSession(caller="gone"), _directory("alice")) == "gone"

    def test_falls_back_to_first_observed_participant(self):
        assert resolve_caller(GameSession(), _directory("bob", "alice")) == "bob"

    def test_no_session_falls_back_to_directory(self):
        assert resolve_caller(None, _directory("alice")) == "alice"

    def test_empty_directory_has_no_caller(self):
        assert resolve_caller(GameSession(), {}) is None

    def test_different_observed_orders_can_disagree(self):
        session = GameSession()
        assert is_caller("alice", session, _directory("alice", "bob"))
        assert is_caller("bob", session, _directory("bob", "alice"))


class TestActiveParticipants:
    def test_filters_by_timeout(self):
        directory = {
            "fresh": ParticipantRecord(id="fresh", last_active=NOW - timedelta(seconds=5)),
            "stale": ParticipantRecord(id="stale", last_active=NOW - timedelta(seconds=120)),
            "never": ParticipantRecord(id="never"),
        }
        assert active_participants(directory, NOW, timeout_seconds=60) == ["fresh"]

    def test_keeps_directory_order(self):
        directory = _directory("b", "a", last_active=NOW)
        assert active_participants(directory, NOW, timeout_seconds=1) == ["b", "a"]
