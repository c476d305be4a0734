"""Derive the caller role and player presence from shared snapshots."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from bingo.session.models import GameSession, ParticipantRecord


def resolve_caller(session: GameSession | None, directory: Mapping[str, ParticipantRecord]) -> str | None:
    """Return the participant allowed to call numbers.

    The session's explicit caller field wins. Sessions written without one
    fall back to the first participant in the locally observed directory
    order, which two clients can see differently while replication lags.
    No caller is reassigned when the recorded caller leaves.
    """
    if session is not None and session.caller:
        return session.caller
    return next(iter(directory), None)


def is_caller(
    participant_id: str,
    session: GameSession | None,
    directory: Mapping[str, ParticipantRecord],
) -> bool:
    return resolve_caller(session, directory) == participant_id


def active_participants(
    directory: Mapping[str, ParticipantRecord],
    now: datetime,
    timeout_seconds: float,
) -> list[str]:
    """Participants whose last activity is within the presence timeout, in directory order."""
    cutoff = now - timedelta(seconds=timeout_seconds)
    return [
        participant_id
        for participant_id, record in directory.items()
        if record.last_active is not None and record.last_active >= cutoff
    ]
