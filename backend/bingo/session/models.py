"""Shared documents of a bingo game and where they live in the store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bingo.logic.card import MAX_NUMBER, Card
from bingo.logic.enums import GameStatus
from shared.dal.paths import join_path, split_path

SESSION_COLLECTION = "game"
SESSION_DOCUMENT_ID = "current"
PLAYERS_COLLECTION = "players"

CalledNumber = Annotated[int, Field(ge=1, le=MAX_NUMBER)]


@dataclass(frozen=True)
class SessionPaths:
    """Store paths for one game instance, namespaced by app_id.

    {app_id}/game/current       the single game session document
    {app_id}/players/{id}       one participant record per player
    """

    app_id: str

    def __post_init__(self) -> None:
        if len(split_path(self.app_id)) != 1:
            raise ValueError(f"app_id must be a single path segment, got {self.app_id!r}")

    @property
    def session(self) -> str:
        return join_path(self.app_id, SESSION_COLLECTION, SESSION_DOCUMENT_ID)

    @property
    def players(self) -> str:
        return join_path(self.app_id, PLAYERS_COLLECTION)

    def player(self, participant_id: str) -> str:
        return join_path(self.app_id, PLAYERS_COLLECTION, participant_id)


class GameSession(BaseModel):
    """The shared game session document.

    caller is set once by the participant that created the document and
    survives resets. called_numbers is append-only within a round.
    """

    model_config = ConfigDict(frozen=True)

    called_numbers: tuple[CalledNumber, ...] = ()
    status: GameStatus = GameStatus.WAITING
    winner: str | None = None
    caller: str | None = None

    @field_validator("called_numbers")
    @classmethod
    def drop_duplicate_numbers(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        # Older clients could double-append under a racing write; keep first occurrence.
        return tuple(dict.fromkeys(v))

    @property
    def last_number(self) -> int | None:
        return self.called_numbers[-1] if self.called_numbers else None

    @property
    def called_set(self) -> frozenset[int]:
        return frozenset(self.called_numbers)

    def remaining_numbers(self) -> list[int]:
        called = self.called_set
        return [n for n in range(1, MAX_NUMBER + 1) if n not in called]

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class ParticipantRecord(BaseModel):
    """One entry in the shared player directory.

    card and last_active are written only by the owning participant;
    has_claimed_bingo is shared-write (reset clears everyone's).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    card: Card | None = None
    last_active: datetime | None = None
    has_claimed_bingo: bool = False

    @field_validator("last_active")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
