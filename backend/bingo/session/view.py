"""Derived, render-ready state of one participant's view of the game."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from bingo.logic.card import FREE, Card, CellValue
from bingo.logic.enums import GameStatus

MSG_CONNECTING = "Connecting to the game..."
MSG_UNAVAILABLE = "Could not reach the game. Reload to try again."
MSG_CONNECTION_LOST = "Lost connection to the game. Showing the last known state."
MSG_WAITING_CALLER = "You are the caller. Call a number to start the game."
MSG_WAITING = "Waiting for the caller to start the game."
MSG_NO_NUMBERS = "Game started. Waiting for the first number."
MSG_YOU_WON = "BINGO! You win!"
MSG_GAME_OVER = "All numbers have been called. Game over."
MSG_CLAIM_REJECTED = "No complete line yet. You can claim again in a moment."
MSG_CLAIM_TOO_LATE = "Too late, this round has already ended."
MSG_WRITE_CONTENDED = "The game was busy, please try again."
MSG_ACTION_FAILED = "Could not reach the game, your last action was not saved."


class ViewState(BaseModel):
    """Everything a client needs to render; rebuilt on every change."""

    model_config = ConfigDict(frozen=True)

    participant_id: str
    status: GameStatus | None = None
    message: str = MSG_CONNECTING
    card: Card | None = None
    called_numbers: tuple[int, ...] = ()
    last_number: int | None = None
    marked: frozenset[CellValue] = frozenset()
    markable: frozenset[CellValue] = frozenset()
    winner: str | None = None
    caller: str | None = None
    is_caller: bool = False
    can_call: bool = False
    can_claim: bool = False
    has_claimed_bingo: bool = False
    players: tuple[str, ...] = ()
    active_players: tuple[str, ...] = ()
    degraded: bool = False
    unavailable: bool = False


def markable_cells(card: Card | None, status: GameStatus | None, called: frozenset[int]) -> frozenset[CellValue]:
    """Cells the participant may toggle right now: FREE or already called, while playing."""
    if card is None or status != GameStatus.PLAYING:
        return frozenset()
    return frozenset(v for col in card.columns for v in col if v == FREE or v in called)


def status_message(
    *,
    participant_id: str,
    status: GameStatus | None,
    last_number: int | None,
    winner: str | None,
    is_caller: bool,
) -> str:
    if status is None:
        return MSG_CONNECTING
    if status == GameStatus.WAITING:
        return MSG_WAITING_CALLER if is_caller else MSG_WAITING
    if status == GameStatus.PLAYING:
        return f"Number called: {last_number}" if last_number is not None else MSG_NO_NUMBERS
    if status == GameStatus.BINGO_CALLED:
        if winner == participant_id:
            return MSG_YOU_WON
        return f"BINGO! {winner or 'Another player'} wins this round."
    return MSG_GAME_OVER
