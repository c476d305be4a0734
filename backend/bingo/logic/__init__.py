"""Pure bingo rules: card generation and win validation."""

from bingo.logic.card import FREE, MAX_NUMBER, Card, generate_card, is_valid_card
from bingo.logic.enums import GameStatus, LineKind
from bingo.logic.win import Line, check_win, winning_line

__all__ = [
    "FREE",
    "MAX_NUMBER",
    "Card",
    "GameStatus",
    "Line",
    "LineKind",
    "check_win",
    "generate_card",
    "is_valid_card",
    "winning_line",
]
