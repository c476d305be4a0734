"""
String enum definitions for bingo game concepts.
"""

from enum import Enum


class GameStatus(str, Enum):
    """Phase of the shared game session.

    waiting -> playing -> bingo_called, or playing -> game_over when every
    number has been called. bingo_called and game_over only leave via reset.
    """

    WAITING = "waiting"
    PLAYING = "playing"
    BINGO_CALLED = "bingo_called"
    GAME_OVER = "game_over"


class LineKind(str, Enum):
    """Kinds of winning lines on a card."""

    ROW = "row"
    COLUMN = "column"
    DIAGONAL = "diagonal"  # top-left to bottom-right
    ANTI_DIAGONAL = "anti_diagonal"  # top-right to bottom-left
