"""
Win validation: does a card hold a complete line against the called numbers?

A line (row, column, or one of the two full diagonals) is complete when
every cell is FREE or has been called. Marking is irrelevant: a player
wins on called-number coverage alone.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from bingo.logic.card import CARD_SIZE, FREE, Card, CellValue
from bingo.logic.enums import LineKind


@dataclass(frozen=True)
class Line:
    """A winning line; index is the row/column number (0 for diagonals)."""

    kind: LineKind
    index: int = 0

    def __str__(self) -> str:
        if self.kind in (LineKind.ROW, LineKind.COLUMN):
            return f"{self.kind.value} {self.index + 1}"
        return self.kind.value.replace("_", " ")


def _as_grid(card: Card | Sequence[Sequence[CellValue]]) -> Sequence[Sequence[CellValue]] | None:
    """Return the column-major grid, or None when the card is not a full 5x5 grid."""
    columns = card.columns if isinstance(card, Card) else card
    if not isinstance(columns, Sequence) or len(columns) != CARD_SIZE:
        return None
    for column in columns:
        if not isinstance(column, Sequence) or isinstance(column, str) or len(column) != CARD_SIZE:
            return None
    return columns


def iter_lines(grid: Sequence[Sequence[CellValue]]) -> Iterator[tuple[Line, list[CellValue]]]:
    """Yield the 12 lines in evaluation order: rows, columns, diagonal, anti-diagonal."""
    for row in range(CARD_SIZE):
        yield Line(LineKind.ROW, row), [grid[column][row] for column in range(CARD_SIZE)]
    for column in range(CARD_SIZE):
        yield Line(LineKind.COLUMN, column), list(grid[column])
    yield Line(LineKind.DIAGONAL), [grid[i][i] for i in range(CARD_SIZE)]
    yield Line(LineKind.ANTI_DIAGONAL), [grid[CARD_SIZE - 1 - i][i] for i in range(CARD_SIZE)]


def winning_line(card: Card | Sequence[Sequence[CellValue]], called: Iterable[int]) -> Line | None:
    """Return the first complete line, or None. Malformed cards never win."""
    grid = _as_grid(card)
    if grid is None:
        return None
    called_set = called if isinstance(called, (set, frozenset)) else frozenset(called)
    for line, cells in iter_lines(grid):
        if all(cell == FREE or cell in called_set for cell in cells):
            return line
    return None


def check_win(card: Card | Sequence[Sequence[CellValue]], called: Iterable[int]) -> bool:
    return winning_line(card, called) is not None
