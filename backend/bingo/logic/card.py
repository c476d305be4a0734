"""
Bingo card generation.

A card is 5 columns of 5 cells stored column-major: column c holds five
distinct numbers from [15c + 1, 15c + 15], sorted ascending, and the
middle cell of the middle column is the FREE sentinel.
"""

from __future__ import annotations

import random
from typing import Literal

from pydantic import ConfigDict, RootModel

FREE = "FREE"
CARD_SIZE = 5
COLUMN_SPAN = 15
MAX_NUMBER = CARD_SIZE * COLUMN_SPAN  # 75
CENTER = CARD_SIZE // 2

CellValue = int | Literal["FREE"]


def column_range(column: int) -> range:
    """Numbers allowed in a column: 1-15, 16-30, 31-45, 46-60, 61-75."""
    low = column * COLUMN_SPAN + 1
    return range(low, low + COLUMN_SPAN)


class Card(RootModel[tuple[tuple[CellValue, ...], ...]]):
    """A participant's card; `card.columns[c][r]` is column c, row r.

    Parsing is lenient about shape because cards arrive from other clients
    through the shared store; use is_valid_card() before trusting one.
    """

    model_config = ConfigDict(frozen=True)

    @property
    def columns(self) -> tuple[tuple[CellValue, ...], ...]:
        return self.root

    def cell(self, column: int, row: int) -> CellValue:
        return self.root[column][row]

    def numbers(self) -> frozenset[int]:
        """All numbers on the card, without the FREE cell."""
        return frozenset(v for col in self.root for v in col if v != FREE)

    def __contains__(self, value: object) -> bool:
        return any(value in col for col in self.root)

    def to_document(self) -> list[list[CellValue]]:
        return [list(col) for col in self.root]


def generate_card(rng: random.Random | None = None) -> Card:
    """Generate a fresh random card.

    Each column is filled by rejection sampling: draw from the column's
    range and retry on duplicates until five distinct numbers are held.
    """
    rng = rng or random.Random()  # noqa: S311
    columns: list[list[CellValue]] = []
    for column in range(CARD_SIZE):
        allowed = column_range(column)
        picked: set[int] = set()
        while len(picked) < CARD_SIZE:
            picked.add(rng.randint(allowed.start, allowed.stop - 1))
        columns.append(sorted(picked))
    columns[CENTER][CENTER] = FREE
    return Card(tuple(tuple(col) for col in columns))


def is_valid_card(card: Card) -> bool:
    """Check the card invariants: shape, column ranges, distinct sorted columns, FREE centre only."""
    if len(card.columns) != CARD_SIZE:
        return False
    for index, column in enumerate(card.columns):
        if len(column) != CARD_SIZE:
            return False
        if index == CENTER:
            if column[CENTER] != FREE:
                return False
            column = column[:CENTER] + column[CENTER + 1 :]  # noqa: PLW2901
        if FREE in column:
            return False
        allowed = column_range(index)
        if any(value not in allowed for value in column):
            return False
        if list(column) != sorted(set(column)):
            return False
    return True
