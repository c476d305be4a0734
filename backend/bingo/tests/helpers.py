"""Card builders and store shortcuts shared by bingo tests."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from bingo.logic.card import CARD_SIZE, FREE, Card, CellValue

if TYPE_CHECKING:
    from collections.abc import Callable

    from bingo.session.controller import SessionController
    from shared.dal.document_store import DocumentStore

TEST_APP_ID = "bingo-tests"
# short enough to wait out in tests
TEST_GRACE_SECONDS = 0.05

# Smallest numbers of every column; row r holds 1+r, 16+r, 31+r, 46+r, 61+r.
KNOWN_CARD = Card(
    (
        (1, 2, 3, 4, 5),
        (16, 17, 18, 19, 20),
        (31, 32, FREE, 34, 35),
        (46, 47, 48, 49, 50),
        (61, 62, 63, 64, 65),
    ),
)


def row_cells(card: Card, row: int) -> list[CellValue]:
    return [card.cell(column, row) for column in range(CARD_SIZE)]


def numbers_only(cells: list[CellValue]) -> list[int]:
    return [c for c in cells if c != FREE]


def winning_numbers(card: Card) -> list[int]:
    """Numbers that complete the first row of a card."""
    return numbers_only(row_cells(card, 0))


def losing_numbers(card: Card) -> list[int]:
    """One number per row and column of the card: no line can be complete."""
    return numbers_only([card.cell(i, (i + 1) % CARD_SIZE) for i in range(CARD_SIZE)])


async def update_session(store: DocumentStore, controller: SessionController, **fields: Any) -> None:
    """Write session fields directly, as another (possibly older) client would."""
    data = {k: v.value if hasattr(v, "value") else v for k, v in fields.items()}
    await store.update_document(controller.paths.session, data)


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until predicate() holds; fail after timeout seconds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.005)
