"""Win detection over a card, the player's marks and the called numbers."""

from __future__ import annotations

from collections.abc import Iterable
from collections.abc import Sequence
from typing import Any

from bingo_engine.cards import CARD_SIZE
from bingo_engine.cards import CENTER


def empty_marks() -> list[list[bool]]:
    """Fresh mark grid for a new attachment: only the free center is marked."""
    marks = [[False] * CARD_SIZE for _ in range(CARD_SIZE)]
    marks[CENTER][CENTER] = True
    return marks


def full_marks() -> list[list[bool]]:
    return [[True] * CARD_SIZE for _ in range(CARD_SIZE)]


def _cell(grid: Any, row: int, col: int) -> Any:
    try:
        return grid[row][col]
    except (IndexError, KeyError, TypeError):
        return None


def valid_cells(
    card: Sequence[Sequence[str]] | None,
    marked_cells: Sequence[Sequence[bool]] | None,
    called_numbers: Iterable[str] | None,
) -> list[list[bool]]:
    """Grid of cells that count towards a win.

    The center always counts. Any other cell counts only when the player marked
    it and its value really was called.
    """
    called = set(called_numbers or ())
    grid = [[False] * CARD_SIZE for _ in range(CARD_SIZE)]
    for row in range(CARD_SIZE):
        for col in range(CARD_SIZE):
            if row == CENTER and col == CENTER:
                grid[row][col] = True
                continue
            value = _cell(card, row, col)
            grid[row][col] = bool(_cell(marked_cells, row, col)) and value is not None and value in called
    return grid


def _lines() -> list[tuple[str, list[tuple[int, int]]]]:
    lines: list[tuple[str, list[tuple[int, int]]]] = []
    for idx in range(CARD_SIZE):
        lines.append((f"row{idx}", [(idx, col) for col in range(CARD_SIZE)]))
    for idx in range(CARD_SIZE):
        lines.append((f"col{idx}", [(row, idx) for row in range(CARD_SIZE)]))
    lines.append(("diagonal", [(idx, idx) for idx in range(CARD_SIZE)]))
    lines.append(("anti_diagonal", [(idx, CARD_SIZE - 1 - idx) for idx in range(CARD_SIZE)]))
    return lines


WIN_LINES = _lines()


def winning_lines(
    card: Sequence[Sequence[str]] | None,
    marked_cells: Sequence[Sequence[bool]] | None,
    called_numbers: Iterable[str] | None,
) -> list[str]:
    """Names of every completed line (row0..row4, col0..col4, diagonal, anti_diagonal)."""
    if not card or not called_numbers:
        return []
    valid = valid_cells(card, marked_cells, called_numbers)
    return [name for name, cells in WIN_LINES if all(valid[row][col] for row, col in cells)]


def has_won(
    card: Sequence[Sequence[str]] | None,
    marked_cells: Sequence[Sequence[bool]] | None,
    called_numbers: Iterable[str] | None,
) -> bool:
    """Return True when any row, column or diagonal is completely valid."""
    try:
        return bool(winning_lines(card, marked_cells, list(called_numbers or ())))
    except TypeError:
        return False


__all__ = [
    "WIN_LINES",
    "empty_marks",
    "full_marks",
    "has_won",
    "valid_cells",
    "winning_lines",
]
