"""Deterministic card generation and the 75-ball draw pool."""

from __future__ import annotations

import hashlib
import logging
import random
from collections.abc import Iterable

logger = logging.getLogger(__name__)

LETTERS = "BINGO"
FREE = "FREE"
CARD_SIZE = 5
CENTER = CARD_SIZE // 2
NUMBERS_PER_COLUMN = 15
MAX_SEED_ATTEMPTS = 100

ALL_NUMBERS: tuple[str, ...] = tuple(
    f"{letter}{col * NUMBERS_PER_COLUMN + offset}"
    for col, letter in enumerate(LETTERS)
    for offset in range(1, NUMBERS_PER_COLUMN + 1)
)

# Rendered when generation fails unexpectedly; every column stays inside its range.
FALLBACK_CARD: tuple[tuple[str, ...], ...] = tuple(
    tuple(
        FREE
        if row == CENTER and col == CENTER
        else f"{LETTERS[col]}{col * NUMBERS_PER_COLUMN + row * 3 + 1}"
        for col in range(CARD_SIZE)
    )
    for row in range(CARD_SIZE)
)


def column_bounds(col: int) -> tuple[int, int]:
    """Return the inclusive value range for one card column."""
    low = col * NUMBERS_PER_COLUMN + 1
    return low, low + NUMBERS_PER_COLUMN - 1


def label(value: int) -> str:
    """Format a raw ball value as its lettered label, e.g. 23 -> I23."""
    if value < 1 or value > len(ALL_NUMBERS):
        raise ValueError(f"ball value out of range: {value}")
    return f"{LETTERS[(value - 1) // NUMBERS_PER_COLUMN]}{value}"


def parse_label(text: str) -> int:
    """Return the numeric part of a label, validating its letter matches the column."""
    if len(text) < 2 or text[0] not in LETTERS or not text[1:].isdigit():
        raise ValueError(f"not a bingo label: {text!r}")
    value = int(text[1:])
    if label(value) != text:
        raise ValueError(f"letter does not match number: {text!r}")
    return value


def is_valid_label(text: str) -> bool:
    try:
        parse_label(text)
    except ValueError:
        return False
    return True


def _seeded_value(seed: str, col: int, row: int, attempt: int) -> int:
    digest = hashlib.sha256(f"{seed}-{col}-{row}-{attempt}".encode("utf-8")).hexdigest()
    low, _ = column_bounds(col)
    return int(digest[:8], 16) % NUMBERS_PER_COLUMN + low


def _pick_cell(seed: str, col: int, row: int, used: set[int]) -> int:
    for attempt in range(MAX_SEED_ATTEMPTS):
        value = _seeded_value(seed, col, row, attempt)
        if value not in used:
            return value
    # Smallest unused value keeps the column unique and the result deterministic.
    low, high = column_bounds(col)
    return next(value for value in range(low, high + 1) if value not in used)


def _build_card(seed: str) -> list[list[str]]:
    grid: list[list[str]] = [[FREE] * CARD_SIZE for _ in range(CARD_SIZE)]
    for col in range(CARD_SIZE):
        used: set[int] = set()
        for row in range(CARD_SIZE):
            if row == CENTER and col == CENTER:
                continue
            value = _pick_cell(seed, col, row, used)
            used.add(value)
            grid[row][col] = f"{LETTERS[col]}{value}"
    return grid


def generate_card(seed: str) -> list[list[str]]:
    """Derive a 5x5 card from a seed; the same seed always yields the same grid.

    The grid is indexed ``card[row][col]`` and the center cell is ``FREE``.
    Unexpected failures fall back to a fixed valid card instead of raising.
    """
    try:
        return _build_card(str(seed))
    except Exception:  # pylint: disable=broad-except
        logger.exception("card generation failed; using fallback card")
        return [list(row) for row in FALLBACK_CARD]


def card_seed(identity: str, room_id: str) -> str:
    """Seed used for a player's card in one room."""
    return f"{identity}-{room_id}"


def draw_number(excluding: Iterable[str] = (), rng: random.Random | None = None) -> str | None:
    """Draw one label uniformly from those not yet called, or None when exhausted."""
    called = set(excluding)
    remaining = [value for value in ALL_NUMBERS if value not in called]
    if not remaining:
        return None
    chooser = rng or random
    return chooser.choice(remaining)


__all__ = [
    "ALL_NUMBERS",
    "CARD_SIZE",
    "CENTER",
    "FALLBACK_CARD",
    "FREE",
    "LETTERS",
    "MAX_SEED_ATTEMPTS",
    "NUMBERS_PER_COLUMN",
    "card_seed",
    "column_bounds",
    "draw_number",
    "generate_card",
    "is_valid_label",
    "label",
    "parse_label",
]
