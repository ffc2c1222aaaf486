"""Pure bingo game logic: cards, draw pool, win detection and a debug CLI."""
