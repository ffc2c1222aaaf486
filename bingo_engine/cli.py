"""Command-line runner for local card and draw debugging."""

from __future__ import annotations

import argparse
import random
import time
from typing import Any, Callable

from bingo_engine.cards import ALL_NUMBERS
from bingo_engine.cards import card_seed
from bingo_engine.cards import draw_number
from bingo_engine.cards import generate_card
from bingo_engine.win import full_marks
from bingo_engine.win import winning_lines


def resolve_seed(seed: int | None, now_provider: Callable[[], int] | None = None) -> int:
    """Return an explicit seed or derive one from current time."""

    if seed is not None:
        return int(seed)

    provider = now_provider or time.time_ns
    value = int(provider())
    return abs(value)


def render_card(card: list[list[str]], called: set[str] | None = None) -> str:
    """Render a card as a fixed-width grid; called cells are wrapped in brackets."""

    called = called or set()
    lines = ["   ".join(f"{letter:>5}" for letter in "BINGO")]
    for row in card:
        cells = []
        for value in row:
            text = f"[{value}]" if value in called else value
            cells.append(f"{text:>5}")
        lines.append("   ".join(cells))
    return "\n".join(lines)


def simulate_game(players: list[str], *, room_id: str = "cli-room", seed: int | None = None) -> dict[str, Any]:
    """Call numbers until the first player's card completes a line.

    Every player is assumed to mark every called number, so the winner is the
    first card whose line is fully drawn. Ties go to the earliest player.
    """

    actual_seed = resolve_seed(seed)
    rng = random.Random(actual_seed)
    cards = {player: generate_card(card_seed(player, room_id)) for player in players}
    called: list[str] = []
    while len(called) < len(ALL_NUMBERS):
        value = draw_number(called, rng=rng)
        if value is None:
            break
        called.append(value)
        for player in players:
            lines = winning_lines(cards[player], full_marks(), called)
            if lines:
                return {
                    "seed": actual_seed,
                    "called": called,
                    "winner": player,
                    "lines": lines,
                    "cards": cards,
                }
    return {"seed": actual_seed, "called": called, "winner": None, "lines": [], "cards": cards}


def run_cli(argv: list[str] | None = None, output_fn: Callable[[str], None] = print) -> int:
    parser = argparse.ArgumentParser(description="Inspect bingo cards and simulate draws.")
    sub = parser.add_subparsers(dest="command", required=True)

    card_parser = sub.add_parser("card", help="Print the card for a seed.")
    card_parser.add_argument("--seed", required=True, help="Card seed, usually '<identity>-<room id>'.")

    sim_parser = sub.add_parser("simulate", help="Play draws until somebody wins.")
    sim_parser.add_argument("--players", default="alice,bob", help="Comma separated identities.")
    sim_parser.add_argument("--room", default="cli-room", help="Room id used for card seeds.")
    sim_parser.add_argument("--seed", type=int, default=None, help="Optional random seed for reproducible runs.")

    args = parser.parse_args(argv)

    if args.command == "card":
        output_fn(render_card(generate_card(args.seed)))
        return 0

    players = [name.strip() for name in args.players.split(",") if name.strip()]
    if not players:
        parser.error("--players must name at least one identity")
    result = simulate_game(players, room_id=args.room, seed=args.seed)
    output_fn(f"seed={result['seed']}")
    output_fn(f"replay: python -m bingo_engine.cli simulate --players {','.join(players)} --seed {result['seed']}")
    output_fn(f"calls ({len(result['called'])}): {' '.join(result['called'])}")
    if result["winner"] is None:
        output_fn("pool exhausted without a winner")
        return 0
    winner = result["winner"]
    output_fn(f"winner: {winner} via {', '.join(result['lines'])}")
    output_fn(render_card(result["cards"][winner], set(result["called"])))
    return 0


def main(argv: list[str] | None = None) -> int:
    return run_cli(argv)


if __name__ == "__main__":
    raise SystemExit(main())
