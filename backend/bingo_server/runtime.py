"""Process-wide runtime state shared by REST and WebSocket handlers."""

from __future__ import annotations

import asyncio
from typing import Any

from bingo_server.core.config import Settings
from bingo_server.core.config import load_settings
from bingo_server.rooms.caller import CallerScheduler
from bingo_server.rooms.lifecycle import RoomLifecycle
from bingo_server.rooms.lifecycle import RoomRules
from bingo_server.rooms.mock_players import MockPlayerHarness
from bingo_server.rooms.payments import LedgerPaymentGateway
from bingo_server.rooms.store import RoomStore
from bingo_server.rooms.store import build_room_backend


def _build_lifecycle(settings: Settings) -> tuple[RoomStore, LedgerPaymentGateway, RoomLifecycle]:
    store = RoomStore(build_room_backend(settings.sbingo_room_backend, sqlite_path=settings.sbingo_sqlite_path))
    ledger = LedgerPaymentGateway(
        fee_percent=settings.sbingo_platform_fee_percent,
        refund_cooldown_seconds=settings.sbingo_refund_cooldown_seconds,
        starting_balance=settings.sbingo_starting_balance,
    )
    lifecycle = RoomLifecycle(store, ledger, rules=RoomRules.from_settings(settings))
    return store, ledger, lifecycle


settings = load_settings()
room_store, payment_gateway, room_lifecycle = _build_lifecycle(settings)
caller_scheduler = CallerScheduler(room_store)
mock_players = MockPlayerHarness(
    room_lifecycle,
    payment_gateway,
    per_room=settings.sbingo_mock_player_count,
)
event_loop: asyncio.AbstractEventLoop | None = None
lobby_connections: set[Any] = set()
room_connections: dict[str, set[Any]] = {}


def startup() -> None:
    """Reload settings and reset in-memory room, payment and connection state."""
    global settings, room_store, payment_gateway, room_lifecycle, caller_scheduler, mock_players
    global event_loop, lobby_connections, room_connections
    settings = load_settings()
    room_store, payment_gateway, room_lifecycle = _build_lifecycle(settings)
    caller_scheduler = CallerScheduler(room_store)
    mock_players = MockPlayerHarness(
        room_lifecycle,
        payment_gateway,
        per_room=settings.sbingo_mock_player_count,
    )
    room_store.subscribe(caller_scheduler.on_room_change)
    event_loop = None
    lobby_connections = set()
    room_connections = {}


__all__ = [
    "Settings",
    "caller_scheduler",
    "event_loop",
    "lobby_connections",
    "mock_players",
    "payment_gateway",
    "room_connections",
    "room_lifecycle",
    "room_store",
    "settings",
    "startup",
]
