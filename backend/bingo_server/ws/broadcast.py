"""Snapshot and broadcast helpers for lobby/room websocket streams."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import bingo_server.runtime as runtime
from bingo_server.api.room_views import room_detail
from bingo_server.api.room_views import room_summary
from bingo_server.rooms.room import Room

from .protocol import EVENT_ROOM_DELETED
from .protocol import EVENT_ROOM_LIST
from .protocol import EVENT_ROOM_UPDATE
from .protocol import ws_send_event

logger = logging.getLogger(__name__)


async def send_lobby_snapshot(websocket: Any) -> None:
    rooms = [room_summary(room) for room in runtime.room_lifecycle.get_available_rooms()]
    await ws_send_event(websocket, EVENT_ROOM_LIST, {"rooms": rooms})


async def send_room_snapshot(websocket: Any, room_id: str) -> None:
    room = runtime.room_lifecycle.get_room(room_id)
    if room is None:
        await ws_send_event(websocket, EVENT_ROOM_DELETED, {"room_id": room_id})
        return
    await ws_send_event(websocket, EVENT_ROOM_UPDATE, {"room": room_detail(room)})


def dispatch_async(coro: Any) -> None:
    """Run a coroutine on the current loop, else on the server loop, else inline."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None
    if loop is not None:
        loop.create_task(coro)
        return
    server_loop = runtime.event_loop
    if server_loop is not None and server_loop.is_running():
        asyncio.run_coroutine_threadsafe(coro, server_loop)
        return
    asyncio.run(coro)


async def broadcast_lobby_rooms() -> None:
    stale: list[Any] = []
    for websocket in list(runtime.lobby_connections):
        try:
            await send_lobby_snapshot(websocket)
        except Exception:  # pylint: disable=broad-except
            stale.append(websocket)
    for websocket in stale:
        runtime.lobby_connections.discard(websocket)


async def broadcast_room_update(room_id: str) -> None:
    listeners = runtime.room_connections.get(room_id)
    if not listeners:
        return

    stale: list[Any] = []
    for websocket in list(listeners):
        try:
            await send_room_snapshot(websocket, room_id)
        except Exception:  # pylint: disable=broad-except
            stale.append(websocket)

    for websocket in stale:
        listeners.discard(websocket)
    if not listeners:
        runtime.room_connections.pop(room_id, None)


async def broadcast_room_changes(room_ids: list[str]) -> None:
    seen: set[str] = set()
    for room_id in room_ids:
        if room_id in seen:
            continue
        seen.add(room_id)
        await broadcast_room_update(room_id)
    await broadcast_lobby_rooms()


def notify_room_change(room_id: str, room: Room | None) -> None:
    """Room store listener: push the change to anyone connected."""
    if not runtime.lobby_connections and room_id not in runtime.room_connections:
        return
    logger.debug("pushing room change room_id=%s deleted=%s", room_id, room is None)
    dispatch_async(broadcast_room_changes([room_id]))
