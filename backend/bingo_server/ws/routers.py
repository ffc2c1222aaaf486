"""WebSocket route handlers for lobby and room channels."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import HTTPException
from fastapi import WebSocket
from fastapi import WebSocketDisconnect

import bingo_server.runtime as runtime
from bingo_server.api.deps import me

from .broadcast import send_lobby_snapshot
from .broadcast import send_room_snapshot
from .heartbeat import token_expiry_epoch
from .heartbeat import ws_message_loop

router = APIRouter()


async def close_ws_unauthorized(websocket: WebSocket) -> None:
    """Close websocket with unified unauthorized semantics."""
    await websocket.accept()
    await websocket.close(code=4401, reason="UNAUTHORIZED")


async def _authorize(websocket: WebSocket) -> int | None:
    """Return the token expiry for a valid ?token=, or None after closing the socket."""
    token = websocket.query_params.get("token")
    if not token:
        await close_ws_unauthorized(websocket)
        return None
    try:
        me(token)
    except HTTPException:
        await close_ws_unauthorized(websocket)
        return None
    token_expire = token_expiry_epoch(token)
    if token_expire is None:
        await close_ws_unauthorized(websocket)
    return token_expire


@router.websocket("/ws/lobby")
async def ws_lobby(websocket: WebSocket) -> None:
    """Lobby websocket: auth + initial ROOM_LIST + pushed updates."""
    token_expire = await _authorize(websocket)
    if token_expire is None:
        return

    await websocket.accept()
    runtime.lobby_connections.add(websocket)
    try:
        await send_lobby_snapshot(websocket)
        await ws_message_loop(websocket, token_expire_epoch_value=token_expire)
    except WebSocketDisconnect:
        return
    finally:
        runtime.lobby_connections.discard(websocket)


@router.websocket("/ws/rooms/{room_id}")
async def ws_room(websocket: WebSocket, room_id: str) -> None:
    """Room websocket: auth + initial ROOM_UPDATE + pushed updates until the room is gone."""
    token_expire = await _authorize(websocket)
    if token_expire is None:
        return

    if runtime.room_lifecycle.get_room(room_id) is None:
        await websocket.accept()
        await websocket.close(code=4404, reason="ROOM_NOT_FOUND")
        return

    await websocket.accept()
    listeners = runtime.room_connections.setdefault(room_id, set())
    listeners.add(websocket)
    try:
        await send_room_snapshot(websocket, room_id)
        await ws_message_loop(websocket, token_expire_epoch_value=token_expire)
    except WebSocketDisconnect:
        return
    finally:
        listeners.discard(websocket)
        if not listeners:
            runtime.room_connections.pop(room_id, None)
