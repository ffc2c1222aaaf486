"""WebSocket heartbeat and message-loop utilities."""

from __future__ import annotations

import asyncio
from datetime import datetime
from datetime import timezone
import time
from typing import Any

from fastapi import WebSocketDisconnect

from bingo_server.core.tokens import AccessTokenExpiredError
from bingo_server.core.tokens import AccessTokenInvalidError
from bingo_server.core.tokens import decode_access_token

from .protocol import EVENT_PING
from .protocol import EVENT_PONG
from .protocol import parse_event_type
from .protocol import ws_send_event

HEARTBEAT_INTERVAL_SECONDS = 30.0
HEARTBEAT_MAX_MISSED = 2


class HeartbeatState:
    """Counts pings the peer has not answered since its last PONG."""

    def __init__(self) -> None:
        self.unanswered = 0
        self.last_pong_at: float | None = None

    def ping_sent(self) -> None:
        self.unanswered += 1

    def pong_received(self) -> None:
        self.unanswered = 0
        self.last_pong_at = time.monotonic()


def token_expiry_epoch(access_token: str) -> int | None:
    try:
        payload = decode_access_token(access_token, now=datetime.now(timezone.utc))
    except (AccessTokenInvalidError, AccessTokenExpiredError):
        return None
    exp = payload.get("exp")
    return exp if isinstance(exp, int) else None


async def heartbeat_loop(
    websocket: Any,
    *,
    state: HeartbeatState,
    interval_seconds: float = HEARTBEAT_INTERVAL_SECONDS,
    max_missed: int = HEARTBEAT_MAX_MISSED,
) -> None:
    while True:
        if state.unanswered > max_missed:
            await websocket.close(code=4408, reason="HEARTBEAT_TIMEOUT")
            return
        await ws_send_event(websocket, EVENT_PING, {})
        state.ping_sent()
        await asyncio.sleep(interval_seconds)


async def close_on_token_expiry(websocket: Any, *, expire_epoch: int) -> None:
    delay = max(float(expire_epoch) - datetime.now(timezone.utc).timestamp(), 0.0)
    await asyncio.sleep(delay)
    await websocket.close(code=4401, reason="UNAUTHORIZED")


async def ws_message_loop(websocket: Any, *, token_expire_epoch_value: int | None = None) -> None:
    """Answer PINGs and record PONGs until the peer disconnects; owned tasks die with the loop."""
    state = HeartbeatState()
    tasks = [asyncio.create_task(heartbeat_loop(websocket, state=state))]
    if token_expire_epoch_value is not None:
        tasks.append(asyncio.create_task(close_on_token_expiry(websocket, expire_epoch=token_expire_epoch_value)))
    try:
        while True:
            message = await websocket.receive_text()
            event_type = parse_event_type(message)
            if event_type == EVENT_PING:
                await ws_send_event(websocket, EVENT_PONG, {})
            elif event_type == EVENT_PONG:
                state.pong_received()
    except WebSocketDisconnect:
        return
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
