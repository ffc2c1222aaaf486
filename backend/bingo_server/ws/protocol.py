"""WebSocket wire protocol helpers."""

from __future__ import annotations

import json
from typing import Any

WS_PROTOCOL_VERSION = 1

EVENT_ROOM_LIST = "ROOM_LIST"
EVENT_ROOM_UPDATE = "ROOM_UPDATE"
EVENT_ROOM_DELETED = "ROOM_DELETED"
EVENT_PING = "PING"
EVENT_PONG = "PONG"


def ws_event(event_type: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {"v": WS_PROTOCOL_VERSION, "type": event_type, "payload": payload}


def parse_event_type(message: str) -> str | None:
    """Return the type of an inbound message; bare 'PING'/'PONG' text is accepted too."""
    if message in (EVENT_PING, EVENT_PONG):
        return message
    try:
        payload = json.loads(message)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    event_type = payload.get("type")
    return event_type if isinstance(event_type, str) else None


async def ws_send_event(websocket: Any, event_type: str, payload: dict[str, Any]) -> None:
    message = ws_event(event_type, payload)
    if hasattr(websocket, "send_json"):
        await websocket.send_json(message)
        return
    if hasattr(websocket, "send_text"):
        await websocket.send_text(json.dumps(message))
