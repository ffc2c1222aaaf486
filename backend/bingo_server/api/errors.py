"""HTTP error mapping helpers for API routes."""

from __future__ import annotations

from typing import Any
from typing import NoReturn

from fastapi import HTTPException

from bingo_server.auth.http import api_error
from bingo_server.rooms.room import RoomError


def raise_api_error(
    *,
    status_code: int,
    code: str,
    message: str,
    detail: dict[str, Any],
) -> NoReturn:
    raise HTTPException(
        status_code=status_code,
        detail=api_error(code=code, message=message, detail=detail),
    )


def raise_room_error(exc: RoomError, **detail: Any) -> NoReturn:
    """Map a room-domain error to its user-facing code and message."""
    raise HTTPException(
        status_code=exc.status_code,
        detail=api_error(code=exc.code, message=exc.message, detail=detail),
    ) from exc
