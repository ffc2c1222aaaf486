"""Pydantic models for room APIs."""

from __future__ import annotations

from pydantic import BaseModel

from bingo_server.rooms.room import DEFAULT_CALL_INTERVAL
from bingo_server.rooms.room import DEFAULT_MAX_PLAYERS
from bingo_server.rooms.room import DEFAULT_ROOM_NAME


class CreateRoomRequest(BaseModel):
    """POST /api/rooms request body."""

    name: str = DEFAULT_ROOM_NAME
    max_players: int = DEFAULT_MAX_PLAYERS
    call_interval: int = DEFAULT_CALL_INTERVAL
    is_paid: bool = False
    entry_fee: float = 0.0


class PaymentRequest(BaseModel):
    """POST /api/rooms/{room_id}/payment request body; amount defaults to the entry fee."""

    amount: float | None = None


class WinClaimRequest(BaseModel):
    """POST /api/rooms/{room_id}/claim request body."""

    marked_cells: list[list[bool]] | None = None


class RefundRequest(BaseModel):
    """POST /api/payments/refund request body."""

    room_id: str
