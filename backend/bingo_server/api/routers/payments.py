"""Payment REST routes."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Header

import bingo_server.runtime as runtime
from bingo_server.api.deps import require_current_identity
from bingo_server.api.errors import raise_room_error
from bingo_server.rooms.models import RefundRequest
from bingo_server.rooms.room import RoomError

router = APIRouter()


@router.get("/api/payments/balance")
def get_balance(authorization: str | None = Header(default=None, alias="Authorization")) -> dict[str, object]:
    """Return the caller's simulated wallet balance."""
    identity = require_current_identity(authorization)
    return {"identity": identity, "balance": runtime.payment_gateway.balance_of(identity)}


@router.post("/api/payments/refund")
def request_refund(
    payload: RefundRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, object]:
    """Refund an entry fee released by leaving a room, once the cool-down has passed."""
    identity = require_current_identity(authorization)
    try:
        runtime.room_lifecycle.request_refund(payload.room_id, identity)
    except RoomError as exc:
        raise_room_error(exc, room_id=payload.room_id)
    return {"ok": True, "balance": runtime.payment_gateway.balance_of(identity)}
