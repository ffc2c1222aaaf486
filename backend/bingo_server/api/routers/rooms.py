"""Room REST routes."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Header

import bingo_server.runtime as runtime
from bingo_server.api.deps import require_current_identity
from bingo_server.api.errors import raise_api_error
from bingo_server.api.errors import raise_room_error
from bingo_server.api.room_views import room_detail
from bingo_server.api.room_views import room_summary
from bingo_server.api.room_views import settlement_detail
from bingo_server.rooms.models import CreateRoomRequest
from bingo_server.rooms.models import PaymentRequest
from bingo_server.rooms.models import WinClaimRequest
from bingo_server.rooms.room import RoomError

router = APIRouter()


@router.get("/api/rooms")
def list_available_rooms(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> list[dict[str, object]]:
    """Return joinable rooms: waiting, not full, free first then fullest first."""
    require_current_identity(authorization)
    return [room_summary(room) for room in runtime.room_lifecycle.get_available_rooms()]


@router.get("/api/rooms/all")
def list_all_rooms(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> list[dict[str, object]]:
    """Return every stored room."""
    require_current_identity(authorization)
    return [room_summary(room) for room in runtime.room_lifecycle.get_all_rooms()]


@router.get("/api/rooms/mine")
def get_my_room(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, object]:
    """Return the caller's active room, else any room still listing them."""
    identity = require_current_identity(authorization)
    room = runtime.room_lifecycle.get_player_room(identity)
    return {"room": None if room is None else room_detail(room)}


@router.post("/api/rooms")
def create_room(
    payload: CreateRoomRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, object]:
    """Create a room hosted by the caller."""
    identity = require_current_identity(authorization)
    try:
        room = runtime.room_lifecycle.create_room(
            creator=identity,
            name=payload.name,
            max_players=payload.max_players,
            call_interval=payload.call_interval,
            is_paid=payload.is_paid,
            entry_fee=payload.entry_fee,
        )
    except RoomError as exc:
        raise_room_error(exc)
    return room_detail(room)


@router.get("/api/rooms/{room_id}")
def get_room_detail(
    room_id: str,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, object]:
    """Return one room snapshot."""
    require_current_identity(authorization)
    try:
        room = runtime.room_lifecycle.require_room(room_id)
    except RoomError as exc:
        raise_room_error(exc, room_id=room_id)
    return room_detail(room)


@router.post("/api/rooms/{room_id}/join")
def join_room(
    room_id: str,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, object]:
    """Join as a player; joining the same room again is a no-op."""
    identity = require_current_identity(authorization)
    try:
        room = runtime.room_lifecycle.join_room(room_id, identity)
    except RoomError as exc:
        raise_room_error(exc, room_id=room_id)
    return room_detail(room)


@router.post("/api/rooms/{room_id}/leave")
def leave_room(
    room_id: str,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, object]:
    """Leave a room; the room is deleted when its last player leaves."""
    identity = require_current_identity(authorization)
    try:
        room = runtime.room_lifecycle.leave_room(room_id, identity)
    except RoomError as exc:
        raise_room_error(exc, room_id=room_id)
    return {"ok": True, "room": None if room is None else room_detail(room)}


@router.post("/api/rooms/{room_id}/watch")
def watch_room(
    room_id: str,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, object]:
    """Watch a room as a spectator."""
    identity = require_current_identity(authorization)
    try:
        room = runtime.room_lifecycle.watch_room(room_id, identity)
    except RoomError as exc:
        raise_room_error(exc, room_id=room_id)
    return room_detail(room)


@router.post("/api/rooms/{room_id}/unwatch")
def stop_watching(
    room_id: str,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, bool]:
    """Stop watching; unknown rooms are ignored."""
    identity = require_current_identity(authorization)
    try:
        runtime.room_lifecycle.stop_watching(room_id, identity)
    except RoomError as exc:
        raise_room_error(exc, room_id=room_id)
    return {"ok": True}


@router.post("/api/rooms/{room_id}/payment")
def confirm_payment(
    room_id: str,
    payload: PaymentRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, object]:
    """Pay the entry fee and record it in the room."""
    identity = require_current_identity(authorization)
    try:
        room = runtime.room_lifecycle.confirm_payment(room_id, identity, payload.amount)
    except RoomError as exc:
        raise_room_error(exc, room_id=room_id)
    return room_detail(room)


@router.post("/api/rooms/{room_id}/claim")
def claim_win(
    room_id: str,
    payload: WinClaimRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, object]:
    """Claim bingo; the claim is checked against the room's called numbers."""
    identity = require_current_identity(authorization)
    try:
        room = runtime.room_lifecycle.declare_winner(room_id, identity, payload.marked_cells)
    except RoomError as exc:
        raise_room_error(exc, room_id=room_id)
    return room_detail(room)


@router.get("/api/rooms/{room_id}/card")
def get_card(
    room_id: str,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, object]:
    """Return the caller's card for this room."""
    identity = require_current_identity(authorization)
    try:
        card = runtime.room_lifecycle.player_card(room_id, identity)
    except RoomError as exc:
        raise_room_error(exc, room_id=room_id)
    return {"roomId": room_id, "identity": identity, "card": card}


@router.get("/api/rooms/{room_id}/settlement")
def get_settlement(
    room_id: str,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, object]:
    """Return prize settlement progress for a finished paid room."""
    require_current_identity(authorization)
    settlement = runtime.room_lifecycle.get_settlement(room_id)
    if settlement is None:
        raise_api_error(
            status_code=404,
            code="SETTLEMENT_NOT_FOUND",
            message="no settlement for this room",
            detail={"room_id": room_id},
        )
    return settlement_detail(settlement)
