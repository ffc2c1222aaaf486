"""Room view builders used by REST and WS responses."""

from __future__ import annotations

from bingo_server.rooms.payments import Settlement
from bingo_server.rooms.room import Room


def room_summary(room: Room) -> dict[str, object]:
    return {
        "id": room.id,
        "name": room.name,
        "status": room.status,
        "host": room.host,
        "playerCount": len(room.players),
        "maxPlayers": room.max_players,
        "callInterval": room.call_interval,
        "isPaid": room.is_paid,
        "entryFee": room.entry_fee,
        "totalPot": room.total_pot,
    }


def room_detail(room: Room) -> dict[str, object]:
    """Full flat record plus the version clients can use to spot stale snapshots."""
    return {**room.to_record(), "version": room.version}


def settlement_detail(settlement: Settlement) -> dict[str, object]:
    return {
        "roomId": settlement.room_id,
        "winner": settlement.winner,
        "totalPot": settlement.total_pot,
        "winnerPrize": settlement.winner_prize,
        "platformFee": settlement.platform_fee,
        "status": settlement.status,
        "error": settlement.error,
    }
