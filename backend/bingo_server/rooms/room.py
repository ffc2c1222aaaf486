"""Room aggregate, record format and room-domain errors."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from typing import Any

STATUS_WAITING = "waiting"
STATUS_PLAYING = "playing"
STATUS_FINISHED = "finished"
ACTIVE_STATUSES = frozenset({STATUS_WAITING, STATUS_PLAYING})

DEFAULT_ROOM_NAME = "Bingo Room"
DEFAULT_MAX_PLAYERS = 4
DEFAULT_CALL_INTERVAL = 5
MAX_CALLED_NUMBERS = 75
AMOUNT_DECIMALS = 9


def round_amount(value: float) -> float:
    """Round a currency amount to its minor unit so pot sums stay exact."""
    return round(float(value), AMOUNT_DECIMALS)


class RoomError(Exception):
    """Base class for room-domain errors.

    ``code`` and ``status_code`` drive the HTTP mapping; ``message`` is the
    user-facing text and never carries internal detail.
    """

    code = "ROOM_ERROR"
    status_code = 409
    message = "please try again later"


class RoomValidationError(RoomError):
    """Raised when create/payment input is out of the allowed range."""

    code = "VALIDATION_ERROR"
    status_code = 400
    message = "invalid room settings"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RoomNotFoundError(RoomError):
    """Raised when room_id does not exist (or was deleted)."""

    code = "ROOM_NOT_FOUND"
    status_code = 404
    message = "room not found"


class RoomFullError(RoomError):
    """Raised when trying to join a room already at max_players."""

    code = "ROOM_FULL"
    status_code = 409
    message = "room is full"


class RoomFinishedError(RoomError):
    """Raised when trying to join a finished room."""

    code = "ROOM_FINISHED"
    status_code = 409
    message = "game has already finished"


class AlreadyInRoomError(RoomError):
    """Raised when an identity already plays in a different active room."""

    code = "ALREADY_IN_ROOM"
    status_code = 409
    message = "you are already in a room"


class RoomNotMemberError(RoomError):
    """Raised when an operation requires being a player of the room."""

    code = "ROOM_NOT_MEMBER"
    status_code = 403
    message = "you are not a player in this room"


class RoomNotPaidError(RoomError):
    """Raised when confirming payment for a free room."""

    code = "ROOM_NOT_PAID"
    status_code = 409
    message = "this room has no entry fee"


class PaymentAlreadyConfirmedError(RoomError):
    """Raised when the same player confirms payment twice."""

    code = "PAYMENT_ALREADY_CONFIRMED"
    status_code = 409
    message = "payment already confirmed"


class PaymentsIncompleteError(RoomError):
    """Raised when starting a paid room before every player has paid."""

    code = "PAYMENTS_INCOMPLETE"
    status_code = 409
    message = "waiting for all players to pay"


class PaymentFailedError(RoomError):
    """Raised when the payment collaborator declines a payment."""

    code = "INSUFFICIENT_BALANCE"
    status_code = 402
    message = "insufficient balance"


class RoomNotWaitingError(RoomError):
    """Raised when starting a room that already left waiting."""

    code = "ROOM_NOT_WAITING"
    status_code = 409
    message = "game has already started"


class RoomNotPlayingError(RoomError):
    """Raised when calling numbers or declaring a winner outside playing."""

    code = "ROOM_NOT_PLAYING"
    status_code = 409
    message = "game is not in progress"


class InvalidWinClaimError(RoomError):
    """Raised when a win claim does not hold against the called numbers."""

    code = "INVALID_WIN_CLAIM"
    status_code = 409
    message = "no completed line on your card"


class RefundNotAvailableError(RoomError):
    """Raised when no released payment can be refunded yet."""

    code = "REFUND_NOT_AVAILABLE"
    status_code = 409
    message = "refund is not available yet"


class RoomConflictError(RoomError):
    """Raised when concurrent writers keep winning the compare-and-set."""

    code = "ROOM_CONFLICT"
    status_code = 409
    message = "room is busy, please retry"


@dataclass(slots=True)
class Room:
    """Room aggregate state; ``version`` is the store's compare-and-set token."""

    id: str
    name: str = DEFAULT_ROOM_NAME
    host: str | None = None
    players: list[str] = field(default_factory=list)
    max_players: int = DEFAULT_MAX_PLAYERS
    call_interval: int = DEFAULT_CALL_INTERVAL
    called_numbers: list[str] = field(default_factory=list)
    current_number: str | None = None
    next_number_time: int | None = None
    status: str = STATUS_WAITING
    winner: str | None = None
    created_at: int = 0
    finished_at: int | None = None
    is_paid: bool = False
    entry_fee: float = 0.0
    total_pot: float = 0.0
    payment_confirmed: list[str] = field(default_factory=list)
    spectators: list[str] = field(default_factory=list)
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_full(self) -> bool:
        return len(self.players) >= self.max_players

    @property
    def all_payments_confirmed(self) -> bool:
        if not self.is_paid:
            return True
        return all(player in self.payment_confirmed for player in self.players)

    @property
    def ready_to_start(self) -> bool:
        return self.status == STATUS_WAITING and self.is_full and self.all_payments_confirmed

    def to_record(self) -> dict[str, Any]:
        """Flat JSON-compatible record; ``version`` lives beside it in the backend."""
        return {
            "id": self.id,
            "name": self.name,
            "host": self.host,
            "players": list(self.players),
            "maxPlayers": self.max_players,
            "callInterval": self.call_interval,
            "calledNumbers": list(self.called_numbers),
            "currentNumber": self.current_number,
            "nextNumberTime": self.next_number_time,
            "status": self.status,
            "winner": self.winner,
            "createdAt": self.created_at,
            "finishedAt": self.finished_at,
            "isPaid": self.is_paid,
            "entryFee": self.entry_fee,
            "totalPot": self.total_pot,
            "paymentConfirmed": list(self.payment_confirmed),
            "spectators": list(self.spectators),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any], *, version: int = 0) -> "Room":
        return cls(
            id=str(record["id"]),
            name=str(record.get("name") or DEFAULT_ROOM_NAME),
            host=record.get("host"),
            players=list(record.get("players") or []),
            max_players=int(record.get("maxPlayers") or DEFAULT_MAX_PLAYERS),
            call_interval=int(record.get("callInterval") or DEFAULT_CALL_INTERVAL),
            called_numbers=list(record.get("calledNumbers") or []),
            current_number=record.get("currentNumber"),
            next_number_time=record.get("nextNumberTime"),
            status=str(record.get("status") or STATUS_WAITING),
            winner=record.get("winner"),
            created_at=int(record.get("createdAt") or 0),
            finished_at=record.get("finishedAt"),
            is_paid=bool(record.get("isPaid", False)),
            entry_fee=float(record.get("entryFee") or 0.0),
            total_pot=float(record.get("totalPot") or 0.0),
            payment_confirmed=list(record.get("paymentConfirmed") or []),
            spectators=list(record.get("spectators") or []),
            version=version,
        )


__all__ = [
    "ACTIVE_STATUSES",
    "AMOUNT_DECIMALS",
    "AlreadyInRoomError",
    "DEFAULT_CALL_INTERVAL",
    "DEFAULT_MAX_PLAYERS",
    "DEFAULT_ROOM_NAME",
    "InvalidWinClaimError",
    "MAX_CALLED_NUMBERS",
    "PaymentAlreadyConfirmedError",
    "PaymentFailedError",
    "PaymentsIncompleteError",
    "RefundNotAvailableError",
    "Room",
    "RoomConflictError",
    "RoomError",
    "RoomFinishedError",
    "RoomFullError",
    "RoomNotFoundError",
    "RoomNotMemberError",
    "RoomNotPaidError",
    "RoomNotPlayingError",
    "RoomNotWaitingError",
    "RoomValidationError",
    "STATUS_FINISHED",
    "STATUS_PLAYING",
    "STATUS_WAITING",
    "round_amount",
]
