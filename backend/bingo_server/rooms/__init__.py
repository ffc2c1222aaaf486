"""Room domain package: store, lifecycle, number calling and payments."""

from bingo_server.rooms.caller import CallerScheduler
from bingo_server.rooms.caller import NumberCaller
from bingo_server.rooms.lifecycle import RoomLifecycle
from bingo_server.rooms.lifecycle import RoomRules
from bingo_server.rooms.models import CreateRoomRequest
from bingo_server.rooms.models import PaymentRequest
from bingo_server.rooms.models import RefundRequest
from bingo_server.rooms.models import WinClaimRequest
from bingo_server.rooms.payments import LedgerPaymentGateway
from bingo_server.rooms.payments import PaymentGateway
from bingo_server.rooms.room import Room
from bingo_server.rooms.room import RoomError
from bingo_server.rooms.room import RoomNotFoundError
from bingo_server.rooms.store import InMemoryRoomBackend
from bingo_server.rooms.store import RoomStore
from bingo_server.rooms.store import SqliteRoomBackend
from bingo_server.rooms.subscription import RoomSubscription

__all__ = [
    "CallerScheduler",
    "CreateRoomRequest",
    "InMemoryRoomBackend",
    "LedgerPaymentGateway",
    "NumberCaller",
    "PaymentGateway",
    "PaymentRequest",
    "RefundRequest",
    "Room",
    "RoomError",
    "RoomLifecycle",
    "RoomNotFoundError",
    "RoomRules",
    "RoomStore",
    "RoomSubscription",
    "SqliteRoomBackend",
    "WinClaimRequest",
]
