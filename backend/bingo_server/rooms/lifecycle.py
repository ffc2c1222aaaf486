"""Room lifecycle: creation rules, payments, auto-start, win claims and settlement."""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Sequence
from dataclasses import dataclass
import logging
import threading
import uuid

from bingo_engine.cards import card_seed
from bingo_engine.cards import generate_card
from bingo_engine.win import full_marks
from bingo_engine.win import has_won
from bingo_server.core.config import Settings
from bingo_server.rooms.payments import PaymentGateway
from bingo_server.rooms.payments import SETTLEMENT_FAILED
from bingo_server.rooms.payments import SETTLEMENT_PAID
from bingo_server.rooms.payments import Settlement
from bingo_server.rooms.payments import SettlementBook
from bingo_server.rooms.room import AlreadyInRoomError
from bingo_server.rooms.room import InvalidWinClaimError
from bingo_server.rooms.room import PaymentAlreadyConfirmedError
from bingo_server.rooms.room import PaymentFailedError
from bingo_server.rooms.room import PaymentsIncompleteError
from bingo_server.rooms.room import RefundNotAvailableError
from bingo_server.rooms.room import Room
from bingo_server.rooms.room import RoomError
from bingo_server.rooms.room import RoomNotFoundError
from bingo_server.rooms.room import RoomNotMemberError
from bingo_server.rooms.room import RoomNotPaidError
from bingo_server.rooms.room import RoomNotPlayingError
from bingo_server.rooms.room import RoomNotWaitingError
from bingo_server.rooms.room import RoomValidationError
from bingo_server.rooms.room import STATUS_FINISHED
from bingo_server.rooms.room import STATUS_PLAYING
from bingo_server.rooms.room import round_amount
from bingo_server.rooms.store import RoomStore

logger = logging.getLogger(__name__)

Dispatcher = Callable[[Callable[[], None]], None]


@dataclass(frozen=True, slots=True)
class RoomRules:
    """Bounds enforced when a room is created."""

    min_name_length: int = 3
    min_players: int = 2
    max_players: int = 10
    min_call_interval: int = 3
    max_call_interval: int = 15
    min_entry_fee: float = 0.001
    max_entry_fee: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RoomRules":
        return cls(
            min_players=settings.sbingo_min_players,
            max_players=settings.sbingo_max_players,
            min_call_interval=settings.sbingo_min_call_interval,
            max_call_interval=settings.sbingo_max_call_interval,
            min_entry_fee=settings.sbingo_min_entry_fee,
            max_entry_fee=settings.sbingo_max_entry_fee,
        )

    def validate(self, *, name: str, max_players: int, call_interval: int, is_paid: bool, entry_fee: float) -> None:
        if len(name.strip()) < self.min_name_length:
            raise RoomValidationError(f"room name must be at least {self.min_name_length} characters")
        if not self.min_players <= max_players <= self.max_players:
            raise RoomValidationError(f"players must be between {self.min_players} and {self.max_players}")
        if not self.min_call_interval <= call_interval <= self.max_call_interval:
            raise RoomValidationError(
                f"call interval must be between {self.min_call_interval} and {self.max_call_interval} seconds"
            )
        if is_paid and not self.min_entry_fee <= entry_fee <= self.max_entry_fee:
            raise RoomValidationError(f"entry fee must be between {self.min_entry_fee} and {self.max_entry_fee}")


def run_in_thread(job: Callable[[], None]) -> None:
    """Default settlement dispatcher: run the job on a daemon thread."""
    threading.Thread(target=job, name="settlement", daemon=True).start()


class RoomLifecycle:
    """State machine for rooms: waiting -> playing -> finished, never backwards."""

    def __init__(
        self,
        store: RoomStore,
        payments: PaymentGateway,
        *,
        rules: RoomRules | None = None,
        dispatch: Dispatcher = run_in_thread,
    ) -> None:
        self.store = store
        self.payments = payments
        self.rules = rules or RoomRules()
        self.settlements = SettlementBook()
        self._dispatch = dispatch

    # -- reads -------------------------------------------------------------

    def get_room(self, room_id: str) -> Room | None:
        return self.store.get_room_by_id(room_id)

    def require_room(self, room_id: str) -> Room:
        room = self.store.get_room_by_id(room_id)
        if room is None:
            raise RoomNotFoundError(f"room_id={room_id} not found")
        return room

    def get_available_rooms(self) -> list[Room]:
        return self.store.get_available_rooms()

    def get_all_rooms(self) -> list[Room]:
        return self.store.get_all_rooms()

    def get_player_room(self, identity: str) -> Room | None:
        return self.store.get_player_room(identity)

    def get_settlement(self, room_id: str) -> Settlement | None:
        return self.settlements.get(room_id)

    def player_card(self, room_id: str, identity: str) -> list[list[str]]:
        """Card for a player of the room, rebuilt from its seed."""
        room = self.require_room(room_id)
        if identity not in room.players:
            raise RoomNotMemberError(f"identity={identity} not in room_id={room_id}")
        return generate_card(card_seed(identity, room_id))

    # -- membership --------------------------------------------------------

    def create_room(
        self,
        *,
        creator: str,
        name: str,
        max_players: int,
        call_interval: int,
        is_paid: bool = False,
        entry_fee: float = 0.0,
    ) -> Room:
        """Create a waiting room hosted by creator; paid rooms collect the fee first."""
        name = name.strip()
        entry_fee = round_amount(entry_fee) if is_paid else 0.0
        self.rules.validate(
            name=name,
            max_players=max_players,
            call_interval=call_interval,
            is_paid=is_paid,
            entry_fee=entry_fee,
        )

        with self.store.lock_identities(creator):
            current = self.store.get_player_room(creator)
            if current is not None and current.is_active:
                raise AlreadyInRoomError(f"identity={creator} already in room_id={current.id}")

            room_id = uuid.uuid4().hex
            if is_paid and not self.payments.make_payment(creator, entry_fee, room_id):
                raise PaymentFailedError(f"entry fee declined for identity={creator}")

            partial = {
                "id": room_id,
                "name": name,
                "host": creator,
                "players": [creator],
                "maxPlayers": max_players,
                "callInterval": call_interval,
                "isPaid": is_paid,
                "entryFee": entry_fee,
                "paymentConfirmed": [creator] if is_paid else [],
            }
            try:
                created = self.store.insert_room(partial)
            except RoomError:
                if is_paid:
                    self.payments.release_payment(creator, room_id)
                raise

        # A concurrent leave may already have deleted the room; report what was written.
        return self._maybe_auto_start(self.store.get_room_by_id(room_id) or created)

    def join_room(self, room_id: str, identity: str) -> Room:
        room = self.store.join_room(room_id, identity)
        return self._maybe_auto_start(room)

    def watch_room(self, room_id: str, identity: str) -> Room:
        return self.store.watch_room(room_id, identity)

    def stop_watching(self, room_id: str, identity: str) -> None:
        self.store.stop_watching(room_id, identity)

    def leave_room(self, room_id: str, identity: str) -> Room | None:
        """Leave without ever changing status; a paid seat's fee becomes refundable."""
        outcome = self.store.leave_room(room_id, identity)
        if outcome.was_confirmed and (outcome.room is None or outcome.room.status != STATUS_FINISHED):
            self.payments.release_payment(identity, room_id)
        if outcome.deleted:
            logger.info("last player left room_id=%s identity=%s", room_id, identity)
        return outcome.room

    # -- payments ----------------------------------------------------------

    def confirm_payment(self, room_id: str, identity: str, amount: float | None = None) -> Room:
        """Collect the entry fee, then record it; the store is never touched if collection fails."""
        with self.store.lock_identities(identity):
            room = self.require_room(room_id)
            if not room.is_paid:
                raise RoomNotPaidError(f"room_id={room_id} is free")
            if identity not in room.players:
                raise RoomNotMemberError(f"identity={identity} not in room_id={room_id}")
            if identity in room.payment_confirmed:
                raise PaymentAlreadyConfirmedError(f"identity={identity} already paid room_id={room_id}")

            amount = room.entry_fee if amount is None else round_amount(amount)
            if amount != room.entry_fee:
                raise RoomValidationError("payment must equal the entry fee")
            if not self.payments.make_payment(identity, amount, room_id):
                raise PaymentFailedError(f"entry fee declined for identity={identity}")

            try:
                room = self.store.confirm_payment(room_id, identity, amount)
            except RoomError:
                logger.warning("payment recorded as refundable room_id=%s identity=%s", room_id, identity)
                self.payments.release_payment(identity, room_id)
                raise

        return self._maybe_auto_start(room)

    def request_refund(self, room_id: str, identity: str) -> None:
        if not self.payments.request_refund(identity, room_id):
            raise RefundNotAvailableError(f"no refundable payment for identity={identity} room_id={room_id}")

    # -- play --------------------------------------------------------------

    def start_game(self, room_id: str) -> Room:
        return self.store.start_game(room_id)

    def _maybe_auto_start(self, room: Room) -> Room:
        if not room.ready_to_start:
            return room
        try:
            started = self.store.start_game(room.id)
        except (RoomNotWaitingError, PaymentsIncompleteError, RoomNotFoundError):
            # Another writer changed the room between our write and this start.
            return self.store.get_room_by_id(room.id) or room
        logger.info("room auto-started room_id=%s players=%s", room.id, len(started.players))
        return started

    def declare_winner(
        self,
        room_id: str,
        identity: str,
        marked_cells: Sequence[Sequence[bool]] | None = None,
    ) -> Room:
        """Accept a win claim only if the claimant's card really completes a line.

        Without marks every cell is treated as marked, so the check is purely
        against the room's own called numbers.
        """
        room = self.require_room(room_id)
        if room.status != STATUS_PLAYING:
            raise RoomNotPlayingError(f"room_id={room_id} status={room.status}")
        if identity not in room.players:
            raise RoomNotMemberError(f"identity={identity} not in room_id={room_id}")

        card = generate_card(card_seed(identity, room_id))
        marks = marked_cells if marked_cells is not None else full_marks()
        if not has_won(card, marks, room.called_numbers):
            raise InvalidWinClaimError(f"identity={identity} has no line in room_id={room_id}")

        room = self.store.declare_winner(room_id, identity)
        if room.is_paid and room.total_pot > 0:
            self._start_settlement(room)
        return room

    def _start_settlement(self, room: Room) -> None:
        assert room.winner is not None
        self.settlements.open(
            room_id=room.id,
            winner=room.winner,
            total_pot=room.total_pot,
            fee_percent=self.payments.fee_percent,
        )
        self._dispatch(lambda: self._settle(room.id))

    def _settle(self, room_id: str) -> None:
        settlement = self.settlements.get(room_id)
        if settlement is None:
            return
        try:
            paid = self.payments.distribute_prize(settlement.winner, settlement.total_pot)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("settlement crashed room_id=%s", room_id)
            self.settlements.mark(room_id, SETTLEMENT_FAILED, error=type(exc).__name__)
            return
        if paid:
            self.settlements.mark(room_id, SETTLEMENT_PAID)
            logger.info("settlement paid room_id=%s winner=%s", room_id, settlement.winner)
        else:
            self.settlements.mark(room_id, SETTLEMENT_FAILED, error="declined")
            logger.warning("settlement declined room_id=%s winner=%s", room_id, settlement.winner)

    # -- cleanup -----------------------------------------------------------

    def purge_finished_rooms(self, retention_seconds: float) -> list[str]:
        cutoff = self.store.now_ms() - int(retention_seconds * 1000)
        return self.store.purge_finished_rooms(cutoff)


__all__ = [
    "Dispatcher",
    "RoomLifecycle",
    "RoomRules",
    "run_in_thread",
]
