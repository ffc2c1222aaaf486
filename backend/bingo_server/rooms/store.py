"""Room persistence: versioned storage backends and the room store operations.

Every mutating operation is an optimistic read-modify-write: load the record
with its version, apply the change to a ``Room``, and write it back only if
the version is unchanged. A lost race re-reads and re-applies, so concurrent
writers never overwrite each other and a failed precondition never writes.
"""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from collections.abc import Callable
from collections.abc import Iterable
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
import json
import logging
import threading
import time
from typing import Any
from typing import TypeVar
import uuid

from bingo_engine.cards import draw_number
from bingo_engine.cards import is_valid_label
from bingo_server.core.db import create_sqlite_connection
from bingo_server.rooms.room import AlreadyInRoomError
from bingo_server.rooms.room import MAX_CALLED_NUMBERS
from bingo_server.rooms.room import PaymentAlreadyConfirmedError
from bingo_server.rooms.room import PaymentsIncompleteError
from bingo_server.rooms.room import Room
from bingo_server.rooms.room import RoomConflictError
from bingo_server.rooms.room import RoomFinishedError
from bingo_server.rooms.room import RoomFullError
from bingo_server.rooms.room import RoomNotFoundError
from bingo_server.rooms.room import RoomNotMemberError
from bingo_server.rooms.room import RoomNotPaidError
from bingo_server.rooms.room import RoomNotPlayingError
from bingo_server.rooms.room import RoomNotWaitingError
from bingo_server.rooms.room import RoomValidationError
from bingo_server.rooms.room import STATUS_FINISHED
from bingo_server.rooms.room import STATUS_PLAYING
from bingo_server.rooms.room import STATUS_WAITING
from bingo_server.rooms.room import round_amount

logger = logging.getLogger(__name__)

T = TypeVar("T")
RoomListener = Callable[[str, Room | None], None]
DEFAULT_MAX_CAS_ATTEMPTS = 16


@dataclass(slots=True)
class VersionedRecord:
    """One stored room record and the version it was read at."""

    version: int
    record: dict[str, Any]


@dataclass(slots=True)
class LeaveOutcome:
    """Result of leave_room; ``room`` is None when the room was deleted or missing."""

    room: Room | None
    was_player: bool = False
    was_confirmed: bool = False
    deleted: bool = False


class RoomBackend(ABC):
    """Versioned key-value storage for flat room records."""

    @abstractmethod
    def get(self, room_id: str) -> VersionedRecord | None:
        """Return the record and its version, or None."""

    @abstractmethod
    def list_records(self) -> list[VersionedRecord]:
        """Return every record in creation order."""

    @abstractmethod
    def insert(self, room_id: str, record: dict[str, Any]) -> bool:
        """Store a new record at version 1; False if the id is taken."""

    @abstractmethod
    def compare_and_set(self, room_id: str, expected_version: int, record: dict[str, Any]) -> bool:
        """Replace the record only if it is still at expected_version."""

    @abstractmethod
    def compare_and_delete(self, room_id: str, expected_version: int) -> bool:
        """Delete the record only if it is still at expected_version."""


class InMemoryRoomBackend(RoomBackend):
    """Process-local backend; records are kept as JSON text so no caller can alias them."""

    def __init__(self) -> None:
        self._records: dict[str, tuple[int, str]] = {}
        self._lock = threading.Lock()

    def get(self, room_id: str) -> VersionedRecord | None:
        with self._lock:
            item = self._records.get(room_id)
        if item is None:
            return None
        version, payload = item
        return VersionedRecord(version=version, record=json.loads(payload))

    def list_records(self) -> list[VersionedRecord]:
        with self._lock:
            items = list(self._records.values())
        return [VersionedRecord(version=version, record=json.loads(payload)) for version, payload in items]

    def insert(self, room_id: str, record: dict[str, Any]) -> bool:
        payload = json.dumps(record)
        with self._lock:
            if room_id in self._records:
                return False
            self._records[room_id] = (1, payload)
            return True

    def compare_and_set(self, room_id: str, expected_version: int, record: dict[str, Any]) -> bool:
        payload = json.dumps(record)
        with self._lock:
            item = self._records.get(room_id)
            if item is None or item[0] != expected_version:
                return False
            self._records[room_id] = (expected_version + 1, payload)
            return True

    def compare_and_delete(self, room_id: str, expected_version: int) -> bool:
        with self._lock:
            item = self._records.get(room_id)
            if item is None or item[0] != expected_version:
                return False
            del self._records[room_id]
            return True


CREATE_ROOMS_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS rooms (
    id TEXT PRIMARY KEY,
    version INTEGER NOT NULL,
    status TEXT NOT NULL,
    record TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_rooms_status ON rooms(status);
"""


class SqliteRoomBackend(RoomBackend):
    """SQLite backend shared by every process pointing at the same file."""

    def __init__(self, path: str) -> None:
        self._path = path
        conn = create_sqlite_connection(self._path)
        try:
            conn.executescript(CREATE_ROOMS_SCHEMA_SQL)
            conn.commit()
        finally:
            conn.close()

    def get(self, room_id: str) -> VersionedRecord | None:
        conn = create_sqlite_connection(self._path)
        try:
            row = conn.execute(
                "SELECT version, record FROM rooms WHERE id = ?",
                (room_id,),
            ).fetchone()
            if row is None:
                return None
            version, payload = row
            return VersionedRecord(version=int(version), record=json.loads(payload))
        finally:
            conn.close()

    def list_records(self) -> list[VersionedRecord]:
        conn = create_sqlite_connection(self._path)
        try:
            rows = conn.execute("SELECT version, record FROM rooms ORDER BY rowid").fetchall()
            return [VersionedRecord(version=int(version), record=json.loads(payload)) for version, payload in rows]
        finally:
            conn.close()

    def insert(self, room_id: str, record: dict[str, Any]) -> bool:
        conn = create_sqlite_connection(self._path)
        try:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO rooms (id, version, status, record)
                VALUES (?, 1, ?, ?)
                """,
                (room_id, str(record.get("status", STATUS_WAITING)), json.dumps(record)),
            )
            conn.commit()
            return cursor.rowcount == 1
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def compare_and_set(self, room_id: str, expected_version: int, record: dict[str, Any]) -> bool:
        conn = create_sqlite_connection(self._path)
        try:
            cursor = conn.execute(
                """
                UPDATE rooms
                SET version = version + 1, status = ?, record = ?
                WHERE id = ? AND version = ?
                """,
                (str(record.get("status", STATUS_WAITING)), json.dumps(record), room_id, expected_version),
            )
            conn.commit()
            return cursor.rowcount == 1
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def compare_and_delete(self, room_id: str, expected_version: int) -> bool:
        conn = create_sqlite_connection(self._path)
        try:
            cursor = conn.execute(
                "DELETE FROM rooms WHERE id = ? AND version = ?",
                (room_id, expected_version),
            )
            conn.commit()
            return cursor.rowcount == 1
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


class RoomStore:
    """Room operations over a versioned backend, plus a change feed."""

    def __init__(
        self,
        backend: RoomBackend | None = None,
        *,
        clock: Callable[[], float] = time.time,
        draw: Callable[[Iterable[str]], str | None] = draw_number,
        max_attempts: int = DEFAULT_MAX_CAS_ATTEMPTS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._backend = backend or InMemoryRoomBackend()
        self._clock = clock
        self._draw = draw
        self._max_attempts = max_attempts
        self._listeners: list[RoomListener] = []
        self._listeners_guard = threading.Lock()
        self._identity_locks: dict[str, threading.RLock] = {}
        self._identity_locks_guard = threading.Lock()

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    # -- change feed -------------------------------------------------------

    def subscribe(self, listener: RoomListener) -> Callable[[], None]:
        """Register a listener called with (room_id, room or None) after each committed write."""
        with self._listeners_guard:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._listeners_guard:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, room_id: str, room: Room | None) -> None:
        with self._listeners_guard:
            listeners = list(self._listeners)
        for listener in listeners:
            snapshot = None if room is None else Room.from_record(room.to_record(), version=room.version)
            try:
                listener(room_id, snapshot)
            except Exception:  # pylint: disable=broad-except
                logger.exception("room change listener failed room_id=%s", room_id)

    # -- locking -----------------------------------------------------------

    @contextmanager
    def lock_identities(self, *identities: str) -> Iterator[None]:
        """Serialize membership changes per identity, acquiring in sorted order to avoid deadlock."""
        keys = sorted(set(identities))
        with self._identity_locks_guard:
            locks = [self._identity_locks.setdefault(key, threading.RLock()) for key in keys]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()

    # -- reads -------------------------------------------------------------

    def _rooms(self) -> list[Room]:
        return [Room.from_record(item.record, version=item.version) for item in self._backend.list_records()]

    def get_all_rooms(self) -> list[Room]:
        return self._rooms()

    def get_available_rooms(self) -> list[Room]:
        """Waiting rooms with a free seat, free rooms first, then fullest first."""
        rooms = [room for room in self._rooms() if room.status == STATUS_WAITING and not room.is_full]
        rooms.sort(key=lambda room: (room.is_paid, -len(room.players)))
        return rooms

    def get_room_by_id(self, room_id: str) -> Room | None:
        item = self._backend.get(room_id)
        if item is None:
            return None
        return Room.from_record(item.record, version=item.version)

    def get_player_room(self, identity: str) -> Room | None:
        """Active room containing identity as a player, else any room containing it."""
        fallback: Room | None = None
        for room in self._rooms():
            if identity not in room.players:
                continue
            if room.is_active:
                return room
            if fallback is None:
                fallback = room
        return fallback

    def _active_room_of(self, identity: str) -> Room | None:
        for room in self._rooms():
            if room.is_active and identity in room.players:
                return room
        return None

    # -- writes ------------------------------------------------------------

    def _update(
        self,
        room_id: str,
        mutator: Callable[[Room], T],
        *,
        delete_if_empty: bool = False,
    ) -> tuple[Room | None, T]:
        for _ in range(self._max_attempts):
            current = self._backend.get(room_id)
            if current is None:
                raise RoomNotFoundError(f"room_id={room_id} not found")
            room = Room.from_record(current.record, version=current.version)
            before = room.to_record()
            result = mutator(room)
            after = room.to_record()
            if after == before:
                return room, result
            if delete_if_empty and not room.players:
                if self._backend.compare_and_delete(room_id, current.version):
                    logger.info("room deleted room_id=%s", room_id)
                    self._notify(room_id, None)
                    return None, result
                continue
            if self._backend.compare_and_set(room_id, current.version, after):
                room.version = current.version + 1
                self._notify(room_id, room)
                return room, result
        raise RoomConflictError(f"room_id={room_id} lost {self._max_attempts} consecutive update races")

    def _update_room(self, room_id: str, mutator: Callable[[Room], Any]) -> Room:
        room, _ = self._update(room_id, mutator)
        assert room is not None
        return room

    def create_room(self, partial: dict[str, Any] | None = None) -> str:
        """Persist a new waiting room from a partial record and return its id."""
        return self.insert_room(partial).id

    def insert_room(self, partial: dict[str, Any] | None = None) -> Room:
        """Persist a new waiting room and return the snapshot that was written."""
        partial = dict(partial or {})
        room_id = str(partial.get("id") or uuid.uuid4().hex)
        players = list(dict.fromkeys(partial.get("players") or []))
        is_paid = bool(partial.get("isPaid", False))
        room = Room.from_record(
            {
                **partial,
                "id": room_id,
                "host": partial.get("host") or (players[0] if players else None),
                "players": players,
                "calledNumbers": [],
                "currentNumber": None,
                "nextNumberTime": None,
                "status": STATUS_WAITING,
                "winner": None,
                "createdAt": self.now_ms(),
                "finishedAt": None,
                "entryFee": round_amount(partial.get("entryFee") or 0.0) if is_paid else 0.0,
                "spectators": [],
            }
        )
        if is_paid:
            room.payment_confirmed = [player for player in room.payment_confirmed if player in players]
            room.total_pot = round_amount(room.entry_fee * len(room.payment_confirmed))
        else:
            room.payment_confirmed = list(players)
            room.total_pot = 0.0

        with self.lock_identities(*players):
            for player in players:
                other = self._active_room_of(player)
                if other is not None:
                    raise AlreadyInRoomError(f"identity={player} already in room_id={other.id}")
            if not self._backend.insert(room_id, room.to_record()):
                raise RoomConflictError(f"room_id={room_id} already exists")

        room.version = 1
        logger.info("room created room_id=%s host=%s paid=%s", room_id, room.host, room.is_paid)
        self._notify(room_id, room)
        return room

    def join_room(self, room_id: str, identity: str) -> Room:
        """Add identity as a player; a repeat join of the same room changes nothing."""
        with self.lock_identities(identity):
            other = self._active_room_of(identity)
            if other is not None and other.id != room_id:
                raise AlreadyInRoomError(f"identity={identity} already in room_id={other.id}")

            def _join(room: Room) -> None:
                if room.status == STATUS_FINISHED:
                    raise RoomFinishedError(f"room_id={room_id} is finished")
                if identity in room.players:
                    return
                if room.is_full:
                    raise RoomFullError(f"room_id={room_id} is full")
                room.players.append(identity)
                if identity in room.spectators:
                    room.spectators.remove(identity)
                if not room.is_paid:
                    room.payment_confirmed.append(identity)
                if room.host is None:
                    room.host = identity

            return self._update_room(room_id, _join)

    def watch_room(self, room_id: str, identity: str) -> Room:
        def _watch(room: Room) -> None:
            if identity in room.players or identity in room.spectators:
                return
            room.spectators.append(identity)

        return self._update_room(room_id, _watch)

    def stop_watching(self, room_id: str, identity: str) -> None:
        def _unwatch(room: Room) -> None:
            if identity in room.spectators:
                room.spectators.remove(identity)

        try:
            self._update(room_id, _unwatch)
        except RoomNotFoundError:
            return

    def confirm_payment(self, room_id: str, identity: str, amount: float) -> Room:
        """Record one player's payment and add it to the pot in the same write."""

        def _confirm(room: Room) -> None:
            if not room.is_paid:
                raise RoomNotPaidError(f"room_id={room_id} is free")
            if identity not in room.players:
                raise RoomNotMemberError(f"identity={identity} not in room_id={room_id}")
            if identity in room.payment_confirmed:
                raise PaymentAlreadyConfirmedError(f"identity={identity} already paid room_id={room_id}")
            room.payment_confirmed.append(identity)
            room.total_pot = round_amount(room.total_pot + amount)

        return self._update_room(room_id, _confirm)

    def leave_room(self, room_id: str, identity: str) -> LeaveOutcome:
        """Drop identity from the room, deleting the room once nobody plays in it."""

        def _leave(room: Room) -> tuple[bool, bool]:
            if identity in room.spectators:
                room.spectators.remove(identity)
            if identity not in room.players:
                return False, False
            room.players.remove(identity)
            was_confirmed = identity in room.payment_confirmed
            if was_confirmed:
                room.payment_confirmed.remove(identity)
            # A finished room keeps the pot it settled; nothing is refundable.
            if room.status == STATUS_FINISHED:
                was_confirmed = False
            elif was_confirmed and room.is_paid:
                room.total_pot = max(round_amount(room.total_pot - room.entry_fee), 0.0)
            if room.host == identity:
                room.host = room.players[0] if room.players else None
            return True, was_confirmed and room.is_paid

        with self.lock_identities(identity):
            try:
                room, (was_player, was_confirmed) = self._update(room_id, _leave, delete_if_empty=True)
            except RoomNotFoundError:
                return LeaveOutcome(room=None)
        return LeaveOutcome(room=room, was_player=was_player, was_confirmed=was_confirmed, deleted=room is None)

    def start_game(self, room_id: str) -> Room:
        """Move a waiting room to playing and call its first number."""

        def _start(room: Room) -> None:
            if room.status != STATUS_WAITING:
                raise RoomNotWaitingError(f"room_id={room_id} status={room.status}")
            if not room.all_payments_confirmed:
                raise PaymentsIncompleteError(f"room_id={room_id} has unpaid players")
            room.status = STATUS_PLAYING
            now = self.now_ms()
            if not room.called_numbers:
                value = self._draw(room.called_numbers)
                if value is not None:
                    room.called_numbers.append(value)
                    room.current_number = value
            room.next_number_time = now + room.call_interval * 1000

        room = self._update_room(room_id, _start)
        logger.info("game started room_id=%s first=%s", room_id, room.current_number)
        return room

    def call_number(self, room_id: str, value: str) -> Room:
        """Append one specific number; calling an already-called number changes nothing."""
        if not is_valid_label(value):
            raise RoomValidationError(f"not a bingo number: {value}")

        def _call(room: Room) -> None:
            if room.status != STATUS_PLAYING:
                raise RoomNotPlayingError(f"room_id={room_id} status={room.status}")
            if value in room.called_numbers:
                return
            room.called_numbers.append(value)
            room.current_number = value
            room.next_number_time = self.now_ms() + room.call_interval * 1000

        return self._update_room(room_id, _call)

    def call_next_number(self, room_id: str, expected_count: int) -> str | None:
        """Draw the next number only if exactly expected_count numbers are already called.

        Returns None when another writer advanced the room first or the pool is empty.
        """

        def _call_next(room: Room) -> str | None:
            if room.status != STATUS_PLAYING:
                raise RoomNotPlayingError(f"room_id={room_id} status={room.status}")
            if len(room.called_numbers) != expected_count or expected_count >= MAX_CALLED_NUMBERS:
                return None
            value = self._draw(room.called_numbers)
            if value is None:
                return None
            room.called_numbers.append(value)
            room.current_number = value
            room.next_number_time = self.now_ms() + room.call_interval * 1000
            return value

        _, value = self._update(room_id, _call_next)
        return value

    def declare_winner(self, room_id: str, identity: str) -> Room:
        """Finish a playing room; the first successful call wins and later ones fail."""

        def _declare(room: Room) -> None:
            if room.status != STATUS_PLAYING:
                raise RoomNotPlayingError(f"room_id={room_id} status={room.status}")
            room.status = STATUS_FINISHED
            room.winner = identity
            room.finished_at = self.now_ms()

        room = self._update_room(room_id, _declare)
        logger.info("winner declared room_id=%s winner=%s", room_id, identity)
        return room

    def delete_room(self, room_id: str) -> bool:
        for _ in range(self._max_attempts):
            current = self._backend.get(room_id)
            if current is None:
                return False
            if self._backend.compare_and_delete(room_id, current.version):
                logger.info("room deleted room_id=%s", room_id)
                self._notify(room_id, None)
                return True
        raise RoomConflictError(f"room_id={room_id} lost {self._max_attempts} consecutive delete races")

    def purge_finished_rooms(self, older_than_ms: int) -> list[str]:
        """Delete finished rooms whose finish time is at or before older_than_ms."""
        purged: list[str] = []
        for room in self._rooms():
            if room.status != STATUS_FINISHED:
                continue
            finished_at = room.finished_at if room.finished_at is not None else room.created_at
            if finished_at > older_than_ms:
                continue
            if self._backend.compare_and_delete(room.id, room.version):
                logger.info("finished room purged room_id=%s", room.id)
                self._notify(room.id, None)
                purged.append(room.id)
        return purged


def build_room_backend(kind: str, *, sqlite_path: str) -> RoomBackend:
    if kind == "sqlite":
        return SqliteRoomBackend(sqlite_path)
    if kind == "memory":
        return InMemoryRoomBackend()
    raise ValueError(f"unknown room backend: {kind}")


__all__ = [
    "CREATE_ROOMS_SCHEMA_SQL",
    "InMemoryRoomBackend",
    "LeaveOutcome",
    "RoomBackend",
    "RoomListener",
    "RoomStore",
    "SqliteRoomBackend",
    "VersionedRecord",
    "build_room_backend",
]
