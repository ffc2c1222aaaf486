"""Client-side room attachment: polling, reconciliation and owned timers."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from collections.abc import Callable
import logging
import time

from bingo_engine.cards import CARD_SIZE
from bingo_engine.cards import card_seed
from bingo_engine.cards import generate_card
from bingo_engine.win import empty_marks
from bingo_engine.win import has_won
from bingo_server.rooms.room import Room
from bingo_server.rooms.room import STATUS_FINISHED

logger = logging.getLogger(__name__)

DETACH_ROOM_GONE = "room_gone"
DETACH_NOT_A_PLAYER = "not_a_player"
DETACH_FINISHED = "finished"
DETACH_CLOSED = "closed"

FetchRoom = Callable[[str], Awaitable[Room | None]]


class RoomSubscription:
    """One client's attachment to one room.

    The subscription owns the poll task for its room and nothing outlives it:
    ``close()`` (or any reconciliation that detaches) cancels the task, so a
    stale room id can never be polled or acted on after the client moved on.
    """

    def __init__(
        self,
        *,
        room_id: str,
        identity: str,
        fetch_room: FetchRoom,
        poll_interval: float = 1.0,
        spectator: bool = False,
        on_change: Callable[[Room], None] | None = None,
        on_detach: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.room_id = room_id
        self.identity = identity
        self.spectator = spectator
        self.poll_interval = poll_interval
        self.room: Room | None = None
        self.detach_reason: str | None = None
        self.card = generate_card(card_seed(identity, room_id))
        self.marks = empty_marks()
        self._fetch_room = fetch_room
        self._on_change = on_change
        self._on_detach = on_detach
        self._clock = clock
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None

    @property
    def attached(self) -> bool:
        return self.detach_reason is None

    def start(self) -> None:
        """Start polling on the running loop."""
        if self._task is not None or not self.attached:
            return
        self._task = asyncio.get_running_loop().create_task(self._poll_loop(), name=f"room-poll-{self.room_id}")

    def reconcile(self, room: Room | None) -> bool:
        """Apply a fetched snapshot; return False once the attachment is over."""
        if not self.attached:
            return False
        if room is None:
            self._detach(DETACH_ROOM_GONE)
            return False
        self.room = room
        if self._on_change is not None:
            try:
                self._on_change(room)
            except Exception:  # pylint: disable=broad-except
                logger.exception("room change callback failed room_id=%s", self.room_id)
        if not self.spectator and self.identity not in room.players:
            self._detach(DETACH_NOT_A_PLAYER)
            return False
        if room.status == STATUS_FINISHED:
            self._detach(DETACH_FINISHED)
            return False
        return True

    async def refresh(self) -> bool:
        """Poll once. A failed fetch or callback is logged and keeps the attachment."""
        try:
            room = await self._fetch_room(self.room_id)
        except asyncio.CancelledError:
            raise
        except Exception:  # pylint: disable=broad-except
            logger.exception("room poll failed room_id=%s", self.room_id)
            return self.attached
        return self.reconcile(room)

    async def _poll_loop(self) -> None:
        while self.attached:
            if not await self.refresh():
                return
            await self._sleep(self.poll_interval)

    def _detach(self, reason: str) -> None:
        if not self.attached:
            return
        self.detach_reason = reason
        logger.info("room detached room_id=%s identity=%s reason=%s", self.room_id, self.identity, reason)
        if self._on_detach is not None:
            try:
                self._on_detach(reason)
            except Exception:  # pylint: disable=broad-except
                logger.exception("room detach callback failed room_id=%s", self.room_id)

    async def close(self) -> None:
        """Detach and cancel the poll task."""
        self._detach(DETACH_CLOSED)
        task, self._task = self._task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    # -- card helpers ------------------------------------------------------

    def mark(self, row: int, col: int) -> bool:
        """Mark one cell; only cells whose number was already called can be marked."""
        if not (0 <= row < CARD_SIZE and 0 <= col < CARD_SIZE):
            raise ValueError("cell out of range")
        called = self.room.called_numbers if self.room is not None else []
        if self.card[row][col] not in called and not self.marks[row][col]:
            return False
        self.marks[row][col] = True
        return True

    def has_bingo(self) -> bool:
        if self.room is None:
            return False
        return has_won(self.card, self.marks, self.room.called_numbers)

    def time_to_next_number(self) -> float | None:
        """Seconds until the next call is due, for countdown display."""
        if self.room is None or self.room.next_number_time is None:
            return None
        remaining = self.room.next_number_time / 1000 - self._clock()
        return max(remaining, 0.0)


__all__ = [
    "DETACH_CLOSED",
    "DETACH_FINISHED",
    "DETACH_NOT_A_PLAYER",
    "DETACH_ROOM_GONE",
    "FetchRoom",
    "RoomSubscription",
]
