"""Server-side number calling: one authoritative caller task per playing room."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
import logging
import time

from bingo_server.rooms.room import MAX_CALLED_NUMBERS
from bingo_server.rooms.room import Room
from bingo_server.rooms.room import RoomConflictError
from bingo_server.rooms.room import RoomNotFoundError
from bingo_server.rooms.room import RoomNotPlayingError
from bingo_server.rooms.room import STATUS_PLAYING
from bingo_server.rooms.store import RoomStore

logger = logging.getLogger(__name__)

STOP_ROOM_DELETED = "room_deleted"
STOP_NOT_PLAYING = "not_playing"
STOP_POOL_EXHAUSTED = "pool_exhausted"
RACE_RETRY_SECONDS = 0.05
ERROR_RETRY_SECONDS = 1.0


@dataclass(slots=True)
class CallTick:
    """What one caller step did and how long to wait before the next one."""

    delay_seconds: float = 0.0
    called: str | None = None
    stop_reason: str | None = None

    @property
    def stopped(self) -> bool:
        return self.stop_reason is not None


class NumberCaller:
    """Calls numbers for one room until it stops playing, disappears or runs dry.

    Each draw goes through ``RoomStore.call_next_number`` keyed on how many
    numbers were already called, so a second caller racing on the same room
    (another process, a restarted task) can never add two numbers in one tick.
    """

    def __init__(
        self,
        store: RoomStore,
        room_id: str,
        *,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.room_id = room_id
        self._clock = clock
        self._sleep = sleep

    def tick(self) -> CallTick:
        room = self.store.get_room_by_id(self.room_id)
        if room is None:
            return CallTick(stop_reason=STOP_ROOM_DELETED)
        if room.status != STATUS_PLAYING:
            return CallTick(stop_reason=STOP_NOT_PLAYING)
        count = len(room.called_numbers)
        if count >= MAX_CALLED_NUMBERS:
            return CallTick(stop_reason=STOP_POOL_EXHAUSTED)

        now_ms = int(self._clock() * 1000)
        if count > 0 and room.next_number_time is not None and now_ms < room.next_number_time:
            return CallTick(delay_seconds=(room.next_number_time - now_ms) / 1000)

        try:
            value = self.store.call_next_number(self.room_id, count)
        except RoomNotFoundError:
            return CallTick(stop_reason=STOP_ROOM_DELETED)
        except RoomNotPlayingError:
            return CallTick(stop_reason=STOP_NOT_PLAYING)
        except RoomConflictError:
            return CallTick(delay_seconds=RACE_RETRY_SECONDS)

        if value is None:
            # Someone else advanced the room first; re-read on the next tick.
            return CallTick(delay_seconds=RACE_RETRY_SECONDS)
        logger.debug("number called room_id=%s value=%s count=%s", self.room_id, value, count + 1)
        if count + 1 >= MAX_CALLED_NUMBERS:
            return CallTick(called=value, stop_reason=STOP_POOL_EXHAUSTED)
        return CallTick(delay_seconds=float(room.call_interval), called=value)

    async def run(self) -> str:
        """Tick until stopped and return the stop reason."""
        while True:
            try:
                outcome = self.tick()
            except Exception:  # pylint: disable=broad-except
                logger.exception("number caller tick failed room_id=%s", self.room_id)
                await self._sleep(ERROR_RETRY_SECONDS)
                continue
            if outcome.stopped:
                logger.info("number caller stopped room_id=%s reason=%s", self.room_id, outcome.stop_reason)
                return str(outcome.stop_reason)
            await self._sleep(max(outcome.delay_seconds, 0.0))


class CallerScheduler:
    """Owns at most one running NumberCaller task per room id."""

    def __init__(
        self,
        store: RoomStore,
        *,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self._clock = clock
        self._sleep = sleep
        self._tasks: dict[str, asyncio.Task[str]] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def active_room_ids(self) -> set[str]:
        return {room_id for room_id, task in self._tasks.items() if not task.done()}

    def ensure(self, room_id: str) -> bool:
        """Start a caller for room_id unless one is already running. Must run on the loop."""
        task = self._tasks.get(room_id)
        if task is not None and not task.done():
            return False
        caller = NumberCaller(self.store, room_id, clock=self._clock, sleep=self._sleep)
        task = asyncio.get_running_loop().create_task(caller.run(), name=f"number-caller-{room_id}")
        self._tasks[room_id] = task
        task.add_done_callback(lambda done, key=room_id: self._forget(key, done))
        logger.info("number caller started room_id=%s", room_id)
        return True

    def _forget(self, room_id: str, task: asyncio.Task[str]) -> None:
        if self._tasks.get(room_id) is task:
            self._tasks.pop(room_id, None)

    def on_room_change(self, room_id: str, room: Room | None) -> None:
        """Store listener: start a caller whenever a room is seen playing."""
        if room is None or room.status != STATUS_PLAYING or self._loop is None:
            return
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self.ensure, room_id)

    def resume_playing_rooms(self) -> list[str]:
        """Start callers for rooms already playing, e.g. after a restart on a shared backend."""
        started = []
        for room in self.store.get_all_rooms():
            if room.status == STATUS_PLAYING and self.ensure(room.id):
                started.append(room.id)
        return started

    async def stop(self, room_id: str) -> None:
        task = self._tasks.pop(room_id, None)
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def shutdown(self) -> None:
        for room_id in list(self._tasks):
            await self.stop(room_id)


__all__ = [
    "CallTick",
    "CallerScheduler",
    "NumberCaller",
    "STOP_NOT_PLAYING",
    "STOP_POOL_EXHAUSTED",
    "STOP_ROOM_DELETED",
]
