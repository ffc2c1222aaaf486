"""Client room attachment: reconciliation, owned poll task and card marking."""

from __future__ import annotations

import asyncio

import pytest

from bingo_server.rooms.room import Room
from bingo_server.rooms.subscription import DETACH_CLOSED
from bingo_server.rooms.subscription import DETACH_FINISHED
from bingo_server.rooms.subscription import DETACH_NOT_A_PLAYER
from bingo_server.rooms.subscription import DETACH_ROOM_GONE
from bingo_server.rooms.subscription import RoomSubscription


def _room(**overrides: object) -> Room:
    record = {
        "id": "room-1",
        "name": "Test Room",
        "players": ["alice", "bob"],
        "status": "playing",
        "calledNumbers": [],
    }
    record.update(overrides)
    return Room.from_record(record, version=1)


async def _never_called(room_id: str) -> Room | None:
    raise AssertionError("fetch should not be called")


def _subscription(**kwargs: object) -> tuple[RoomSubscription, list[str]]:
    detached: list[str] = []
    params: dict[str, object] = {
        "room_id": "room-1",
        "identity": "alice",
        "fetch_room": _never_called,
        "on_detach": detached.append,
    }
    params.update(kwargs)
    return RoomSubscription(**params), detached


@pytest.mark.parametrize(
    ("snapshot", "reason"),
    [
        (None, DETACH_ROOM_GONE),
        (_room(players=["bob"]), DETACH_NOT_A_PLAYER),
        (_room(status="finished", winner="bob"), DETACH_FINISHED),
    ],
)
def test_reconcile_detaches(snapshot: Room | None, reason: str) -> None:
    """Input: deleted room, kicked player, finished game -> Output: detached with that reason."""
    subscription, detached = _subscription()

    assert subscription.reconcile(snapshot) is False
    assert subscription.detach_reason == reason
    assert detached == [reason]
    assert subscription.reconcile(_room()) is False


def test_finished_snapshot_is_kept_for_display() -> None:
    """Input: finished snapshot -> Output: room holds the final state with the winner."""
    subscription, _ = _subscription()
    subscription.reconcile(_room(status="finished", winner="bob"))

    assert subscription.room.winner == "bob"


def test_spectator_stays_attached_without_seat() -> None:
    """Input: spectator receives a room they do not play in -> Output: still attached."""
    subscription, detached = _subscription(identity="carol", spectator=True)

    assert subscription.reconcile(_room()) is True
    assert detached == []


def test_failed_fetch_keeps_attachment() -> None:
    """Input: fetch raises a network error -> Output: refresh logs and stays attached."""

    async def _flaky(room_id: str) -> Room | None:
        raise ConnectionError("offline")

    subscription, _ = _subscription(fetch_room=_flaky)

    assert asyncio.run(subscription.refresh()) is True
    assert subscription.attached


def test_failing_change_callback_keeps_polling() -> None:
    """Input: on_change raises on the first snapshot -> Output: polling continues and close() is clean."""
    fetched: list[str] = []
    seen: list[Room] = []

    async def _fetch(room_id: str) -> Room | None:
        fetched.append(room_id)
        return _room()

    def _render(room: Room) -> None:
        seen.append(room)
        if len(seen) == 1:
            raise RuntimeError("render failed")

    async def _run() -> RoomSubscription:
        subscription, _ = _subscription(fetch_room=_fetch, on_change=_render, poll_interval=0.01)
        subscription.start()
        await asyncio.sleep(0.1)
        assert subscription.attached
        await subscription.close()
        return subscription

    subscription = asyncio.run(_run())
    assert len(fetched) >= 2
    assert len(seen) >= 2
    assert subscription.detach_reason == DETACH_CLOSED


def test_failing_detach_callback_still_detaches() -> None:
    """Input: on_detach raises when the room disappears -> Output: detached, no error escapes."""

    def _explode(reason: str) -> None:
        raise RuntimeError("teardown failed")

    subscription, _ = _subscription(on_detach=_explode)

    assert subscription.reconcile(None) is False
    assert subscription.detach_reason == DETACH_ROOM_GONE


def test_close_cancels_poll_task() -> None:
    """Input: started subscription closed -> Output: poll loop stops, no fetch after close."""
    fetched: list[str] = []

    async def _fetch(room_id: str) -> Room | None:
        fetched.append(room_id)
        return _room()

    async def _run() -> int:
        subscription, _ = _subscription(fetch_room=_fetch, poll_interval=0.01)
        subscription.start()
        await asyncio.sleep(0.05)
        await subscription.close()
        count = len(fetched)
        await asyncio.sleep(0.05)
        assert subscription.detach_reason == DETACH_CLOSED
        return count

    count = asyncio.run(_run())
    assert count >= 1
    assert len(fetched) == count


def test_poll_loop_ends_when_room_disappears() -> None:
    """Input: fetch returns None -> Output: poll task finishes by itself."""

    async def _gone(room_id: str) -> Room | None:
        return None

    async def _run() -> str | None:
        subscription, _ = _subscription(fetch_room=_gone, poll_interval=0.01)
        subscription.start()
        await asyncio.sleep(0.05)
        return subscription.detach_reason

    assert asyncio.run(_run()) == DETACH_ROOM_GONE


def test_mark_only_called_cells() -> None:
    """Input: mark an uncalled cell, then after it is called -> Output: refused, then marked."""
    subscription, _ = _subscription()
    subscription.reconcile(_room())
    value = subscription.card[0][0]

    assert subscription.mark(0, 0) is False
    subscription.reconcile(_room(calledNumbers=[value]))
    assert subscription.mark(0, 0) is True
    assert subscription.marks[0][0] is True

    with pytest.raises(ValueError):
        subscription.mark(5, 0)


def test_has_bingo_after_full_row_is_called_and_marked() -> None:
    """Input: every cell of row 0 called and marked -> Output: has_bingo True."""
    subscription, _ = _subscription()
    row = subscription.card[0]
    subscription.reconcile(_room(calledNumbers=list(row)))
    assert subscription.has_bingo() is False

    for col in range(5):
        subscription.mark(0, col)

    assert subscription.has_bingo() is True


def test_time_to_next_number(clock) -> None:
    """Input: next call 2.5s ahead, then overdue -> Output: 2.5, then clamped to 0."""
    subscription, _ = _subscription(clock=clock)
    assert subscription.time_to_next_number() is None

    subscription.reconcile(_room(nextNumberTime=int(clock() * 1000) + 2500))
    assert subscription.time_to_next_number() == pytest.approx(2.5)

    clock.advance(10)
    assert subscription.time_to_next_number() == 0.0
