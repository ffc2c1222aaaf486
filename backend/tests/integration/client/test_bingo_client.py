"""BingoClient against the in-process app through httpx's ASGI transport."""

from __future__ import annotations

import asyncio
import importlib

import httpx
import pytest

from bingo_server.client import BingoApiError
from bingo_server.client import BingoClient
from bingo_server.rooms.subscription import DETACH_CLOSED
from bingo_server.rooms.subscription import DETACH_ROOM_GONE


def _setup_app(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SBINGO_JWT_SECRET", "client-test-secret-key-32-bytes-minimum")
    monkeypatch.setenv("SBINGO_STARTING_BALANCE", "3")

    import bingo_server.main as app_main

    app_main = importlib.reload(app_main)
    app_main.startup()
    return app_main


def _client(app_main) -> BingoClient:
    return BingoClient("http://testserver", transport=httpx.ASGITransport(app=app_main.app), poll_interval=0.01)


def test_client_create_join_and_read(monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: two clients create and join a 2-seat room -> Output: both see it playing."""
    app_main = _setup_app(monkeypatch)

    async def _run() -> None:
        async with _client(app_main) as alice, _client(app_main) as bob:
            await alice.open_session("alice")
            await bob.open_session("bob")

            room = await alice.create_room(name="Client Room", max_players=2, call_interval=3)
            assert room.status == "waiting"
            assert room.version == 1
            assert [item["id"] for item in await bob.list_available_rooms()] == [room.id]

            joined = await bob.join_room(room.id)
            assert joined.status == "playing"
            assert (await alice.get_room(room.id)).players == ["alice", "bob"]
            assert (await alice.get_my_room()).id == room.id
            assert len(await bob.get_card(room.id)) == 5

    asyncio.run(_run())


def test_client_maps_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: missing room read, join of missing room -> Output: None, then BingoApiError ROOM_NOT_FOUND."""
    app_main = _setup_app(monkeypatch)

    async def _run() -> None:
        async with _client(app_main) as alice:
            await alice.open_session("alice")
            assert await alice.get_room("missing") is None
            with pytest.raises(BingoApiError) as exc_info:
                await alice.join_room("missing")
            assert exc_info.value.status_code == 404
            assert exc_info.value.code == "ROOM_NOT_FOUND"

    asyncio.run(_run())


def test_client_paid_room_and_balance(monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: paid room, second player pays -> Output: game starts, balances debited."""
    app_main = _setup_app(monkeypatch)

    async def _run() -> None:
        async with _client(app_main) as alice, _client(app_main) as bob:
            await alice.open_session("alice")
            await bob.open_session("bob")
            room = await alice.create_room(name="Paid", max_players=2, call_interval=3, is_paid=True, entry_fee=1.0)
            await bob.join_room(room.id)

            paid = await bob.confirm_payment(room.id)

            assert paid.status == "playing"
            assert paid.total_pot == 2.0
            assert await alice.get_balance() == 2.0
            assert await bob.get_balance() == 2.0

    asyncio.run(_run())


def test_attach_replaces_previous_subscription(monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: attach to room A then room B -> Output: A's subscription closed, B's is current."""
    app_main = _setup_app(monkeypatch)

    async def _run() -> None:
        async with _client(app_main) as alice, _client(app_main) as carol:
            await alice.open_session("alice")
            await carol.open_session("carol")
            first = await alice.create_room(name="Room A", max_players=4, call_interval=3)
            second = await carol.create_room(name="Room B", max_players=4, call_interval=3)

            sub_a = await alice.attach(first.id, start=False)
            sub_b = await alice.attach(second.id, spectator=True, start=False)

            assert sub_a.detach_reason == DETACH_CLOSED
            assert alice.subscription is sub_b
            assert await sub_b.refresh() is True
            assert sub_b.room.id == second.id

    asyncio.run(_run())


def test_subscription_detaches_when_room_is_deleted(monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: polling subscription, another client deletes the room by leaving -> Output: room_gone."""
    app_main = _setup_app(monkeypatch)

    async def _run() -> None:
        async with _client(app_main) as alice, _client(app_main) as carol:
            await alice.open_session("alice")
            await carol.open_session("carol")
            room = await alice.create_room(name="Short Lived", max_players=4, call_interval=3)
            subscription = await carol.attach(room.id, spectator=True)
            await asyncio.sleep(0.05)
            assert subscription.attached

            assert await alice.leave_room(room.id) is None
            for _ in range(100):
                if not subscription.attached:
                    break
                await asyncio.sleep(0.01)

            assert subscription.detach_reason == DETACH_ROOM_GONE

    asyncio.run(_run())
