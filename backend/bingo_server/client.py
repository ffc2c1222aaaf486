"""Async HTTP client for the bingo room service.

The client holds at most one room attachment at a time. Attaching to a new
room closes the previous ``RoomSubscription`` first, so no poll loop keeps
running against a room the player already left.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
from typing import Any

import httpx

from bingo_server.rooms.room import Room
from bingo_server.rooms.subscription import RoomSubscription

logger = logging.getLogger(__name__)


class BingoApiError(Exception):
    """Unified ``{code, message, detail}`` error returned by the service."""

    def __init__(self, status_code: int, code: str, message: str, detail: dict[str, Any] | None = None) -> None:
        super().__init__(f"{status_code} {code}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message
        self.detail = detail or {}


def room_from_payload(payload: dict[str, Any]) -> Room:
    data = dict(payload)
    version = int(data.pop("version", 0) or 0)
    return Room.from_record(data, version=version)


class BingoClient:
    def __init__(
        self,
        base_url: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 5.0,
        poll_interval: float = 1.0,
    ) -> None:
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout, trust_env=False)
        self.poll_interval = poll_interval
        self.identity: str | None = None
        self.access_token: str | None = None
        self.subscription: RoomSubscription | None = None

    async def __aenter__(self) -> "BingoClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -- plumbing ----------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        if self.access_token is None:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _request(self, method: str, path: str, *, json: Any = None) -> Any:
        response = await self._http.request(method, path, json=json, headers=self._headers())
        if response.is_success:
            return response.json()
        try:
            body = response.json()
        except ValueError:
            body = {}
        raise BingoApiError(
            response.status_code,
            str(body.get("code", "HTTP_ERROR")),
            str(body.get("message", response.reason_phrase)),
            body.get("detail") if isinstance(body.get("detail"), dict) else None,
        )

    # -- session -----------------------------------------------------------

    async def open_session(self, identity: str) -> str:
        payload = await self._request("POST", "/api/auth/session", json={"identity": identity})
        self.identity = str(payload["identity"])
        self.access_token = str(payload["access_token"])
        return self.access_token

    # -- rooms -------------------------------------------------------------

    async def list_available_rooms(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/rooms")

    async def list_all_rooms(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/rooms/all")

    async def get_my_room(self) -> Room | None:
        payload = await self._request("GET", "/api/rooms/mine")
        room = payload.get("room")
        return None if room is None else room_from_payload(room)

    async def get_room(self, room_id: str) -> Room | None:
        """Fetch one room; a deleted room reads as None."""
        try:
            payload = await self._request("GET", f"/api/rooms/{room_id}")
        except BingoApiError as exc:
            if exc.status_code == 404:
                return None
            raise
        return room_from_payload(payload)

    async def create_room(
        self,
        *,
        name: str | None = None,
        max_players: int | None = None,
        call_interval: int | None = None,
        is_paid: bool = False,
        entry_fee: float = 0.0,
    ) -> Room:
        body: dict[str, Any] = {"is_paid": is_paid, "entry_fee": entry_fee}
        if name is not None:
            body["name"] = name
        if max_players is not None:
            body["max_players"] = max_players
        if call_interval is not None:
            body["call_interval"] = call_interval
        return room_from_payload(await self._request("POST", "/api/rooms", json=body))

    async def join_room(self, room_id: str) -> Room:
        return room_from_payload(await self._request("POST", f"/api/rooms/{room_id}/join"))

    async def leave_room(self, room_id: str) -> Room | None:
        if self.subscription is not None and self.subscription.room_id == room_id:
            await self.detach()
        payload = await self._request("POST", f"/api/rooms/{room_id}/leave")
        room = payload.get("room")
        return None if room is None else room_from_payload(room)

    async def watch_room(self, room_id: str) -> Room:
        return room_from_payload(await self._request("POST", f"/api/rooms/{room_id}/watch"))

    async def stop_watching(self, room_id: str) -> None:
        await self._request("POST", f"/api/rooms/{room_id}/unwatch")

    async def confirm_payment(self, room_id: str, amount: float | None = None) -> Room:
        payload = await self._request("POST", f"/api/rooms/{room_id}/payment", json={"amount": amount})
        return room_from_payload(payload)

    async def claim_win(self, room_id: str, marked_cells: list[list[bool]] | None = None) -> Room:
        payload = await self._request("POST", f"/api/rooms/{room_id}/claim", json={"marked_cells": marked_cells})
        return room_from_payload(payload)

    async def get_card(self, room_id: str) -> list[list[str]]:
        payload = await self._request("GET", f"/api/rooms/{room_id}/card")
        return payload["card"]

    async def get_settlement(self, room_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/rooms/{room_id}/settlement")

    # -- payments ----------------------------------------------------------

    async def get_balance(self) -> float:
        payload = await self._request("GET", "/api/payments/balance")
        return float(payload["balance"])

    async def request_refund(self, room_id: str) -> float:
        payload = await self._request("POST", "/api/payments/refund", json={"room_id": room_id})
        return float(payload["balance"])

    # -- attachment --------------------------------------------------------

    async def attach(
        self,
        room_id: str,
        *,
        spectator: bool = False,
        on_change: Callable[[Room], None] | None = None,
        on_detach: Callable[[str], None] | None = None,
        start: bool = True,
    ) -> RoomSubscription:
        """Attach to room_id, replacing any previous attachment."""
        if self.identity is None:
            raise RuntimeError("open_session() must be called before attach()")
        await self.detach()
        subscription = RoomSubscription(
            room_id=room_id,
            identity=self.identity,
            fetch_room=self.get_room,
            poll_interval=self.poll_interval,
            spectator=spectator,
            on_change=on_change,
            on_detach=on_detach,
        )
        self.subscription = subscription
        if start:
            subscription.start()
        return subscription

    async def detach(self) -> None:
        subscription, self.subscription = self.subscription, None
        if subscription is not None:
            await subscription.close()

    async def aclose(self) -> None:
        await self.detach()
        await self._http.aclose()


__all__ = ["BingoApiError", "BingoClient", "room_from_payload"]
