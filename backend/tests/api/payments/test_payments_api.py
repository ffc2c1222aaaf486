"""Paid room, balance, refund and settlement endpoint tests."""

from __future__ import annotations

import importlib
import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

import bingo_server.runtime as runtime


def _new_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, **env: str) -> TestClient:
    monkeypatch.setenv("SBINGO_JWT_SECRET", "payments-api-test-secret-key-32-bytes-minimum")
    monkeypatch.setenv("SBINGO_STARTING_BALANCE", "5")
    for key, value in env.items():
        monkeypatch.setenv(key, value)

    import bingo_server.main as app_main

    app_main = importlib.reload(app_main)
    return TestClient(app_main.app)


def _session(client: TestClient, identity: str) -> dict[str, str]:
    token = client.post("/api/auth/session", json={"identity": identity}).json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


def _paid_room(client: TestClient, headers: dict[str, str], max_players: int = 2) -> str:
    response = client.post(
        "/api/rooms",
        json={"name": "Paid Room", "max_players": max_players, "call_interval": 5, "is_paid": True, "entry_fee": 1.0},
        headers=headers,
    )
    assert response.status_code == 200, response.json()
    return str(response.json()["id"])


def _wait_for_settlement(client: TestClient, headers: dict[str, str], room_id: str) -> dict[str, object]:
    deadline = time.monotonic() + 2.0
    while time.monotonic() < deadline:
        response = client.get(f"/api/rooms/{room_id}/settlement", headers=headers)
        if response.status_code == 200 and response.json()["status"] != "pending":
            return response.json()
        time.sleep(0.02)
    raise AssertionError("settlement did not finish")


def test_paid_room_flow_settles_prize(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: 2-player paid room played to a win -> Output: winner paid 98% of the 2.0 pot."""
    with _new_client(tmp_path, monkeypatch) as client:
        alice = _session(client, "alice")
        bob = _session(client, "bob")
        room_id = _paid_room(client, alice)
        assert client.get("/api/payments/balance", headers=alice).json()["balance"] == 4.0

        joined = client.post(f"/api/rooms/{room_id}/join", headers=bob).json()
        assert joined["status"] == "waiting"

        paid = client.post(f"/api/rooms/{room_id}/payment", json={"amount": 1.0}, headers=bob).json()
        assert paid["status"] == "playing"
        assert paid["totalPot"] == 2.0

        card = client.get(f"/api/rooms/{room_id}/card", headers=bob).json()["card"]
        for col in range(5):
            runtime.room_store.call_number(room_id, card[0][col])

        claim = client.post(f"/api/rooms/{room_id}/claim", json={}, headers=bob)
        assert claim.status_code == 200

        settlement = _wait_for_settlement(client, bob, room_id)
        assert settlement["status"] == "paid"
        assert settlement["winner"] == "bob"
        assert settlement["winnerPrize"] == 1.96
        assert client.get("/api/payments/balance", headers=bob).json()["balance"] == pytest.approx(5.96)


def test_payment_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: wrong amount, free-room payment, double payment -> Output: 400, 409 ROOM_NOT_PAID, 409 already."""
    with _new_client(tmp_path, monkeypatch) as client:
        alice = _session(client, "alice")
        bob = _session(client, "bob")
        carol = _session(client, "carol")
        room_id = _paid_room(client, alice, max_players=3)
        client.post(f"/api/rooms/{room_id}/join", headers=bob)

        wrong = client.post(f"/api/rooms/{room_id}/payment", json={"amount": 0.5}, headers=bob)
        assert wrong.status_code == 400

        twice = client.post(f"/api/rooms/{room_id}/payment", json={}, headers=alice)
        assert twice.status_code == 409
        assert twice.json()["code"] == "PAYMENT_ALREADY_CONFIRMED"

        free_id = client.post(
            "/api/rooms",
            json={"name": "Free Room", "max_players": 4, "call_interval": 5},
            headers=carol,
        ).json()["id"]
        free = client.post(f"/api/rooms/{free_id}/payment", json={}, headers=carol)
        assert free.status_code == 409
        assert free.json()["code"] == "ROOM_NOT_PAID"


def test_insufficient_balance(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: zero starting balance, create paid room -> Output: 402 INSUFFICIENT_BALANCE."""
    with _new_client(tmp_path, monkeypatch, SBINGO_STARTING_BALANCE="0") as client:
        alice = _session(client, "alice")

        response = client.post(
            "/api/rooms",
            json={"name": "Paid Room", "max_players": 2, "call_interval": 5, "is_paid": True, "entry_fee": 1.0},
            headers=alice,
        )

        assert response.status_code == 402
        assert response.json()["code"] == "INSUFFICIENT_BALANCE"
        assert client.get("/api/rooms/all", headers=alice).json() == []


def test_refund_after_leaving(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: paid player leaves with zero cool-down, asks twice -> Output: refunded once, then 409."""
    with _new_client(tmp_path, monkeypatch, SBINGO_REFUND_COOLDOWN_SECONDS="0") as client:
        alice = _session(client, "alice")
        bob = _session(client, "bob")
        room_id = _paid_room(client, alice, max_players=3)
        client.post(f"/api/rooms/{room_id}/join", headers=bob)
        client.post(f"/api/rooms/{room_id}/payment", json={}, headers=bob)

        left = client.post(f"/api/rooms/{room_id}/leave", headers=bob).json()
        assert left["room"]["totalPot"] == 1.0

        refund = client.post("/api/payments/refund", json={"room_id": room_id}, headers=bob)
        assert refund.status_code == 200
        assert refund.json() == {"ok": True, "balance": 5.0}

        again = client.post("/api/payments/refund", json={"room_id": room_id}, headers=bob)
        assert again.status_code == 409
        assert again.json()["code"] == "REFUND_NOT_AVAILABLE"


def test_settlement_not_found(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: settlement for a room that never finished -> Output: 404 SETTLEMENT_NOT_FOUND."""
    with _new_client(tmp_path, monkeypatch) as client:
        alice = _session(client, "alice")

        response = client.get("/api/rooms/whatever/settlement", headers=alice)

        assert response.status_code == 404
        assert response.json()["code"] == "SETTLEMENT_NOT_FOUND"
