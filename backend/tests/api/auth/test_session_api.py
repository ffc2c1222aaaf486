"""Session endpoint contract tests."""

from __future__ import annotations

import importlib
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


def _new_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setenv("SBINGO_JWT_SECRET", "session-api-test-secret-key-32-bytes-minimum")
    monkeypatch.setenv("SBINGO_ACCESS_TOKEN_EXPIRE_SECONDS", "120")

    import bingo_server.main as app_main

    app_main = importlib.reload(app_main)
    return TestClient(app_main.app)


def test_open_session_returns_bearer_token(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: valid identity -> Output: normalized identity, bearer token and expiry."""
    with _new_client(tmp_path, monkeypatch) as client:
        response = client.post("/api/auth/session", json={"identity": "  alice  "})

        assert response.status_code == 200
        payload = response.json()
        assert payload["identity"] == "alice"
        assert payload["token_type"] == "bearer"
        assert payload["expires_in"] == 120
        assert isinstance(payload["access_token"], str)


def test_open_session_rejects_bad_identity(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: too-short identity -> Output: 400 VALIDATION_ERROR in unified shape."""
    with _new_client(tmp_path, monkeypatch) as client:
        response = client.post("/api/auth/session", json={"identity": "ab"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["detail"] == {}


def test_me_returns_identity_for_valid_token(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: Bearer token from session -> Output: identity behind it."""
    with _new_client(tmp_path, monkeypatch) as client:
        token = client.post("/api/auth/session", json={"identity": "alice"}).json()["access_token"]

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json() == {"identity": "alice"}


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Bearer not-a-token"},
        {"Authorization": "Basic abc"},
    ],
)
def test_me_rejects_missing_or_bad_token(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    headers: dict[str, str],
) -> None:
    """Input: no token, garbage token, wrong scheme -> Output: 401 AUTH_TOKEN_INVALID."""
    with _new_client(tmp_path, monkeypatch) as client:
        response = client.get("/api/auth/me", headers=headers)

        assert response.status_code == 401
        assert response.json()["code"] == "AUTH_TOKEN_INVALID"
        assert response.headers["www-authenticate"] == "Bearer"


def test_health(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: GET /health -> Output: status ok."""
    with _new_client(tmp_path, monkeypatch) as client:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"


def test_framework_errors_use_unified_shape(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Input: unknown route, then a body missing identity -> Output: 404 NOT_FOUND, 422 REQUEST_INVALID."""
    with _new_client(tmp_path, monkeypatch) as client:
        missing = client.get("/api/no-such-route")
        assert missing.status_code == 404
        assert missing.json() == {"code": "NOT_FOUND", "message": "Not Found", "detail": {}}

        malformed = client.post("/api/auth/session", json={})
        assert malformed.status_code == 422
        body = malformed.json()
        assert body["code"] == "REQUEST_INVALID"
        assert "body.identity" in body["detail"]["fields"]
