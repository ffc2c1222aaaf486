"""Session REST routes."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Header

import bingo_server.runtime as runtime
from bingo_server.api.deps import require_current_identity
from bingo_server.auth.models import SessionRequest
from bingo_server.auth.service import open_session

router = APIRouter()


@router.post("/api/auth/session")
def create_session(payload: SessionRequest) -> dict[str, object]:
    """Issue an access token for a wallet-style identity."""
    return open_session(settings=runtime.settings, payload=payload)


@router.get("/api/auth/me")
def get_me(authorization: str | None = Header(default=None, alias="Authorization")) -> dict[str, object]:
    """Return the participant behind the current access token."""
    return {"identity": require_current_identity(authorization)}
