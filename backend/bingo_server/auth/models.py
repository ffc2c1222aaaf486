"""Pydantic models for session requests."""

from __future__ import annotations

from pydantic import BaseModel


class SessionRequest(BaseModel):
    """POST /api/auth/session request body."""

    identity: str
