"""Dependency helpers shared by API routers."""

from __future__ import annotations

from fastapi import Header

import bingo_server.runtime as runtime
from bingo_server.auth.errors import raise_token_invalid
from bingo_server.auth.service import me_participant


def me(access_token: str) -> dict[str, object]:
    """Return current participant for a valid access token."""
    return me_participant(settings=runtime.settings, access_token=access_token)


def require_current_identity(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> str:
    """Read and validate Bearer access token from Authorization header."""
    if authorization is None:
        raise_token_invalid()

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise_token_invalid()
    return str(me(token)["identity"])
