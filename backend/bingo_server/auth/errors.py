"""Session-specific HTTP error helpers."""

from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException

from bingo_server.auth.http import api_error
from bingo_server.core.identity import IdentityValidationError


def raise_validation_error(exc: IdentityValidationError) -> NoReturn:
    """Raise a unified identity validation error."""
    raise HTTPException(
        status_code=400,
        detail=api_error(code="VALIDATION_ERROR", message=str(exc), detail={}),
    ) from exc


def raise_token_invalid() -> NoReturn:
    """Raise unified invalid-token response."""
    raise HTTPException(
        status_code=401,
        detail=api_error(code="AUTH_TOKEN_INVALID", message="invalid access token", detail={}),
        headers={"WWW-Authenticate": "Bearer"},
    )


def raise_token_expired() -> NoReturn:
    """Raise unified expired-token response."""
    raise HTTPException(
        status_code=401,
        detail=api_error(code="AUTH_TOKEN_EXPIRED", message="access token expired", detail={}),
        headers={"WWW-Authenticate": "Bearer"},
    )
