"""Session issuance and lookup for wallet-style identities."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone

from bingo_server.auth.errors import raise_token_expired
from bingo_server.auth.errors import raise_token_invalid
from bingo_server.auth.errors import raise_validation_error
from bingo_server.auth.models import SessionRequest
from bingo_server.core.config import Settings
from bingo_server.core.identity import IdentityValidationError
from bingo_server.core.identity import normalize_and_validate_identity
from bingo_server.core.tokens import AccessTokenExpiredError
from bingo_server.core.tokens import AccessTokenInvalidError
from bingo_server.core.tokens import create_access_token
from bingo_server.core.tokens import decode_access_token


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def open_session(*, settings: Settings, payload: SessionRequest) -> dict[str, object]:
    """Validate the identity and issue an access token for it."""
    try:
        identity = normalize_and_validate_identity(payload.identity)
    except IdentityValidationError as exc:
        raise_validation_error(exc)

    access_token = create_access_token(
        identity=identity,
        now=utc_now(),
        expires_in_seconds=settings.sbingo_access_token_expire_seconds,
    )
    return {
        "identity": identity,
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": settings.sbingo_access_token_expire_seconds,
    }


def me_participant(*, settings: Settings, access_token: str) -> dict[str, object]:
    """Return the participant behind a valid access token."""
    try:
        payload = decode_access_token(access_token, now=utc_now())
    except AccessTokenExpiredError:
        raise_token_expired()
    except AccessTokenInvalidError:
        raise_token_invalid()

    identity = str(payload["sub"])
    return {"identity": identity, "expires_at": int(payload["exp"])}
