"""Participant session package."""

from bingo_server.auth.http import handle_http_exception
from bingo_server.auth.models import SessionRequest
from bingo_server.auth.service import me_participant
from bingo_server.auth.service import open_session

__all__ = [
    "SessionRequest",
    "handle_http_exception",
    "me_participant",
    "open_session",
]
