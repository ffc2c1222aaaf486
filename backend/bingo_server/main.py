"""FastAPI application entrypoint for the bingo room service."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import bingo_server.runtime as runtime
from bingo_server.api.deps import me
from bingo_server.api.routers.auth import create_session
from bingo_server.api.routers.auth import router as auth_router
from bingo_server.api.routers.payments import router as payments_router
from bingo_server.api.routers.rooms import create_room
from bingo_server.api.routers.rooms import get_room_detail
from bingo_server.api.routers.rooms import join_room
from bingo_server.api.routers.rooms import leave_room
from bingo_server.api.routers.rooms import list_available_rooms
from bingo_server.api.routers.rooms import router as rooms_router
from bingo_server.auth.http import handle_http_exception
from bingo_server.auth.http import handle_request_validation_error
from bingo_server.auth.models import SessionRequest
from bingo_server.rooms.models import CreateRoomRequest
from bingo_server.ws.broadcast import notify_room_change
from bingo_server.ws.routers import router as ws_router
from bingo_server.ws.routers import ws_lobby
from bingo_server.ws.routers import ws_room

logger = logging.getLogger(__name__)


def startup() -> None:
    """Reset runtime state and wire room changes to websocket pushes."""
    runtime.startup()
    runtime.room_store.subscribe(notify_room_change)


async def janitor_loop(interval_seconds: float) -> None:
    """Purge finished rooms whose retention window has passed."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            runtime.room_lifecycle.purge_finished_rooms(runtime.settings.sbingo_finished_room_retention_seconds)
        except Exception:  # pylint: disable=broad-except
            logger.exception("finished room purge failed")


async def mock_player_loop(interval_seconds: float) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(runtime.mock_players.sweep)
        except Exception:  # pylint: disable=broad-except
            logger.exception("mock player sweep failed")


@asynccontextmanager
async def lifespan(_: FastAPI):
    startup()
    loop = asyncio.get_running_loop()
    runtime.event_loop = loop
    runtime.caller_scheduler.bind(loop)
    runtime.caller_scheduler.resume_playing_rooms()

    background = [asyncio.create_task(janitor_loop(runtime.settings.sbingo_janitor_interval_seconds))]
    if runtime.settings.sbingo_mock_players_enabled:
        background.append(
            asyncio.create_task(mock_player_loop(runtime.settings.sbingo_mock_player_interval_seconds))
        )
    try:
        yield
    finally:
        for task in background:
            task.cancel()
        await asyncio.gather(*background, return_exceptions=True)
        await runtime.caller_scheduler.shutdown()
        runtime.event_loop = None


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in runtime.settings.sbingo_cors_allow_origins.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception_route(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Adapter used by FastAPI exception handling."""
    return await handle_http_exception(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_route(request: Request, exc: RequestValidationError) -> JSONResponse:
    return await handle_request_validation_error(request, exc)


@app.get("/health")
def health() -> dict[str, object]:
    return {"status": "ok", "env": runtime.settings.sbingo_app_env}


app.include_router(auth_router)
app.include_router(rooms_router)
app.include_router(payments_router)
app.include_router(ws_router)


def run() -> None:
    """Console entry: serve the app with uvicorn using configured host/port."""
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    uvicorn.run(app, host=runtime.settings.sbingo_app_host, port=runtime.settings.sbingo_app_port)


__all__ = [
    "CreateRoomRequest",
    "SessionRequest",
    "app",
    "create_room",
    "create_session",
    "get_room_detail",
    "health",
    "janitor_loop",
    "join_room",
    "leave_room",
    "lifespan",
    "list_available_rooms",
    "me",
    "mock_player_loop",
    "run",
    "startup",
    "ws_lobby",
    "ws_room",
]
