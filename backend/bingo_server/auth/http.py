"""Unified ``{code, message, detail}`` error bodies for every HTTP failure."""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Codes for errors raised by the framework rather than by our handlers.
STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "REQUEST_INVALID",
}


def api_error(*, code: str, message: str, detail: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build a unified API error payload."""
    return {"code": code, "message": message, "detail": detail or {}}


def is_api_error(payload: Any) -> bool:
    return isinstance(payload, dict) and {"code", "message", "detail"} <= set(payload)


def code_for_status(status_code: int) -> str:
    return STATUS_CODES.get(status_code, "HTTP_ERROR")


async def handle_http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Pass our own error bodies through; wrap framework errors such as unknown routes."""
    if is_api_error(exc.detail):
        body = exc.detail
    else:
        body = api_error(code=code_for_status(exc.status_code), message=str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def handle_request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies keep their 422 but report the offending fields in ``detail``."""
    fields = [".".join(str(part) for part in error.get("loc", ())) for error in exc.errors()]
    return JSONResponse(
        status_code=422,
        content=api_error(
            code=code_for_status(422),
            message="request body or parameters are malformed",
            detail={"fields": fields},
        ),
    )


__all__ = [
    "api_error",
    "code_for_status",
    "handle_http_exception",
    "handle_request_validation_error",
    "is_api_error",
]
