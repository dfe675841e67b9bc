from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger


class ConnectError(Exception):
    """Base for every expected outcome the services report to callers."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "kind": self.kind, **self.extra}


class NotFound(ConnectError):
    kind = "not_found"
    status_code = 404


class Forbidden(ConnectError):
    kind = "forbidden"
    status_code = 403


class Conflict(ConnectError):
    kind = "conflict"
    status_code = 409


class InvalidState(ConnectError):
    kind = "invalid_state"
    status_code = 400


class RequestExpired(InvalidState):
    kind = "expired"


class CapacityExceeded(ConnectError):
    kind = "capacity"
    status_code = 409


class InvalidInput(ConnectError):
    kind = "invalid_input"
    status_code = 400


class InvalidTarget(InvalidInput):
    kind = "invalid_target"


class Unavailable(ConnectError):
    """Store-level failure. Nothing was written; safe to retry."""

    kind = "unavailable"
    status_code = 503


def _connect_error_handler(request: Request, exc: ConnectError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.kind}: {exc.message}")
    headers: Optional[Dict[str, str]] = None
    if isinstance(exc, Unavailable):
        headers = {"Retry-After": "1"}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ConnectError, _connect_error_handler)
