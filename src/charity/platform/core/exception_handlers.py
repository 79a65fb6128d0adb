"""
Exception handlers for the HTTP API.

Ticket errors render their own ``to_dict()`` payload with their status code.
Malformed request bodies are reported as 400 in the same envelope, and
anything unexpected becomes a logged 500 with no internals leaked.
"""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..tickets.exceptions import TicketError

logger = structlog.get_logger(__name__)


async def ticket_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a TicketError with its own status code."""
    if not isinstance(exc, TicketError):
        raise exc
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "api.ticket_error",
        path=request.url.path,
        method=request.method,
        error_code=exc.error_code,
        status_code=exc.status_code,
        error=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Report body and parameter validation failures as 400."""
    errors: list[Any] = exc.errors() if isinstance(exc, RequestValidationError) else []
    logger.info(
        "api.request_validation_failed",
        path=request.url.path,
        method=request.method,
        error_count=len(errors),
    )
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "Request validation failed",
            "error_code": "REQUEST_VALIDATION_ERROR",
            "status_code": 400,
            "context": {"errors": jsonable_encoder(errors)},
            "recovery_hint": "Correct the request and try again",
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "api.unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "error_code": "INTERNAL_ERROR",
            "status_code": 500,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the API's exception handlers to ``app``."""
    app.add_exception_handler(TicketError, ticket_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    "register_exception_handlers",
    "ticket_error_handler",
    "validation_error_handler",
    "unhandled_exception_handler",
]
