"""
Global Error Handling

Application-wide exception handlers. Every error body has the same shape:

    {"error": <machine-readable code>, "detail": <safe human message>}

Design Goals
------------
- Exception details stay in the server log, never in the response
- An unusable index or embedding model is a 503, not a bad answer
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("yoga.errors")


def _error_response(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "detail": detail},
    )


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

async def service_unavailable_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Handler for initialization failures (index not built or loaded,
    embedding model unavailable) surfacing during a request.
    """
    logger.error(
        "Service unavailable during %s %s: %s: %s",
        request.method,
        request.url.path,
        type(exc).__name__,
        exc,
    )
    return _error_response(
        503,
        "service_unavailable",
        "The knowledge base is not ready. Please try again later.",
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Last-resort handler: full traceback to the log, generic 500 to the client.
    """
    logger.exception(
        "Unhandled exception while serving %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return _error_response(500, "internal_server_error", "Internal server error")
