"""
Global exception handlers for FastAPI application.

These handlers catch exceptions raised anywhere in the request lifecycle
(routes, dependencies, services) and return consistent responses: JSON for
the /api routes, plain text for the HTML page.

Registration (in main.py):
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
"""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from rss_tv.exceptions import (
    UPSTREAM_PUBLIC_MESSAGE,
    AppException,
    InvalidUrlError,
    UpstreamFetchError,
)

logger = logging.getLogger(__name__)

INTERNAL_MESSAGE = "Internal server error"


def wants_json(request: Request) -> bool:
    return request.url.path.startswith("/api/")


async def app_exception_handler(request: Request, exc: AppException) -> Response:
    """
    Handle application-level exceptions (AppException and subclasses).

    JSON response format:
        {
            "error": "Human-readable error message",
            "error_code": "MACHINE_READABLE_CODE"
        }
    """
    # Use warning level for client errors (4xx), error level for server errors (5xx)
    log_level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    internal = exc.detail if isinstance(exc, UpstreamFetchError) else exc.message
    logger.log(
        log_level,
        f"{exc.error_code}: {internal}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "status_code": exc.status_code,
            "rss_url": getattr(exc, "url", None) or "",
            "error": internal,
        },
    )

    if wants_json(request):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "error_code": exc.error_code},
        )

    text = exc.message
    if isinstance(exc, InvalidUrlError):
        text = f"Bad rss parameter: {exc.reason}"
    return PlainTextResponse(text, status_code=exc.status_code)


async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    """
    Catch-all handler for unhandled exceptions.

    Logs the full stack trace and returns a generic error response.
    This prevents internal details from leaking to clients.
    """
    logger.exception(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    if wants_json(request):
        return JSONResponse(
            status_code=500,
            content={"error": INTERNAL_MESSAGE, "error_code": "INTERNAL_ERROR"},
        )
    return PlainTextResponse(UPSTREAM_PUBLIC_MESSAGE, status_code=500)
