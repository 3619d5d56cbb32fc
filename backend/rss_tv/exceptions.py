"""
Custom exception classes for the application.

These exceptions are caught by global exception handlers in exception_handlers.py,
providing consistent error responses for both the JSON API and the HTML page.

Usage:
    from rss_tv.exceptions import InvalidUrlError, UpstreamFetchError

    # In services - just raise, no try-except needed in routes
    raise InvalidUrlError("Hostname not in allowlist")   # 400
    raise UpstreamFetchError("Upstream returned 404")    # 502, generic body
"""

UPSTREAM_PUBLIC_MESSAGE = "Error fetching/parsing RSS feed."


class AppException(Exception):
    """
    Base exception class for application-level errors.

    Attributes:
        message: Human-readable message that is safe to show to clients
        status_code: HTTP status code to return
        error_code: Machine-readable error code for client handling
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or f"ERR_{status_code}"
        super().__init__(message)


class InvalidUrlError(AppException):
    """
    Caller-supplied feed URL was rejected (400).

    The specific rejection reason is reported back to the caller.

    Usage:
        raise InvalidUrlError("Only http/https URLs are allowed")
    """

    def __init__(self, reason: str):
        super().__init__(
            message=reason,
            status_code=400,
            error_code="INVALID_URL",
        )
        self.reason = reason


class UpstreamFetchError(AppException):
    """
    Fetching or parsing the feed failed (502).

    Clients only ever see the generic message; ``detail`` holds the
    internal cause for the operator log.

    Usage:
        raise UpstreamFetchError("Upstream returned 503", url=feed_url)
    """

    def __init__(self, detail: str, url: str | None = None):
        super().__init__(
            message=UPSTREAM_PUBLIC_MESSAGE,
            status_code=502,
            error_code="UPSTREAM_FETCH_ERROR",
        )
        self.detail = detail
        self.url = url

    def __str__(self) -> str:
        if self.url:
            return f"{self.detail} [url={self.url}]"
        return self.detail
