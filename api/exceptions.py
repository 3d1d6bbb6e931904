"""Exception handlers for the feed FastAPI application.

This module converts feed exceptions into consistent JSON responses.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from feed.exceptions import (
    InsufficientFunds,
    MessageFeedError,
    TransactionError,
    UnsupportedLoginMethod,
)

logger = logging.getLogger(__name__)


async def unsupported_login_method_handler(request: Request, exc: UnsupportedLoginMethod):
    """The configured login method has no implementation."""
    return JSONResponse(
        status_code=status.HTTP_501_NOT_IMPLEMENTED,
        content={
            "error": "Unsupported Login Method",
            "detail": exc.message,
            "login_method": str(exc.login_method),
        },
    )


async def transaction_error_handler(request: Request, exc: TransactionError):
    """A ledger operation aborted; nothing was written.

    Funding failures are reported as 503 (try again later); rejections and
    confirmation timeouts as 502.
    """
    status_code = status.HTTP_502_BAD_GATEWAY
    if isinstance(exc, InsufficientFunds):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    logger.warning("Ledger operation %s failed: %s", exc.operation, exc)
    return JSONResponse(
        status_code=status_code,
        content={
            "error": "Ledger Operation Failed",
            "detail": exc.message,
            "type": type(exc).__name__,
            "operation": exc.operation,
        },
    )


async def feed_error_handler(request: Request, exc: MessageFeedError):
    """Any other feed error."""
    logger.error("Feed error: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Message Feed Error",
            "detail": exc.message,
            "type": type(exc).__name__,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all for unexpected errors; never exposes a stack trace."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "detail": "An unexpected error occurred",
            "type": type(exc).__name__,
        },
    )
