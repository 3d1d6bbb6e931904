"""Main entry point for the message feed backend.

This module creates the FastAPI app that serves feed metadata and logins to
feed clients.

To run the development server:
    uvicorn main:app --reload --port 8081
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.dependencies import initialize_feed_backend, shutdown_feed_backend
from api.exceptions import (
    feed_error_handler,
    generic_exception_handler,
    transaction_error_handler,
    unsupported_login_method_handler,
)
from api.routes import config as config_routes
from api.routes import login as login_routes
from feed.config import load_settings
from feed.exceptions import MessageFeedError, TransactionError, UnsupportedLoginMethod

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load settings, build the backend and start creating the feed.

    The first message is created in the background; until it exists the
    config endpoint reports ``loading``.
    """
    logging.basicConfig(level=logging.INFO)
    settings = load_settings()
    logger.info("Starting message feed backend against %s", settings.rpc_url)
    controller = initialize_feed_backend(settings)
    bootstrap = asyncio.create_task(controller.check_message_feed())

    yield

    logger.info("Shutting down message feed backend")
    bootstrap.cancel()
    try:
        await bootstrap
    except asyncio.CancelledError:
        pass
    await shutdown_feed_backend()


app = FastAPI(
    title="Message Feed",
    description="Metadata and login service for a ledger-backed message feed",
    version="0.1.0",
    lifespan=lifespan,
)

# Specific exceptions before general ones
app.add_exception_handler(UnsupportedLoginMethod, unsupported_login_method_handler)
app.add_exception_handler(TransactionError, transaction_error_handler)
app.add_exception_handler(MessageFeedError, feed_error_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(config_routes.router)
app.include_router(login_routes.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=load_settings().port)
