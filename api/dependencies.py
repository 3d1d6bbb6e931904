"""Dependency injection providers for the FastAPI application.

This module defines dependencies that can be injected into route handlers,
providing access to shared resources: the settings, the feed controller
and the registry of logged-in users.
"""

from typing import Annotated

from fastapi import Depends

from api.controller import MessageFeedController, UserRegistry
from feed.config import FeedSettings
from feed.funding import Funder
from feed.ledger import LedgerConnection, RpcLedgerConnection


# Global state, created once when the app starts
_settings: FeedSettings | None = None
_controller: MessageFeedController | None = None
_registry: UserRegistry | None = None


def get_settings() -> FeedSettings:
    """Get the process settings.

    Raises:
        RuntimeError: If the backend hasn't been initialized yet.
    """
    if _settings is None:
        raise RuntimeError("Feed backend not initialized. Call initialize_feed_backend() first.")
    return _settings


def get_feed_controller() -> MessageFeedController:
    """Get the shared MessageFeedController instance.

    Raises:
        RuntimeError: If the backend hasn't been initialized yet.
    """
    if _controller is None:
        raise RuntimeError("Feed backend not initialized. Call initialize_feed_backend() first.")
    return _controller


def get_user_registry() -> UserRegistry:
    """Get the shared UserRegistry instance.

    Raises:
        RuntimeError: If the backend hasn't been initialized yet.
    """
    if _registry is None:
        raise RuntimeError("Feed backend not initialized. Call initialize_feed_backend() first.")
    return _registry


def initialize_feed_backend(
    settings: FeedSettings,
    connection: LedgerConnection | None = None,
    funder: Funder | None = None,
) -> MessageFeedController:
    """Initialize the shared backend state.

    This should be called once when the FastAPI app starts up.

    Args:
        settings: Process settings.
        connection: Ledger connection; built from ``settings.rpc_url`` if
            omitted.
        funder: Funding collaborator; defaults to airdrops.

    Returns:
        The newly created MessageFeedController.
    """
    global _settings, _controller, _registry

    if connection is None:
        connection = RpcLedgerConnection(
            settings.rpc_url,
            confirm_timeout=settings.confirm_timeout,
        )

    _settings = settings
    _controller = MessageFeedController(
        connection,
        settings.program_id,
        layout=settings.message_layout,
        funder=funder,
    )
    _registry = UserRegistry()
    return _controller


async def shutdown_feed_backend() -> None:
    """Release the backend state and close the ledger connection."""
    global _settings, _controller, _registry

    if _controller is not None and isinstance(_controller.connection, RpcLedgerConnection):
        await _controller.connection.close()

    _settings = None
    _controller = None
    _registry = None


# Type aliases for dependency injection
SettingsDep = Annotated[FeedSettings, Depends(get_settings)]
FeedControllerDep = Annotated[MessageFeedController, Depends(get_feed_controller)]
UserRegistryDep = Annotated[UserRegistry, Depends(get_user_registry)]
