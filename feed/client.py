"""Main message feed client.

``AsyncMessageFeedClient`` bundles a ledger connection with the deployment's
message layout and exposes the feed operations as methods.

Example:
    Joining a feed through its config endpoint::

        client = await AsyncMessageFeedClient.from_config_url(
            "http://localhost:8081/config.json"
        )
        async with client:
            messages = []
            await client.refresh(messages, start_from=client.metadata.first_message)
            user = await client.login({"id": "alice"})
            await client.post(user, "hello", previous_message=messages[-1].public_key)
            await client.refresh(messages)
"""

from typing import Any, Callable

import httpx

from feed.bootstrap import FeedMetadata, LoginMethod, resolve_feed_metadata
from feed.codec import DEFAULT_LAYOUT, MessageLayout, UserAccount
from feed.composer import PostReceipt, create_user, post_message
from feed.exceptions import UnsupportedLoginMethod
from feed.funding import Funder
from feed.keys import Keypair, PublicKey
from feed.ledger import LedgerConnection, RpcLedgerConnection
from feed.sync import FeedEntry, refresh_message_feed
from feed.users import get_user, is_banned, user_login


class AsyncMessageFeedClient:
    """Asynchronous client for one message feed.

    Attributes:
        connection: The ledger connection in use.
        layout: Message account layout of the deployment.
        metadata: Feed metadata, when the client was built from a config URL.
    """

    def __init__(
        self,
        rpc_url: str = "http://localhost:8899",
        layout: MessageLayout = DEFAULT_LAYOUT,
        commitment: str = "confirmed",
        confirm_timeout: float = 30.0,
        timeout: float = 30.0,
        retry_enabled: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
        connection: LedgerConnection | None = None,
        funder: Funder | None = None,
        metadata: FeedMetadata | None = None,
        login_url: str | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            rpc_url: Ledger JSON-RPC endpoint.
            layout: Message account layout of the deployment.
            commitment: Commitment level for reads and confirmation.
            confirm_timeout: Seconds to wait for confirmation.
            timeout: HTTP request timeout in seconds.
            retry_enabled: Retry RPC calls on transient failures.
            transport: Custom HTTP transport (e.g., MockTransport for testing).
            connection: Use this ledger connection instead of building one.
            funder: Funding collaborator; defaults to airdrops.
            metadata: Feed metadata, if already resolved.
            login_url: Endpoint for ``login``.
        """
        self._owns_connection = connection is None
        self.connection: LedgerConnection = connection or RpcLedgerConnection(
            rpc_url,
            commitment=commitment,
            confirm_timeout=confirm_timeout,
            timeout=timeout,
            retry_enabled=retry_enabled,
            transport=transport,
        )
        self.layout = layout
        self.metadata = metadata
        self.login_url = login_url
        self._funder = funder
        self._transport = transport

    @classmethod
    async def from_config_url(
        cls,
        config_url: str,
        layout: MessageLayout = DEFAULT_LAYOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> "AsyncMessageFeedClient":
        """Resolve feed metadata, then connect to the ledger it names.

        The login endpoint defaults to ``/login`` next to the config URL.
        """
        metadata = await resolve_feed_metadata(config_url, transport=transport)
        login_url = kwargs.pop("login_url", None) or config_url.rsplit("/", 1)[0] + "/login"
        rpc_url = kwargs.pop("rpc_url", "http://localhost:8899")
        return cls(
            rpc_url=metadata.url or rpc_url,
            layout=layout,
            transport=transport,
            metadata=metadata,
            login_url=login_url,
            **kwargs,
        )

    async def __aenter__(self) -> "AsyncMessageFeedClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the ledger connection if this client created it."""
        if self._owns_connection and isinstance(self.connection, RpcLedgerConnection):
            await self.connection.close()

    async def refresh(
        self,
        messages: list[FeedEntry],
        on_new_message: Callable[[FeedEntry], None] | None = None,
        start_from: PublicKey | None = None,
    ) -> int:
        """Append new feed messages to ``messages``. See ``refresh_message_feed``."""
        return await refresh_message_feed(
            self.connection,
            messages,
            on_new_message=on_new_message,
            start_from=start_from,
            layout=self.layout,
        )

    async def post(
        self,
        user: Keypair,
        text: str,
        previous_message: PublicKey,
        user_to_ban: PublicKey | None = None,
    ) -> PostReceipt:
        """Post ``text`` after ``previous_message``, optionally banning a user."""
        return await post_message(
            self.connection,
            user,
            text,
            previous_message,
            user_to_ban=user_to_ban,
            layout=self.layout,
            funder=self._funder,
        )

    async def create_user(self, program_id: PublicKey, anchor_message: Keypair) -> Keypair:
        return await create_user(self.connection, program_id, anchor_message, funder=self._funder)

    async def get_user(self, user: PublicKey) -> UserAccount:
        return await get_user(self.connection, user)

    async def is_banned(self, user: PublicKey) -> bool:
        return await is_banned(self.connection, user)

    async def login(self, credentials: dict[str, Any]) -> Keypair:
        """Log in through the feed backend.

        Raises:
            UnsupportedLoginMethod: If the feed uses a login method this
                client cannot drive.
            ValueError: If no login URL is configured.
        """
        if self.metadata is not None and self.metadata.login_method is not LoginMethod.LOCAL:
            raise UnsupportedLoginMethod(self.metadata.login_method.value)
        if not self.login_url:
            raise ValueError("No login URL configured")
        return await user_login(self.login_url, credentials, transport=self._transport)
