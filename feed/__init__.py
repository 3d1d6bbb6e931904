"""Message feed client library.

A client-side engine for an append-only chat feed whose state lives in
accounts on a Solana-style ledger. It decodes feed accounts, composes the
atomic transactions that post messages and register users, keeps a local
view of the feed in sync with the on-ledger linked list, and resolves feed
metadata from the feed backend.

Example:
    Following the feed::

        from feed import AsyncMessageFeedClient

        client = await AsyncMessageFeedClient.from_config_url(
            "http://localhost:8081/config.json"
        )
        async with client:
            messages = []
            await client.refresh(
                messages,
                on_new_message=lambda entry: print(f"{entry.name}: {entry.text}"),
                start_from=client.metadata.first_message,
            )

Exports:
    AsyncMessageFeedClient: Facade bundling the operations below.

    Exceptions:
        MessageFeedError: Base exception for all feed errors.
        MalformedAccount, AccountNotFound, ChainCycleError: Read failures.
        InsufficientFunds, TransactionRejected, ConfirmationTimeout:
            Aborted compound operations.
        UnreachableEndpoint, UnsupportedLoginMethod: Endpoint and
            configuration failures.
"""

from feed.bootstrap import FeedMetadata, LoginMethod, resolve_feed_metadata
from feed.codec import (
    MessageAccount,
    MessageLayout,
    UserAccount,
    decode_message,
    decode_user,
    encode_text,
    message_account_size,
)
from feed.composer import (
    PostReceipt,
    TransactionPlan,
    create_user,
    post_message,
    post_message_with_program_id,
)
from feed.exceptions import (
    AccountNotFound,
    APIError,
    ChainCycleError,
    ConfirmationTimeout,
    InsufficientFunds,
    MalformedAccount,
    MessageFeedError,
    RequestTimeout,
    RpcError,
    ServerError,
    TransactionError,
    TransactionRejected,
    UnreachableEndpoint,
    UnsupportedLoginMethod,
)
from feed.keys import SENTINEL, Keypair, PublicKey
from feed.ledger import AccountInfo, LedgerConnection, RpcLedgerConnection
from feed.sync import FeedEntry, read_message, refresh_message_feed
from feed.users import ban_authority_chain, get_user, is_banned, user_login
from feed.client import AsyncMessageFeedClient

__all__ = [
    # Main client
    "AsyncMessageFeedClient",
    # Identities
    "PublicKey",
    "Keypair",
    "SENTINEL",
    # Accounts
    "MessageLayout",
    "MessageAccount",
    "UserAccount",
    "decode_message",
    "decode_user",
    "encode_text",
    "message_account_size",
    # Ledger
    "AccountInfo",
    "LedgerConnection",
    "RpcLedgerConnection",
    # Operations
    "FeedMetadata",
    "LoginMethod",
    "resolve_feed_metadata",
    "FeedEntry",
    "read_message",
    "refresh_message_feed",
    "PostReceipt",
    "TransactionPlan",
    "create_user",
    "post_message",
    "post_message_with_program_id",
    "get_user",
    "is_banned",
    "ban_authority_chain",
    "user_login",
    # Exceptions
    "MessageFeedError",
    "UnreachableEndpoint",
    "RequestTimeout",
    "APIError",
    "ServerError",
    "RpcError",
    "MalformedAccount",
    "AccountNotFound",
    "ChainCycleError",
    "TransactionError",
    "InsufficientFunds",
    "TransactionRejected",
    "ConfirmationTimeout",
    "UnsupportedLoginMethod",
]
