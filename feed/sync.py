"""Feed synchronizer.

The feed is a singly-linked list of message accounts. The tail's
``next_message`` is the sentinel until the next post links it, so a
message read earlier may have gained a successor since. Every traversal
step is therefore a fresh read; pointer fields are never cached.
"""

import logging
from typing import Callable

from pydantic import BaseModel

from feed.codec import DEFAULT_LAYOUT, MessageLayout, decode_message
from feed.exceptions import AccountNotFound, ChainCycleError
from feed.keys import PublicKey
from feed.ledger import LedgerConnection
from feed.names import fallback_name, public_key_to_name

logger = logging.getLogger(__name__)

NameResolver = Callable[[PublicKey], str]


class MessageData(BaseModel):
    """A message account together with the program that owns it.

    Attributes:
        pubkey: Address of the message account.
        program_id: Owning program, as recorded by the ledger.
        next_message: Successor in the chain, or the sentinel.
        from_user: The authoring user account.
        creator: The author's creator (ban-capable layout only).
        text: The message text.
    """

    pubkey: PublicKey
    program_id: PublicKey
    next_message: PublicKey
    from_user: PublicKey
    creator: PublicKey | None = None
    text: str

    class Config:
        arbitrary_types_allowed = True


class FeedEntry(BaseModel):
    """One message in a local feed view.

    Attributes:
        public_key: Address of the message account.
        from_user: The authoring user account.
        name: Display name of the author.
        text: The message text.
    """

    public_key: PublicKey
    from_user: PublicKey
    name: str
    text: str

    class Config:
        arbitrary_types_allowed = True


async def read_message(
    connection: LedgerConnection,
    pubkey: PublicKey,
    layout: MessageLayout = DEFAULT_LAYOUT,
) -> MessageData:
    """Read and decode one message account.

    Raises:
        AccountNotFound: If there is no account at ``pubkey``.
        MalformedAccount: If the account data does not decode.
    """
    info = await connection.get_account_info(pubkey)
    if info is None:
        raise AccountNotFound(pubkey)
    message = decode_message(info.data, layout, pubkey=pubkey)
    return MessageData(
        pubkey=pubkey,
        program_id=info.owner,
        next_message=message.next_message,
        from_user=message.from_user,
        creator=message.creator,
        text=message.text,
    )


def _display_name(resolver: NameResolver, pubkey: PublicKey) -> str:
    try:
        return resolver(pubkey)
    except Exception:
        logger.warning("Could not resolve a display name for %s", pubkey, exc_info=True)
        return fallback_name(pubkey)


async def refresh_message_feed(
    connection: LedgerConnection,
    messages: list[FeedEntry],
    on_new_message: Callable[[FeedEntry], None] | None = None,
    start_from: PublicKey | None = None,
    layout: MessageLayout = DEFAULT_LAYOUT,
    name_resolver: NameResolver = public_key_to_name,
) -> int:
    """Append every message the feed gained since ``messages`` was last synced.

    Args:
        connection: Ledger to read from.
        messages: Caller-owned view; only ever appended to. Callers must
            not run two refreshes on the same view concurrently.
        on_new_message: Called with each entry right after it is appended.
        start_from: Message to start at. When omitted, resume after the
            last entry of ``messages``; with an empty view this is a no-op.
            A start point that is already in the view also resumes after
            the last entry, so entries are never duplicated.
        layout: The deployment's message layout.
        name_resolver: Maps author identities to display names. Failures
            fall back to a shortened identity.

    Returns:
        The number of entries appended.

    Raises:
        AccountNotFound: If a linked message has no account.
        MalformedAccount: If a message fails to decode.
        ChainCycleError: If a pointer repeats.
    """
    seen = {entry.public_key for entry in messages}

    message = start_from
    if message is not None and message in seen:
        # The view is a contiguous prefix, so everything after an already
        # known start point is either in the view or after its last entry.
        message = None
    if message is None:
        if not messages:
            return 0
        last = await read_message(connection, messages[-1].public_key, layout)
        message = last.next_message

    appended = 0
    while not message.is_sentinel():
        if message in seen:
            raise ChainCycleError(message)
        seen.add(message)

        logger.debug("Loading message %s", message)
        data = await read_message(connection, message, layout)
        entry = FeedEntry(
            public_key=message,
            from_user=data.from_user,
            name=_display_name(name_resolver, data.from_user),
            text=data.text,
        )
        messages.append(entry)
        appended += 1
        if on_new_message is not None:
            on_new_message(entry)
        message = data.next_message

    return appended
