"""Binary layouts of the feed program's accounts.

Message account::

    [next_message: 32][from: 32][creator: 32, ban-capable layout only][text\\0]

User account::

    [banned: 1][creator: 32]

Pointer fields are raw public key bytes; there are no numeric fields that
need endianness handling. The client only ever writes the message text (as
the post instruction payload); every other field is filled in by the
program.
"""

from enum import Enum

from pydantic import BaseModel

from feed.exceptions import MalformedAccount
from feed.keys import PUBLIC_KEY_LENGTH, SENTINEL, PublicKey

TEXT_TERMINATOR = b"\x00"
USER_ACCOUNT_SIZE = 1 + PUBLIC_KEY_LENGTH


class MessageLayout(str, Enum):
    """Message account layout used by a deployment.

    A deployment picks exactly one. The variants cannot be told apart from
    the byte length of an account, so they are never auto-detected.
    """

    BASIC = "basic"
    BAN_CAPABLE = "ban_capable"

    @property
    def prefix_size(self) -> int:
        """Width of the fixed pointer fields that precede the text."""
        if self is MessageLayout.BAN_CAPABLE:
            return 3 * PUBLIC_KEY_LENGTH
        return 2 * PUBLIC_KEY_LENGTH


DEFAULT_LAYOUT = MessageLayout.BAN_CAPABLE


class MessageAccount(BaseModel):
    """Decoded contents of a message account.

    Attributes:
        next_message: Successor in the chain, or the sentinel.
        from_user: The authoring user account.
        creator: The author's creator (ban-capable layout only).
        text: The message text.
    """

    next_message: PublicKey
    from_user: PublicKey
    creator: PublicKey | None = None
    text: str

    class Config:
        arbitrary_types_allowed = True
        frozen = True


class UserAccount(BaseModel):
    """Decoded contents of a user account.

    Attributes:
        banned: Whether the user has been banned.
        creator: The user account that vouched for this user.
    """

    banned: bool
    creator: PublicKey

    class Config:
        arbitrary_types_allowed = True
        frozen = True


def encode_text(text: str) -> bytes:
    """Serialize message text as the post instruction payload."""
    return text.encode("utf-8")


def message_account_size(text: str, layout: MessageLayout = DEFAULT_LAYOUT) -> int:
    """Exact byte size to allocate for a message account holding ``text``."""
    return layout.prefix_size + len(encode_text(text)) + len(TEXT_TERMINATOR)


def decode_message(
    data: bytes,
    layout: MessageLayout = DEFAULT_LAYOUT,
    pubkey: PublicKey | None = None,
) -> MessageAccount:
    """Decode a message account.

    Args:
        data: Raw account data.
        layout: The deployment's message layout.
        pubkey: The account address, used only for error context.

    Raises:
        MalformedAccount: If the data is shorter than the fixed fields, the
            text is not null-terminated, or the text is not valid UTF-8.
    """
    data = bytes(data)
    prefix = layout.prefix_size
    if len(data) < prefix:
        raise MalformedAccount(
            f"message data is {len(data)} bytes, expected at least {prefix}",
            pubkey=pubkey,
        )

    terminator = data.find(TEXT_TERMINATOR, prefix)
    if terminator < 0:
        raise MalformedAccount("message text is not null-terminated", pubkey=pubkey)
    try:
        text = data[prefix:terminator].decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedAccount(f"message text is not valid UTF-8: {e}", pubkey=pubkey) from e

    creator = None
    if layout is MessageLayout.BAN_CAPABLE:
        creator = PublicKey(data[2 * PUBLIC_KEY_LENGTH:3 * PUBLIC_KEY_LENGTH])

    return MessageAccount(
        next_message=PublicKey(data[:PUBLIC_KEY_LENGTH]),
        from_user=PublicKey(data[PUBLIC_KEY_LENGTH:2 * PUBLIC_KEY_LENGTH]),
        creator=creator,
        text=text,
    )


def encode_message(
    message: MessageAccount,
    layout: MessageLayout = DEFAULT_LAYOUT,
) -> bytes:
    """Produce the full account image of a message.

    On the ledger this image is written by the feed program; the client uses
    it for local fixtures and tooling.
    """
    parts = [message.next_message.to_bytes(), message.from_user.to_bytes()]
    if layout is MessageLayout.BAN_CAPABLE:
        parts.append((message.creator or SENTINEL).to_bytes())
    parts.append(encode_text(message.text))
    parts.append(TEXT_TERMINATOR)
    return b"".join(parts)


def decode_user(data: bytes, pubkey: PublicKey | None = None) -> UserAccount:
    """Decode a user account.

    Raises:
        MalformedAccount: If the data is shorter than the user layout.
    """
    data = bytes(data)
    if len(data) < USER_ACCOUNT_SIZE:
        raise MalformedAccount(
            f"user data is {len(data)} bytes, expected {USER_ACCOUNT_SIZE}",
            pubkey=pubkey,
        )
    return UserAccount(
        banned=data[0] != 0,
        creator=PublicKey(data[1:USER_ACCOUNT_SIZE]),
    )


def encode_user(user: UserAccount) -> bytes:
    """Produce the full account image of a user."""
    return bytes([1 if user.banned else 0]) + user.creator.to_bytes()
