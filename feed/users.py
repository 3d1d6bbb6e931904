"""User accounts: ban state, creator chain, and login."""

import logging
from typing import Any

import httpx

from feed._http import AsyncHTTPClient
from feed.codec import USER_ACCOUNT_SIZE, UserAccount, decode_user
from feed.exceptions import AccountNotFound
from feed.keys import Keypair, PublicKey
from feed.ledger import LedgerConnection

logger = logging.getLogger(__name__)


async def get_user(connection: LedgerConnection, user: PublicKey) -> UserAccount:
    """Read and decode a user account.

    Raises:
        AccountNotFound: If the user never registered.
        MalformedAccount: If the account data does not decode.
    """
    info = await connection.get_account_info(user)
    if info is None:
        raise AccountNotFound(user)
    return decode_user(info.data, pubkey=user)


async def is_banned(connection: LedgerConnection, user: PublicKey) -> bool:
    """Check if a user has been banned.

    A ban is permanent, so once this returns True it keeps returning True.
    """
    return (await get_user(connection, user)).banned


async def ban_authority_chain(
    connection: LedgerConnection,
    user: PublicKey,
    max_depth: int = 16,
) -> list[PublicKey]:
    """Follow ``creator`` links upward from ``user``.

    The result lists the accounts that vouched for ``user``, nearest first;
    these are the accounts whose posts may carry a ban against it. The walk
    stops at the sentinel, a self-created root, a repeat, a missing account,
    or ``max_depth`` links.

    Raises:
        AccountNotFound: If ``user`` itself does not exist.
    """
    chain: list[PublicKey] = []
    seen = {user}
    current = await get_user(connection, user)
    while len(chain) < max_depth:
        creator = current.creator
        if creator.is_sentinel() or creator in seen:
            break
        chain.append(creator)
        seen.add(creator)
        info = await connection.get_account_info(creator)
        # The first user is anchored on a message account, not a user.
        if info is None or len(info.data) != USER_ACCOUNT_SIZE:
            break
        current = decode_user(info.data, pubkey=creator)
    return chain


async def user_login(
    login_url: str,
    credentials: dict[str, Any],
    transport: httpx.AsyncBaseTransport | None = None,
) -> Keypair:
    """Exchange credentials for the user's signing capability.

    Raises:
        UnreachableEndpoint: If the login endpoint cannot be reached.
        APIError: If the endpoint refuses the login.
        ValueError: If the response does not carry a valid key.
    """
    async with AsyncHTTPClient(transport=transport) as http:
        body = await http.post(login_url, json=credentials)
    if not isinstance(body, dict) or "userAccount" not in body:
        raise ValueError(f"Login response from {login_url} has no userAccount")
    keypair = Keypair.from_hex(body["userAccount"])
    logger.info("Logged in as %s", keypair.public_key)
    return keypair
