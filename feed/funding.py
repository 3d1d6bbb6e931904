"""Funding collaborator: produce a freshly funded payer.

Each compound operation funds its own payer, so concurrent posts never
contend over one balance.
"""

import logging
from typing import Awaitable, Callable

from feed.exceptions import InsufficientFunds, MessageFeedError
from feed.keys import Keypair
from feed.ledger import LedgerConnection

logger = logging.getLogger(__name__)

# Signature: (minimum_lamports) -> funded key pair
Funder = Callable[[int], Awaitable[Keypair]]


async def new_account_with_airdrop(connection: LedgerConnection, lamports: int) -> Keypair:
    """Generate a key pair and fund it from the cluster faucet.

    Raises:
        InsufficientFunds: If the airdrop is refused or never confirms.
    """
    account = Keypair.generate()
    try:
        signature = await connection.request_airdrop(account.public_key, lamports)
        await connection.confirm_transaction(signature)
    except MessageFeedError as e:
        raise InsufficientFunds(lamports, cause=e) from e
    logger.debug("Funded %s with %d lamports", account.public_key, lamports)
    return account


def airdrop_funder(connection: LedgerConnection) -> Funder:
    """Default funder bound to ``connection``."""

    async def fund(lamports: int) -> Keypair:
        return await new_account_with_airdrop(connection, lamports)

    return fund
