"""Feed controller and user registry for the HTTP front door.

The controller owns the feed's bootstrap state: once a program id is
configured it posts the very first message (registering the first user in
the same transaction) and remembers the message key pair, which later
anchors every user registration.
"""

import asyncio
import logging
from dataclasses import dataclass

from feed.codec import DEFAULT_LAYOUT, MessageLayout
from feed.composer import create_user, post_message_with_program_id
from feed.exceptions import MessageFeedError
from feed.funding import Funder
from feed.keys import Keypair, PublicKey
from feed.ledger import LedgerConnection

logger = logging.getLogger(__name__)

FIRST_MESSAGE_TEXT = "Welcome to the message feed"


@dataclass(frozen=True)
class FeedState:
    """Bootstrap state of a ready feed.

    Attributes:
        program_id: The feed program.
        first_message: Key pair of the first message; anchors new users.
        first_user: The user that posted the first message.
    """

    program_id: PublicKey
    first_message: Keypair
    first_user: Keypair


class MessageFeedController:
    """Creates the feed on first use and hands out its bootstrap state."""

    def __init__(
        self,
        connection: LedgerConnection,
        program_id: PublicKey | None,
        layout: MessageLayout = DEFAULT_LAYOUT,
        funder: Funder | None = None,
    ) -> None:
        self.connection = connection
        self.program_id = program_id
        self.layout = layout
        self._funder = funder
        self._state: FeedState | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> FeedState | None:
        return self._state

    async def check_message_feed(self) -> FeedState | None:
        """Return the feed state, creating the first message if needed.

        Returns None while the feed is not ready: no program is configured
        yet, or creating the first message failed (the failure is logged and
        retried on the next call).
        """
        if self._state is not None:
            return self._state
        if self.program_id is None:
            logger.info("No feed program configured yet")
            return None

        async with self._lock:
            if self._state is None:
                try:
                    self._state = await self._create_feed(self.program_id)
                except MessageFeedError:
                    logger.exception("Failed to create the first message")
                    return None
        return self._state

    async def _create_feed(self, program_id: PublicKey) -> FeedState:
        message = Keypair.generate()
        receipt = await post_message_with_program_id(
            self.connection,
            program_id,
            None,
            message,
            FIRST_MESSAGE_TEXT,
            layout=self.layout,
            funder=self._funder,
        )
        logger.info("First message is %s", receipt.message)
        return FeedState(program_id=program_id, first_message=message, first_user=receipt.user)

    async def create_user(self) -> Keypair:
        """Register a new user anchored on the first message.

        Raises:
            RuntimeError: If the feed is not ready.
        """
        state = self._state
        if state is None:
            raise RuntimeError("Message feed is still loading")
        return await create_user(
            self.connection,
            state.program_id,
            state.first_message,
            funder=self._funder,
        )


class UserRegistry:
    """Process-lifetime mapping of login ids to user key pairs."""

    def __init__(self) -> None:
        self._users: dict[str, Keypair] = {}

    def get(self, user_id: str) -> Keypair | None:
        return self._users.get(user_id)

    def add(self, user_id: str, keypair: Keypair) -> Keypair:
        """Record ``keypair`` for ``user_id`` unless one is already recorded.

        Returns:
            The key pair now registered for ``user_id``; the earlier one
            when a concurrent login got there first.
        """
        existing = self._users.setdefault(user_id, keypair)
        if existing is not keypair:
            logger.info("User %s was registered concurrently; keeping %s", user_id, existing.public_key)
        return existing

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._users

    def __len__(self) -> int:
        return len(self._users)
