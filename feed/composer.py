"""Transaction composer for feed protocol actions.

Each protocol action becomes exactly one atomic transaction. A transaction
is described as a ``TransactionPlan``: an ordered list of named steps, each
expanding to one or more ledger instructions, together with the key pairs
that must sign. Account order and signer flags follow what the feed
program expects:

- allocate message: system ``create_account`` for the new message account
- create user: system ``create_account`` for the user account, then the
  program's initialize instruction ``[user (signer), anchor message (signer)]``
- post message: ``[user (signer), message (signer), previous message?,
  user to ban?]`` with the text as payload

The program id is always passed in explicitly; ``post_message`` discovers
it from the owner of the previous message.
"""

import logging
from dataclasses import dataclass, field

from feed.codec import DEFAULT_LAYOUT, USER_ACCOUNT_SIZE, MessageLayout, encode_text, message_account_size
from feed.exceptions import InsufficientFunds, TransactionError
from feed.funding import Funder, airdrop_funder
from feed.keys import Keypair, PublicKey
from feed.ledger import LedgerConnection
from feed.sync import read_message
from feed.transactions import AccountMeta, Instruction, SystemProgram

logger = logging.getLogger(__name__)

# Fixed per-transaction fee budget added on top of allocation rent.
TRANSACTION_FEE_LAMPORTS = 100


@dataclass
class PlanStep:
    """One protocol-level action inside a transaction."""

    name: str
    instructions: list[Instruction]


@dataclass
class TransactionPlan:
    """An atomic transaction, grouped by protocol action.

    Attributes:
        operation: Name of the protocol action, used in errors and logs.
        steps: Actions in execution order.
        signers: Key pairs that must sign; the first one pays the fee.
    """

    operation: str
    steps: list[PlanStep] = field(default_factory=list)
    signers: list[Keypair] = field(default_factory=list)

    @property
    def instructions(self) -> list[Instruction]:
        return [ix for step in self.steps for ix in step.instructions]

    def step(self, name: str) -> PlanStep:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(name)


@dataclass
class PostReceipt:
    """Outcome of a confirmed message post.

    Attributes:
        signature: Transaction signature.
        message: Address of the new message account.
        user: The posting user; freshly created when the post registered one.
    """

    signature: str
    message: PublicKey
    user: Keypair


def allocate_message_step(
    program_id: PublicKey,
    payer: Keypair,
    message_account: Keypair,
    text: str,
    lamports: int,
    layout: MessageLayout = DEFAULT_LAYOUT,
) -> PlanStep:
    return PlanStep("allocate_message", [
        SystemProgram.create_account(
            payer.public_key,
            message_account.public_key,
            lamports,
            message_account_size(text, layout),
            program_id,
        ),
    ])


def create_user_step(
    program_id: PublicKey,
    payer: Keypair,
    user: Keypair,
    anchor_message: Keypair,
    lamports: int,
) -> PlanStep:
    initialize = Instruction(
        program_id=program_id,
        keys=(
            AccountMeta(user.public_key, is_signer=True),
            AccountMeta(anchor_message.public_key, is_signer=True),
        ),
    )
    return PlanStep("create_user", [
        SystemProgram.create_account(
            payer.public_key,
            user.public_key,
            lamports,
            USER_ACCOUNT_SIZE,
            program_id,
        ),
        initialize,
    ])


def post_message_step(
    program_id: PublicKey,
    user: Keypair,
    message_account: Keypair,
    text: str,
    previous_message: PublicKey | None = None,
    user_to_ban: PublicKey | None = None,
) -> PlanStep:
    """Build the post instruction.

    Raises:
        ValueError: If a ban is requested without a previous message; the
            program only accepts a ban target after the link reference.
    """
    if user_to_ban is not None and previous_message is None:
        raise ValueError("A ban must be chained after a previous message reference")

    keys = [
        AccountMeta(user.public_key, is_signer=True),
        AccountMeta(message_account.public_key, is_signer=True),
    ]
    if previous_message is not None:
        keys.append(AccountMeta(previous_message, is_signer=False))
        if user_to_ban is not None:
            keys.append(AccountMeta(user_to_ban, is_signer=False))

    return PlanStep("post_message", [
        Instruction(program_id=program_id, keys=tuple(keys), data=encode_text(text)),
    ])


def plan_create_user(
    program_id: PublicKey,
    payer: Keypair,
    user: Keypair,
    anchor_message: Keypair,
    user_lamports: int,
) -> TransactionPlan:
    return TransactionPlan(
        operation="create_user",
        steps=[create_user_step(program_id, payer, user, anchor_message, user_lamports)],
        signers=[payer, user, anchor_message],
    )


def plan_post_message(
    program_id: PublicKey,
    payer: Keypair,
    user: Keypair,
    message_account: Keypair,
    text: str,
    message_lamports: int,
    previous_message: PublicKey | None = None,
    user_to_ban: PublicKey | None = None,
    new_user_lamports: int | None = None,
    layout: MessageLayout = DEFAULT_LAYOUT,
) -> TransactionPlan:
    """Plan a post, registering ``user`` in the same transaction when
    ``new_user_lamports`` is given."""
    steps = [allocate_message_step(program_id, payer, message_account, text, message_lamports, layout)]
    if new_user_lamports is not None:
        steps.append(create_user_step(program_id, payer, user, message_account, new_user_lamports))
    steps.append(post_message_step(program_id, user, message_account, text, previous_message, user_to_ban))
    return TransactionPlan(
        operation="post_message",
        steps=steps,
        signers=[payer, user, message_account],
    )


async def _fund(fund: Funder, lamports: int, operation: str) -> Keypair:
    try:
        return await fund(lamports)
    except InsufficientFunds as e:
        if e.operation is None:
            e.operation = operation
        raise
    except Exception as e:
        raise InsufficientFunds(lamports, cause=e, operation=operation) from e


async def _submit(connection: LedgerConnection, plan: TransactionPlan) -> str:
    try:
        return await connection.send_and_confirm_transaction(plan.instructions, plan.signers)
    except TransactionError as e:
        if e.operation is None:
            e.operation = plan.operation
        raise


async def create_user(
    connection: LedgerConnection,
    program_id: PublicKey,
    anchor_message: Keypair,
    funder: Funder | None = None,
) -> Keypair:
    """Register a new user anchored on a message account.

    The anchor message account must sign, so the caller needs its key pair.

    Returns:
        The new user's key pair.

    Raises:
        InsufficientFunds: If no payer could be funded.
        TransactionRejected: If the program refuses the registration, for
            example because the user account already exists.
        ConfirmationTimeout: If confirmation does not arrive in time.
    """
    fund = funder or airdrop_funder(connection)
    user = Keypair.generate()
    user_lamports = await connection.get_minimum_balance_for_rent_exemption(USER_ACCOUNT_SIZE)
    payer = await _fund(fund, user_lamports + TRANSACTION_FEE_LAMPORTS, "create_user")

    plan = plan_create_user(program_id, payer, user, anchor_message, user_lamports)
    signature = await _submit(connection, plan)
    logger.info("Created user %s (%s)", user.public_key, signature)
    return user


async def post_message_with_program_id(
    connection: LedgerConnection,
    program_id: PublicKey,
    user: Keypair | None,
    message_account: Keypair,
    text: str,
    previous_message: PublicKey | None = None,
    user_to_ban: PublicKey | None = None,
    layout: MessageLayout = DEFAULT_LAYOUT,
    funder: Funder | None = None,
) -> PostReceipt:
    """Post ``text`` into a new message account.

    Args:
        connection: Ledger to submit to.
        program_id: The feed program.
        user: The posting user, or None to register a new user anchored on
            the new message within the same transaction.
        message_account: Key pair for the new message account.
        text: Message text.
        previous_message: The current tail of the feed, which the program
            links to the new message. None only for the very first message.
        user_to_ban: Optional user to ban; requires ``previous_message``.
        layout: The deployment's message layout, used for sizing.
        funder: Funding collaborator; defaults to an airdrop.

    Raises:
        InsufficientFunds: If no payer could be funded. Nothing is submitted.
        TransactionRejected: If the program refuses the post (stale tail,
            ban without authority, banned author).
        ConfirmationTimeout: If confirmation does not arrive in time.
    """
    fund = funder or airdrop_funder(connection)
    new_user = user is None
    if user is None:
        user = Keypair.generate()

    message_lamports = await connection.get_minimum_balance_for_rent_exemption(
        message_account_size(text, layout)
    )
    new_user_lamports = None
    total = message_lamports + TRANSACTION_FEE_LAMPORTS
    if new_user:
        new_user_lamports = await connection.get_minimum_balance_for_rent_exemption(USER_ACCOUNT_SIZE)
        total += new_user_lamports

    payer = await _fund(fund, total, "post_message")

    plan = plan_post_message(
        program_id,
        payer,
        user,
        message_account,
        text,
        message_lamports,
        previous_message=previous_message,
        user_to_ban=user_to_ban,
        new_user_lamports=new_user_lamports,
        layout=layout,
    )
    signature = await _submit(connection, plan)
    logger.info(
        "Posted message %s from %s after %s (%s)",
        message_account.public_key,
        user.public_key,
        previous_message,
        signature,
    )
    return PostReceipt(signature=signature, message=message_account.public_key, user=user)


async def post_message(
    connection: LedgerConnection,
    user: Keypair,
    text: str,
    previous_message: PublicKey,
    user_to_ban: PublicKey | None = None,
    layout: MessageLayout = DEFAULT_LAYOUT,
    funder: Funder | None = None,
) -> PostReceipt:
    """Post a message after ``previous_message`` as an existing user.

    The feed program id is taken from the owner of the previous message.

    Raises:
        AccountNotFound: If ``previous_message`` does not exist.
        MalformedAccount: If it is not a message account.
    """
    previous = await read_message(connection, previous_message, layout)
    return await post_message_with_program_id(
        connection,
        previous.program_id,
        user,
        Keypair.generate(),
        text,
        previous_message=previous_message,
        user_to_ban=user_to_ban,
        layout=layout,
        funder=funder,
    )
