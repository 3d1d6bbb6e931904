"""In-memory ledger fixtures.

``FakeLedger`` implements the ``LedgerConnection`` surface over a plain dict
of accounts and applies each transaction atomically. It understands the
system program's ``create_account`` and mimics the feed program closely
enough for end-to-end post and refresh tests:

- initialize user ``[user, anchor message]``: the new user's creator is the
  author of the anchor message
- post ``[user, message, previous?, ban?]``: writes the message, links the
  previous tail to it and, when the poster created the target, bans it
"""

import struct
from dataclasses import dataclass

import pytest

from feed.codec import (
    DEFAULT_LAYOUT,
    USER_ACCOUNT_SIZE,
    MessageAccount,
    MessageLayout,
    UserAccount,
    decode_message,
    decode_user,
    encode_message,
    encode_user,
    message_account_size,
)
from feed.exceptions import RpcError, TransactionRejected
from feed.keys import SENTINEL, Keypair, PublicKey
from feed.ledger import AccountInfo
from feed.transactions import SYSTEM_PROGRAM_ID, Instruction


@dataclass
class Submission:
    """One transaction handed to the fake ledger."""

    instructions: list[Instruction]
    signers: list[Keypair]

    @property
    def fee_payer(self) -> PublicKey:
        return self.signers[0].public_key


class FakeLedger:
    """A ``LedgerConnection`` that keeps every account in memory.

    Attributes:
        accounts: Committed accounts by address.
        submissions: Every transaction submitted, including rejected ones.
        airdrops: ``(pubkey, lamports)`` for every airdrop request.
        reads: Addresses passed to ``get_account_info``, in order.
        reject_with: When set, the next submission is rejected with this
            message and nothing is applied.
        airdrop_fails: Refuse every airdrop request.
    """

    def __init__(self, layout: MessageLayout = DEFAULT_LAYOUT) -> None:
        self.layout = layout
        self.accounts: dict[PublicKey, AccountInfo] = {}
        self.submissions: list[Submission] = []
        self.airdrops: list[tuple[PublicKey, int]] = []
        self.reads: list[PublicKey] = []
        self.reject_with: str | None = None
        self.airdrop_fails = False
        self._initialized: set[PublicKey] = set()

    # -- LedgerConnection ---------------------------------------------------

    async def get_account_info(self, pubkey: PublicKey) -> AccountInfo | None:
        self.reads.append(pubkey)
        return self.accounts.get(pubkey)

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        return 890_880 + size * 6_960

    async def request_airdrop(self, pubkey: PublicKey, lamports: int) -> str:
        if self.airdrop_fails:
            raise RpcError("airdrop request failed", method="requestAirdrop", code=-32600)
        self.airdrops.append((pubkey, lamports))
        return f"airdrop-{len(self.airdrops)}"

    async def confirm_transaction(self, signature: str) -> None:
        return None

    async def send_and_confirm_transaction(self, instructions, signers) -> str:
        self.submissions.append(Submission(list(instructions), list(signers)))
        if self.reject_with is not None:
            message, self.reject_with = self.reject_with, None
            raise TransactionRejected(message)

        signed = {signer.public_key for signer in signers}
        accounts = dict(self.accounts)
        initialized = set(self._initialized)
        for instruction in instructions:
            missing = [key for key in instruction.signers if key not in signed]
            if missing:
                raise TransactionRejected(f"missing signature for {missing[0]}")
            if instruction.program_id == SYSTEM_PROGRAM_ID:
                self._create_account(accounts, instruction)
            else:
                self._run_feed_program(accounts, initialized, instruction)

        self.accounts = accounts
        self._initialized = initialized
        return f"sig-{len(self.submissions)}"

    # -- Seeding helpers ----------------------------------------------------

    def put_message(
        self,
        pubkey: PublicKey,
        message: MessageAccount,
        owner: PublicKey,
    ) -> None:
        self.accounts[pubkey] = AccountInfo(
            data=encode_message(message, self.layout),
            owner=owner,
        )

    def put_user(self, pubkey: PublicKey, user: UserAccount, owner: PublicKey) -> None:
        self.accounts[pubkey] = AccountInfo(data=encode_user(user), owner=owner)
        self._initialized.add(pubkey)

    def put_raw(self, pubkey: PublicKey, data: bytes, owner: PublicKey) -> None:
        self.accounts[pubkey] = AccountInfo(data=data, owner=owner)

    # -- Program simulation -------------------------------------------------

    def _create_account(self, accounts: dict, instruction: Instruction) -> None:
        _, lamports, space = struct.unpack("<IQQ", instruction.data[:20])
        owner = PublicKey(instruction.data[20:52])
        new_account = instruction.keys[1].pubkey
        if new_account in accounts:
            raise TransactionRejected(f"account {new_account} already in use")
        accounts[new_account] = AccountInfo(data=bytes(space), owner=owner, lamports=lamports)

    def _run_feed_program(
        self,
        accounts: dict,
        initialized: set,
        instruction: Instruction,
    ) -> None:
        program_id = instruction.program_id
        keys = [meta.pubkey for meta in instruction.keys]
        user = keys[0]
        user_info = accounts.get(user)
        if user_info is None or user_info.owner != program_id or len(user_info.data) != USER_ACCOUNT_SIZE:
            raise TransactionRejected(f"{user} is not a user account")

        if user not in initialized:
            self._initialize_user(accounts, initialized, program_id, user, keys[1])
        else:
            self._post(accounts, program_id, keys, instruction.data)

    def _initialize_user(self, accounts, initialized, program_id, user, anchor) -> None:
        anchor_info = accounts.get(anchor)
        if anchor_info is None or anchor_info.owner != program_id:
            raise TransactionRejected(f"{anchor} is not a message account")
        creator = PublicKey(anchor_info.data[32:64])
        accounts[user] = AccountInfo(
            data=encode_user(UserAccount(banned=False, creator=creator)),
            owner=program_id,
            lamports=accounts[user].lamports,
        )
        initialized.add(user)

    def _post(self, accounts, program_id, keys, data: bytes) -> None:
        user = keys[0]
        author = decode_user(accounts[user].data)
        if author.banned:
            raise TransactionRejected(f"{user} is banned")

        message = keys[1]
        info = accounts.get(message)
        text = data.decode("utf-8")
        if info is None or info.owner != program_id or any(info.data):
            raise TransactionRejected(f"{message} is not a fresh message account")
        if len(info.data) < message_account_size(text, self.layout):
            raise TransactionRejected(f"{message} is too small for its text")

        image = encode_message(
            MessageAccount(
                next_message=SENTINEL,
                from_user=user,
                creator=author.creator,
                text=text,
            ),
            self.layout,
        )
        accounts[message] = AccountInfo(
            data=image + bytes(len(info.data) - len(image)),
            owner=program_id,
            lamports=info.lamports,
        )

        if len(keys) > 2:
            previous = keys[2]
            previous_info = accounts.get(previous)
            if previous_info is None:
                raise TransactionRejected(f"{previous} does not exist")
            tail = decode_message(previous_info.data, self.layout)
            if not tail.next_message.is_sentinel():
                raise TransactionRejected(f"{previous} is not the tail of the feed")
            accounts[previous] = AccountInfo(
                data=message.to_bytes() + previous_info.data[32:],
                owner=previous_info.owner,
                lamports=previous_info.lamports,
            )

        if len(keys) > 3:
            target = keys[3]
            target_info = accounts.get(target)
            if target_info is None:
                raise TransactionRejected(f"{target} does not exist")
            target_user = decode_user(target_info.data)
            if target_user.creator != user:
                raise TransactionRejected(f"{user} has no authority to ban {target}")
            accounts[target] = AccountInfo(
                data=encode_user(UserAccount(banned=True, creator=target_user.creator)),
                owner=target_info.owner,
                lamports=target_info.lamports,
            )


@pytest.fixture
def ledger() -> FakeLedger:
    """Provide an empty in-memory ledger."""
    return FakeLedger()


@pytest.fixture
def program_id() -> PublicKey:
    """Provide a fresh feed program id."""
    return Keypair.generate().public_key
