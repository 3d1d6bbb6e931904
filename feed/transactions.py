"""Instruction and transaction model.

A transaction is an ordered list of instructions that the ledger applies
atomically. Every account an instruction touches is declared upfront, with
its signer and writable flags, so the runtime can lock them before
execution.

Transactions are serialized in the legacy Solana wire format::

    shortvec(num_signatures) || signatures || message

    message =
        header (3 bytes)
        shortvec(num_keys) || keys
        recent_blockhash (32 bytes)
        shortvec(num_instructions) || compiled instructions
"""

import struct
from dataclasses import dataclass, field

from feed.keys import Keypair, PublicKey

SYSTEM_PROGRAM_ID = PublicKey(bytes(32))
SIGNATURE_LENGTH = 64

_CREATE_ACCOUNT = 0


def encode_length(length: int) -> bytes:
    """Encode a compact-u16 ("shortvec") length prefix."""
    if not 0 <= length <= 0xFFFF:
        raise ValueError(f"Length {length} does not fit in a compact-u16")
    out = bytearray()
    remaining = length
    while True:
        byte = remaining & 0x7F
        remaining >>= 7
        if remaining:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


@dataclass(frozen=True)
class AccountMeta:
    """How an instruction accesses one account."""

    pubkey: PublicKey
    is_signer: bool
    is_writable: bool = True

    def __str__(self) -> str:
        flags = []
        if self.is_signer:
            flags.append("signer")
        if self.is_writable:
            flags.append("writable")
        flag_str = f"({', '.join(flags)})" if flags else "(readonly)"
        return f"{str(self.pubkey)[:8]}...{flag_str}"


@dataclass(frozen=True)
class Instruction:
    """One unit of a transaction: target program, accounts, payload."""

    program_id: PublicKey
    keys: tuple[AccountMeta, ...]
    data: bytes = b""

    @property
    def signers(self) -> list[PublicKey]:
        return [meta.pubkey for meta in self.keys if meta.is_signer]


class SystemProgram:
    """Instructions understood by the ledger's built-in system program."""

    program_id = SYSTEM_PROGRAM_ID

    @staticmethod
    def create_account(
        from_pubkey: PublicKey,
        new_account_pubkey: PublicKey,
        lamports: int,
        space: int,
        owner: PublicKey,
    ) -> Instruction:
        """Allocate ``space`` bytes at a new address owned by ``owner``.

        Both the funding account and the new account must sign.
        """
        data = struct.pack("<IQQ", _CREATE_ACCOUNT, lamports, space) + owner.to_bytes()
        return Instruction(
            program_id=SYSTEM_PROGRAM_ID,
            keys=(
                AccountMeta(from_pubkey, is_signer=True, is_writable=True),
                AccountMeta(new_account_pubkey, is_signer=True, is_writable=True),
            ),
            data=data,
        )


@dataclass(frozen=True)
class MessageHeader:
    num_required_signatures: int
    num_readonly_signed_accounts: int
    num_readonly_unsigned_accounts: int


@dataclass
class Transaction:
    """An unsigned transaction waiting for a blockhash and signatures.

    Attributes:
        fee_payer: The account that pays the transaction fee; always the
            first account key.
        instructions: Instructions in execution order.
        recent_blockhash: Base58 blockhash used for replay protection.
    """

    fee_payer: PublicKey
    instructions: list[Instruction] = field(default_factory=list)
    recent_blockhash: str | None = None

    def add(self, *instructions: Instruction) -> "Transaction":
        self.instructions.extend(instructions)
        return self

    def account_keys(self) -> tuple[MessageHeader, list[PublicKey]]:
        """Order every referenced account the way the runtime expects.

        The fee payer comes first, then signer-writable, signer-readonly,
        writable and readonly accounts, each group in first-seen order.
        Flags of an account referenced more than once are merged.
        """
        metas: dict[PublicKey, list[bool]] = {self.fee_payer: [True, True]}
        for instruction in self.instructions:
            for meta in instruction.keys:
                flags = metas.setdefault(meta.pubkey, [False, False])
                flags[0] = flags[0] or meta.is_signer
                flags[1] = flags[1] or meta.is_writable
            metas.setdefault(instruction.program_id, [False, False])

        groups: list[list[PublicKey]] = [[], [], [], []]
        for pubkey, (is_signer, is_writable) in metas.items():
            if is_signer:
                groups[0 if is_writable else 1].append(pubkey)
            else:
                groups[2 if is_writable else 3].append(pubkey)

        header = MessageHeader(
            num_required_signatures=len(groups[0]) + len(groups[1]),
            num_readonly_signed_accounts=len(groups[1]),
            num_readonly_unsigned_accounts=len(groups[3]),
        )
        return header, [key for group in groups for key in group]

    def serialize_message(self) -> bytes:
        """Compile the message bytes that every signer signs."""
        if self.recent_blockhash is None:
            raise ValueError("Transaction has no recent blockhash")
        if not self.instructions:
            raise ValueError("Transaction has no instructions")

        header, keys = self.account_keys()
        index = {key: i for i, key in enumerate(keys)}

        parts = [
            bytes([
                header.num_required_signatures,
                header.num_readonly_signed_accounts,
                header.num_readonly_unsigned_accounts,
            ]),
            encode_length(len(keys)),
            *(key.to_bytes() for key in keys),
            PublicKey(self.recent_blockhash).to_bytes(),
            encode_length(len(self.instructions)),
        ]
        for instruction in self.instructions:
            parts.append(bytes([index[instruction.program_id]]))
            parts.append(encode_length(len(instruction.keys)))
            parts.append(bytes(index[meta.pubkey] for meta in instruction.keys))
            parts.append(encode_length(len(instruction.data)))
            parts.append(instruction.data)
        return b"".join(parts)

    def sign(self, *signers: Keypair) -> bytes:
        """Sign with every required signer and return the wire bytes.

        Raises:
            ValueError: If a required signer is missing.
        """
        message = self.serialize_message()
        header, keys = self.account_keys()
        by_key = {signer.public_key: signer for signer in signers}

        signatures = []
        for pubkey in keys[:header.num_required_signatures]:
            signer = by_key.get(pubkey)
            if signer is None:
                raise ValueError(f"Missing signature for {pubkey}")
            signatures.append(signer.sign(message))

        return encode_length(len(signatures)) + b"".join(signatures) + message
