"""Unit tests for the instruction model and transaction wire format."""

import struct

import pytest
from nacl.signing import VerifyKey

from feed.keys import Keypair
from feed.transactions import (
    SYSTEM_PROGRAM_ID,
    AccountMeta,
    Instruction,
    SystemProgram,
    Transaction,
    encode_length,
)

BLOCKHASH = "11111111111111111111111111111111"


# =============================================================================
# Compact lengths
# =============================================================================

class TestEncodeLength:
    """Tests for compact-u16 length prefixes."""

    @pytest.mark.parametrize(
        "length,encoded",
        [
            (0, b"\x00"),
            (0x7F, b"\x7f"),
            (0x80, b"\x80\x01"),
            (0x3FFF, b"\xff\x7f"),
            (0x4000, b"\x80\x80\x01"),
            (0xFFFF, b"\xff\xff\x03"),
        ],
    )
    def test_known_encodings(self, length, encoded) -> None:
        assert encode_length(length) == encoded

    def test_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            encode_length(0x10000)


# =============================================================================
# System program
# =============================================================================

class TestSystemProgram:
    """Tests for the create_account instruction."""

    def test_create_account_layout(self) -> None:
        payer, new, owner = Keypair.generate(), Keypair.generate(), Keypair.generate()
        ix = SystemProgram.create_account(payer.public_key, new.public_key, 5000, 97, owner.public_key)

        assert ix.program_id == SYSTEM_PROGRAM_ID
        assert [meta.pubkey for meta in ix.keys] == [payer.public_key, new.public_key]
        assert all(meta.is_signer and meta.is_writable for meta in ix.keys)
        assert ix.data == struct.pack("<IQQ", 0, 5000, 97) + owner.public_key.to_bytes()
        assert len(ix.data) == 52


# =============================================================================
# Transactions
# =============================================================================

class TestTransaction:
    """Tests for account ordering, compilation and signing."""

    def test_account_key_ordering(self) -> None:
        payer, signer_ro, writable, readonly = (Keypair.generate() for _ in range(4))
        program = Keypair.generate().public_key
        ix = Instruction(
            program_id=program,
            keys=(
                AccountMeta(readonly.public_key, is_signer=False, is_writable=False),
                AccountMeta(writable.public_key, is_signer=False),
                AccountMeta(signer_ro.public_key, is_signer=True, is_writable=False),
            ),
        )
        header, keys = Transaction(payer.public_key, [ix]).account_keys()

        assert keys == [
            payer.public_key,
            signer_ro.public_key,
            writable.public_key,
            readonly.public_key,
            program,
        ]
        assert header.num_required_signatures == 2
        assert header.num_readonly_signed_accounts == 1
        assert header.num_readonly_unsigned_accounts == 2

    def test_flags_are_merged_across_instructions(self) -> None:
        payer, account = Keypair.generate(), Keypair.generate()
        program = Keypair.generate().public_key
        transaction = Transaction(payer.public_key).add(
            Instruction(program, (AccountMeta(account.public_key, is_signer=False),)),
            Instruction(program, (AccountMeta(account.public_key, is_signer=True),)),
        )
        header, keys = transaction.account_keys()
        assert keys[:2] == [payer.public_key, account.public_key]
        assert header.num_required_signatures == 2

    def test_sign_produces_verifiable_signatures(self) -> None:
        payer, new = Keypair.generate(), Keypair.generate()
        owner = Keypair.generate().public_key
        transaction = Transaction(
            payer.public_key,
            [SystemProgram.create_account(payer.public_key, new.public_key, 1, 1, owner)],
            recent_blockhash=BLOCKHASH,
        )
        wire = transaction.sign(new, payer)
        message = transaction.serialize_message()

        assert wire[0] == 2
        assert wire[1 + 128:] == message
        VerifyKey(payer.public_key.to_bytes()).verify(message, wire[1:65])
        VerifyKey(new.public_key.to_bytes()).verify(message, wire[65:129])

    def test_message_header_and_instruction_indices(self) -> None:
        payer, new = Keypair.generate(), Keypair.generate()
        owner = Keypair.generate().public_key
        transaction = Transaction(
            payer.public_key,
            [SystemProgram.create_account(payer.public_key, new.public_key, 1, 1, owner)],
            recent_blockhash=BLOCKHASH,
        )
        message = transaction.serialize_message()

        assert message[:3] == bytes([2, 0, 1])
        assert message[3] == 3  # payer, new account, system program
        instructions = message[4 + 3 * 32 + 32:]
        assert instructions[0] == 1
        assert instructions[1] == 2  # system program index
        assert instructions[2:5] == bytes([2, 0, 1])

    def test_missing_signer(self) -> None:
        payer, new = Keypair.generate(), Keypair.generate()
        transaction = Transaction(
            payer.public_key,
            [SystemProgram.create_account(payer.public_key, new.public_key, 1, 1, payer.public_key)],
            recent_blockhash=BLOCKHASH,
        )
        with pytest.raises(ValueError, match="Missing signature"):
            transaction.sign(payer)

    def test_requires_blockhash(self) -> None:
        payer = Keypair.generate()
        transaction = Transaction(
            payer.public_key,
            [Instruction(Keypair.generate().public_key, ())],
        )
        with pytest.raises(ValueError, match="blockhash"):
            transaction.serialize_message()

    def test_requires_instructions(self) -> None:
        transaction = Transaction(Keypair.generate().public_key, recent_blockhash=BLOCKHASH)
        with pytest.raises(ValueError, match="instructions"):
            transaction.serialize_message()
