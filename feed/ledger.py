"""Ledger RPC boundary.

The feed core only needs a handful of ledger operations: read an account,
price an allocation, fund a fresh key, and submit a transaction and wait
for it to land. ``LedgerConnection`` names that surface;
``RpcLedgerConnection`` implements it against a Solana JSON-RPC node.
"""

import asyncio
import base64
import itertools
import logging
import time
from typing import Any, Protocol, Sequence

import httpx
from pydantic import BaseModel, field_validator

from feed._http import AsyncHTTPClient
from feed.exceptions import APIError, ConfirmationTimeout, RpcError, TransactionRejected, UnreachableEndpoint
from feed.keys import Keypair, PublicKey
from feed.transactions import Instruction, Transaction

logger = logging.getLogger(__name__)

Commitment = str

# Ordered from weakest to strongest.
_COMMITMENT_LEVELS = ("processed", "confirmed", "finalized")


class AccountInfo(BaseModel):
    """An account as read back from the ledger.

    Attributes:
        data: Raw account data.
        owner: Program that owns the account.
        lamports: Account balance.
        executable: Whether the account holds a program.
    """

    data: bytes
    owner: PublicKey
    lamports: int = 0
    executable: bool = False

    class Config:
        arbitrary_types_allowed = True

    @field_validator("owner", mode="before")
    @classmethod
    def parse_owner(cls, v: Any) -> PublicKey:
        return v if isinstance(v, PublicKey) else PublicKey(v)


class LedgerConnection(Protocol):
    """The operations the feed core performs against a ledger."""

    async def get_account_info(self, pubkey: PublicKey) -> AccountInfo | None:
        """Return the account at ``pubkey``, or None if it does not exist."""
        ...

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        """Lamports an account of ``size`` bytes needs to persist."""
        ...

    async def request_airdrop(self, pubkey: PublicKey, lamports: int) -> str:
        """Ask the cluster faucet to credit ``pubkey``; returns a signature."""
        ...

    async def confirm_transaction(self, signature: str) -> None:
        """Wait until ``signature`` is confirmed."""
        ...

    async def send_and_confirm_transaction(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair],
    ) -> str:
        """Submit one atomic transaction and wait for confirmation.

        The first signer pays the fee.
        """
        ...


class RpcLedgerConnection:
    """``LedgerConnection`` backed by a Solana JSON-RPC node.

    Attributes:
        url: RPC endpoint URL.
        commitment: Commitment level used for reads and confirmation.
        confirm_timeout: Seconds to wait for a transaction to confirm.
        confirm_poll_interval: Seconds between signature status checks.
    """

    def __init__(
        self,
        url: str,
        commitment: Commitment = "confirmed",
        confirm_timeout: float = 30.0,
        confirm_poll_interval: float = 0.5,
        timeout: float = 30.0,
        retry_enabled: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if commitment not in _COMMITMENT_LEVELS:
            raise ValueError(f"Unknown commitment level: {commitment}")
        self.url = url
        self.commitment = commitment
        self.confirm_timeout = confirm_timeout
        self.confirm_poll_interval = confirm_poll_interval
        self._http = AsyncHTTPClient(
            base_url=url,
            timeout=timeout,
            retry_enabled=retry_enabled,
            transport=transport,
        )
        self._ids = itertools.count(1)

    async def close(self) -> None:
        await self._http.close()

    async def __aenter__(self) -> "RpcLedgerConnection":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _rpc(self, method: str, params: list[Any] | None = None) -> Any:
        """Perform one JSON-RPC call and return its ``result``.

        Raises:
            RpcError: If the node answers with an error object.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        body = await self._http.post("", json=payload)
        if not isinstance(body, dict):
            raise RpcError("Response is not a JSON-RPC object", method=method)
        error = body.get("error")
        if error:
            raise RpcError(
                error.get("message", str(error)),
                method=method,
                code=error.get("code"),
                data=error.get("data"),
            )
        return body.get("result")

    async def get_account_info(self, pubkey: PublicKey) -> AccountInfo | None:
        result = await self._rpc(
            "getAccountInfo",
            [str(pubkey), {"encoding": "base64", "commitment": self.commitment}],
        )
        value = result.get("value") if result else None
        if value is None:
            return None
        encoded, _encoding = value["data"]
        return AccountInfo(
            data=base64.b64decode(encoded),
            owner=value["owner"],
            lamports=value.get("lamports", 0),
            executable=value.get("executable", False),
        )

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        return int(await self._rpc("getMinimumBalanceForRentExemption", [size]))

    async def get_latest_blockhash(self) -> str:
        result = await self._rpc("getLatestBlockhash", [{"commitment": self.commitment}])
        return result["value"]["blockhash"]

    async def request_airdrop(self, pubkey: PublicKey, lamports: int) -> str:
        return await self._rpc(
            "requestAirdrop",
            [str(pubkey), lamports, {"commitment": self.commitment}],
        )

    async def get_signature_status(self, signature: str) -> dict[str, Any] | None:
        result = await self._rpc(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": False}],
        )
        statuses = result.get("value") or [None]
        return statuses[0]

    async def send_transaction(self, wire: bytes) -> str:
        """Submit signed wire bytes without waiting for confirmation.

        Raises:
            TransactionRejected: If the node refuses the transaction,
                including a failed preflight simulation.
        """
        try:
            return await self._rpc(
                "sendTransaction",
                [
                    base64.b64encode(wire).decode("ascii"),
                    {"encoding": "base64", "preflightCommitment": self.commitment},
                ],
            )
        except RpcError as e:
            logs = None
            if isinstance(e.data, dict):
                logs = e.data.get("logs")
            raise TransactionRejected(e.message, logs=logs) from e

    async def confirm_transaction(self, signature: str) -> None:
        """Poll signature status until the commitment level is reached.

        A status check that fails counts as not yet confirmed; the
        transaction is already submitted, so only the deadline ends the wait.
        Statuses the node reports that are not known levels count as
        ``processed``.

        Raises:
            TransactionRejected: If the transaction landed with an error.
            ConfirmationTimeout: If it is not confirmed in time.
        """
        wanted = _COMMITMENT_LEVELS.index(self.commitment)
        deadline = time.monotonic() + self.confirm_timeout
        while True:
            try:
                status = await self.get_signature_status(signature)
            except (UnreachableEndpoint, APIError, RpcError) as e:
                logger.warning("Status check for %s failed: %s", signature, e)
                status = None
            if status is not None:
                if status.get("err") is not None:
                    raise TransactionRejected(
                        f"Transaction {signature} failed: {status['err']}",
                        signature=signature,
                    )
                reached = status.get("confirmationStatus")
                if reached not in _COMMITMENT_LEVELS:
                    reached = "processed"
                if _COMMITMENT_LEVELS.index(reached) >= wanted:
                    return
            if time.monotonic() >= deadline:
                raise ConfirmationTimeout(signature, self.confirm_timeout)
            await asyncio.sleep(self.confirm_poll_interval)

    async def send_and_confirm_transaction(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair],
    ) -> str:
        if not signers:
            raise ValueError("A transaction needs at least a fee payer")
        transaction = Transaction(
            fee_payer=signers[0].public_key,
            instructions=list(instructions),
            recent_blockhash=await self.get_latest_blockhash(),
        )
        wire = transaction.sign(*signers)
        signature = await self.send_transaction(wire)
        logger.info("Submitted transaction %s (%d instructions)", signature, len(instructions))
        await self.confirm_transaction(signature)
        return signature
