"""Bootstrap poller for feed metadata.

The feed backend answers ``GET <configUrl>`` with ``{"loading": true}``
until the feed program is deployed and the first message exists. The
poller asks once a second until it gets a complete answer.
"""

import asyncio
import logging
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError, field_validator

from feed._http import AsyncHTTPClient
from feed.exceptions import APIError, UnreachableEndpoint, UnsupportedLoginMethod
from feed.keys import PublicKey

logger = logging.getLogger(__name__)

# Fixed interval between polls, in seconds.
POLL_INTERVAL = 1.0


class LoginMethod(str, Enum):
    """How users obtain their signing capability."""

    LOCAL = "local"
    GOOGLE = "google"


def parse_login_method(value: Any) -> LoginMethod:
    """Validate a login method name.

    Raises:
        UnsupportedLoginMethod: For anything other than ``local``/``google``.
    """
    if isinstance(value, LoginMethod):
        return value
    try:
        return LoginMethod(value)
    except ValueError:
        raise UnsupportedLoginMethod(value) from None


class FeedMetadata(BaseModel):
    """Everything a client needs to join the feed.

    Attributes:
        first_message: Entry point of the message chain.
        program_id: The feed program.
        login_method: How users log in.
        url: Ledger RPC URL the feed lives on.
        wallet_url: Wallet URL, if the backend advertises one.
    """

    first_message: PublicKey
    program_id: PublicKey
    login_method: LoginMethod
    url: str | None = None
    wallet_url: str | None = None

    class Config:
        arbitrary_types_allowed = True
        frozen = True

    @field_validator("first_message", "program_id", mode="before")
    @classmethod
    def parse_public_key(cls, v: Any) -> PublicKey:
        if isinstance(v, PublicKey):
            return v
        if not isinstance(v, str):
            raise ValueError("expected a base58 or hex identity string")
        return PublicKey(v)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "FeedMetadata":
        """Build metadata from a ready ``config.json`` payload.

        Raises:
            UnsupportedLoginMethod: If the login method is unknown.
            ValidationError: If required fields are missing or malformed.
        """
        return cls(
            first_message=config.get("firstMessage"),
            program_id=config.get("programId"),
            login_method=parse_login_method(config.get("loginMethod") or LoginMethod.LOCAL.value),
            url=config.get("url"),
            wallet_url=config.get("walletUrl"),
        )


async def fetch_config(http: AsyncHTTPClient, config_url: str) -> dict[str, Any]:
    """Fetch the raw config payload once.

    Raises:
        UnreachableEndpoint: If the endpoint cannot be reached.
        APIError: If the endpoint answers with an error status.
        ValueError: If the body is not a JSON object.
    """
    config = await http.get(config_url)
    if not isinstance(config, dict):
        raise ValueError(f"Config from {config_url} is not a JSON object")
    return config


async def resolve_feed_metadata(
    config_url: str,
    poll_interval: float = POLL_INTERVAL,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FeedMetadata:
    """Poll ``config_url`` until the feed reports it is ready.

    Transport failures, error responses, malformed payloads and
    ``loading: true`` all count as "not ready yet": they are logged and the
    poll repeats after ``poll_interval`` seconds. Cancel the awaiting task to
    give up.

    Raises:
        UnsupportedLoginMethod: If a ready config names an unknown login
            method. This is a configuration error and is not retried.
    """
    async with AsyncHTTPClient(transport=transport) as http:
        while True:
            try:
                config = await fetch_config(http, config_url)
                if not config.get("loading", True):
                    return FeedMetadata.from_config(config)
                logger.info("Waiting for message feed program to finish loading...")
            except (UnreachableEndpoint, APIError, ValueError, ValidationError) as e:
                logger.warning("Config endpoint %s not ready: %s", config_url, e)
            await asyncio.sleep(poll_interval)
