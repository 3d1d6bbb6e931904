"""Process configuration.

Settings come from environment variables. A ``.env`` file in the working
directory is loaded first, so local deployments can keep their settings
there.
"""

import os
from typing import Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from feed.bootstrap import LoginMethod, parse_login_method
from feed.codec import DEFAULT_LAYOUT, MessageLayout
from feed.keys import PublicKey


class FeedSettings(BaseModel):
    """Settings for the feed backend and clients.

    Attributes:
        rpc_url: Ledger JSON-RPC endpoint.
        wallet_url: Wallet URL advertised to clients.
        login_method: How users log in.
        port: Port of the HTTP front door.
        program_id: Deployed feed program, if known.
        message_layout: Message account layout of this deployment.
        confirm_timeout: Seconds to wait for a transaction to confirm.
    """

    rpc_url: str = "http://localhost:8899"
    wallet_url: str = "https://solana.com/wallet"
    login_method: LoginMethod = LoginMethod.LOCAL
    port: int = Field(default=8081, gt=0, lt=65536)
    program_id: PublicKey | None = None
    message_layout: MessageLayout = DEFAULT_LAYOUT
    confirm_timeout: float = Field(default=30.0, gt=0)

    class Config:
        arbitrary_types_allowed = True
        frozen = True

    @field_validator("program_id", mode="before")
    @classmethod
    def parse_program_id(cls, v):
        if v is None or isinstance(v, PublicKey):
            return v
        return PublicKey(v)


def load_settings(env: Mapping[str, str] | None = None) -> FeedSettings:
    """Build settings from ``env`` (defaults to the process environment).

    Raises:
        UnsupportedLoginMethod: If ``LOGIN_METHOD`` names an unknown method.
        ValidationError: If any other value is malformed.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    values: dict = {}
    if "RPC_URL" in env:
        values["rpc_url"] = env["RPC_URL"]
    if "WALLET_URL" in env:
        values["wallet_url"] = env["WALLET_URL"]
    if "PORT" in env:
        values["port"] = env["PORT"]
    if env.get("FEED_PROGRAM_ID"):
        values["program_id"] = env["FEED_PROGRAM_ID"]
    if "FEED_MESSAGE_LAYOUT" in env:
        values["message_layout"] = env["FEED_MESSAGE_LAYOUT"]
    if "CONFIRM_TIMEOUT" in env:
        values["confirm_timeout"] = env["CONFIRM_TIMEOUT"]
    values["login_method"] = parse_login_method(env.get("LOGIN_METHOD", LoginMethod.LOCAL.value))

    return FeedSettings(**values)
