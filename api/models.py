"""Request and response models for the feed endpoints.

Field names on the wire are camelCase, matching what feed clients expect.
"""

from pydantic import BaseModel, Field


class ConfigResponse(BaseModel):
    """Response model for ``GET /config.json``.

    Attributes:
        loading: True until the feed has its first message.
        first_message: Entry point of the message chain (base58).
        program_id: The feed program (base58).
        login_method: How users log in.
        url: Ledger RPC URL.
        wallet_url: Wallet URL.
    """

    loading: bool
    first_message: str | None = Field(default=None, alias="firstMessage")
    program_id: str | None = Field(default=None, alias="programId")
    login_method: str = Field(alias="loginMethod")
    url: str
    wallet_url: str = Field(alias="walletUrl")

    class Config:
        populate_by_name = True


class LoginRequest(BaseModel):
    """Request model for ``POST /login`` with the local login method.

    Attributes:
        id: The login identifier.
    """

    id: str = Field(min_length=1)


class LoginResponse(BaseModel):
    """Response model for ``POST /login``.

    Attributes:
        user_account: Hex-encoded 64-byte secret key of the user.
    """

    user_account: str = Field(alias="userAccount")

    class Config:
        populate_by_name = True
