"""Login endpoint.

With the ``local`` login method any non-empty id logs in. The first login
for an id registers a new user on the ledger; later logins, including one
that raced the first, hand back the same key pair.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from api.dependencies import FeedControllerDep, SettingsDep, UserRegistryDep
from api.models import LoginRequest, LoginResponse
from feed.bootstrap import LoginMethod
from feed.exceptions import UnsupportedLoginMethod


logger = logging.getLogger(__name__)

router = APIRouter(tags=["login"])


@router.post("/login", response_model=LoginResponse, response_model_by_alias=True)
async def login(
    request: LoginRequest,
    controller: FeedControllerDep,
    registry: UserRegistryDep,
    settings: SettingsDep,
):
    """Return the caller's user key pair, creating the user if needed.

    Raises:
        HTTPException: 503 while the feed is still loading.
        UnsupportedLoginMethod: If the backend is not configured for local
            logins.
    """
    if settings.login_method is not LoginMethod.LOCAL:
        raise UnsupportedLoginMethod(settings.login_method.value)

    keypair = registry.get(request.id)
    if keypair is None:
        if await controller.check_message_feed() is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Message feed is still loading",
            )
        keypair = registry.add(request.id, await controller.create_user())
        logger.info("Registered %s as %s", request.id, keypair.public_key)

    return LoginResponse(user_account=keypair.secret_key.hex())
