"""Feed metadata endpoint.

Clients poll ``GET /config.json`` until ``loading`` turns false, then use the
returned identities to join the feed.
"""

from fastapi import APIRouter

from api.dependencies import FeedControllerDep, SettingsDep
from api.models import ConfigResponse


router = APIRouter(tags=["config"])


@router.get("/config.json", response_model=ConfigResponse, response_model_by_alias=True)
async def get_config(controller: FeedControllerDep, settings: SettingsDep):
    """Describe the feed, creating its first message on first use.

    Returns:
        ``loading: true`` while the feed program is missing or the first
        message could not be created yet; otherwise the full metadata.
    """
    state = await controller.check_message_feed()
    if state is None:
        return ConfigResponse(
            loading=True,
            login_method=settings.login_method.value,
            url=settings.rpc_url,
            wallet_url=settings.wallet_url,
        )

    return ConfigResponse(
        loading=False,
        first_message=str(state.first_message.public_key),
        program_id=str(state.program_id),
        login_method=settings.login_method.value,
        url=settings.rpc_url,
        wallet_url=settings.wallet_url,
    )
