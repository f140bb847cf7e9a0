from typing import Any

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from relay.dependencies import get_messenger, require_relay_secret
from relay.logging_config import get_logger
from relay.schemas.facebook import PostResponse
from relay.services.facebook_service import FacebookMessenger
from relay.services.post_service import post_multiple_messages

logger = get_logger("facebook_post")

router = APIRouter()


@router.post("/facebook/post", response_model=PostResponse, dependencies=[Depends(require_relay_secret)])
async def post_to_facebook(
    params: dict[str, Any] = Body(...),
    messenger: FacebookMessenger = Depends(get_messenger),
):
    """Final pipeline step: send the conversation reply (one or several messages) to the user."""
    report = await post_multiple_messages(params, messenger.post)
    if not report.ok:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=report.to_dict())
    logger.info("Posted to facebook", extra={"context": {"posts": len(report.successful_posts)}})
    return PostResponse(**report.to_dict())
