from typing import Any

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from relay.dependencies import get_slack_messenger, require_relay_secret
from relay.logging_config import get_logger
from relay.schemas.facebook import PostResponse
from relay.services.post_service import post_multiple_messages
from relay.services.slack_service import SlackMessenger

logger = get_logger("slack_post")

router = APIRouter()


@router.post("/slack/post", response_model=PostResponse, dependencies=[Depends(require_relay_secret)])
async def post_to_slack(
    params: dict[str, Any] = Body(...),
    messenger: SlackMessenger = Depends(get_slack_messenger),
):
    """Final pipeline step for Slack: post the reply (one or several messages) to the channel."""
    report = await post_multiple_messages(params, messenger.post, merge_message=True)
    if not report.ok:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=report.to_dict())
    logger.info("Posted to slack", extra={"context": {"posts": len(report.successful_posts)}})
    return PostResponse(**report.to_dict())
