import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from relay.config import Settings, settings
from relay.logging_config import get_logger
from relay.services.facebook_service import FacebookMessenger
from relay.services.pipeline import HttpPipelineInvoker, PipelineInvoker
from relay.services.slack_service import SlackMessenger

logger = get_logger("dependencies")


def get_settings() -> Settings:
    return settings


def get_invoker() -> PipelineInvoker:
    return HttpPipelineInvoker(
        api_url=settings.pipeline_api_url,
        namespace=settings.pipeline_namespace,
        api_key=settings.pipeline_api_key,
        timeout_seconds=settings.pipeline_timeout_seconds,
    )


def get_messenger() -> FacebookMessenger:
    return FacebookMessenger(
        page_access_token=settings.facebook_page_access_token,
        post_url=settings.facebook_post_url,
    )


def get_slack_messenger() -> SlackMessenger:
    return SlackMessenger(
        bot_access_token=settings.slack_bot_access_token,
        post_url=settings.slack_post_url,
    )


def require_relay_secret(
    x_relay_secret: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Guard for the post endpoints; they send messages with the channel credentials."""
    expected = settings.relay_api_secret
    if not expected:
        logger.error("RELAY_API_SECRET not configured, refusing post request")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Post endpoint not configured")
    if not x_relay_secret or not hmac.compare_digest(x_relay_secret.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid relay secret")
