"""Slack channel: inbound Events API handling and outbound chat.postMessage."""

import json
from typing import Any, Optional

import httpx

from relay.logging_config import get_logger
from relay.services.facebook_service import ChannelPostError
from relay.services.partition_service import EventRecord

logger = get_logger("slack_service")

SLACK_PROVIDER = "slack"

# Never forwarded to the pipeline with an inbound event.
INBOUND_PRIVATE_KEYS = (
    "token",
    "verification_token",
    "client_id",
    "client_secret",
    "redirect_uri",
    "access_token",
    "bot_access_token",
)

# Never sent to the Slack API with an outbound message.
OUTBOUND_PRIVATE_KEYS = (
    "client_id",
    "client_secret",
    "redirect_uri",
    "verification_token",
    "access_token",
    "bot_access_token",
    "bot_user_id",
    "raw_input_data",
    "raw_output_data",
    "sub_pipeline",
    "auth",
    "url",
)


def extract_slack_event_params(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if k not in INBOUND_PRIVATE_KEYS}


def slack_event_record(params: dict[str, Any]) -> EventRecord:
    """Slack delivers one event per callback; the user/channel pair is its conversation."""
    event = params.get("event") or {}
    user = event.get("user")
    channel = event.get("channel")
    event_time = params.get("event_time")
    return EventRecord(
        sender_id=str(user) if user is not None else None,
        recipient_id=str(channel) if channel is not None else None,
        timestamp=event_time if isinstance(event_time, int) and not isinstance(event_time, bool) else None,
        payload=params,
    )


def is_timeout_retry(retry_reason: Optional[str], retry_num: Optional[str]) -> bool:
    """Slack resends an event it believes timed out; the first delivery is already being handled."""
    if retry_reason != "http_timeout" or not retry_num:
        return False
    try:
        return int(retry_num) > 0
    except ValueError:
        return False


def validate_slack_post_params(params: dict, bot_access_token: Optional[str]) -> None:
    if not bot_access_token:
        raise ChannelPostError("No bot access token provided.")
    if not params.get("channel"):
        raise ChannelPostError("Channel not provided.")
    if not params.get("text"):
        raise ChannelPostError("Message text not provided.")


def build_slack_form(params: dict, bot_access_token: str) -> dict[str, Any]:
    """Form body for chat.postMessage. Structured fields (attachments, blocks) go as JSON strings."""
    form: dict[str, Any] = {}
    for key, value in params.items():
        if key in OUTBOUND_PRIVATE_KEYS:
            continue
        form[key] = json.dumps(value) if isinstance(value, (dict, list)) else value
    form.setdefault("as_user", "true")
    form["token"] = bot_access_token
    return form


class SlackMessenger:
    """Posts replies as the bot user."""

    def __init__(self, bot_access_token: Optional[str], post_url: str, timeout_seconds: float = 30.0):
        self.bot_access_token = bot_access_token
        self.post_url = post_url
        self.timeout_seconds = timeout_seconds

    async def post(self, params: dict) -> dict:
        validate_slack_post_params(params, self.bot_access_token)
        form = build_slack_form(params, self.bot_access_token)

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(self.post_url, data=form)
        except httpx.HTTPError as e:
            logger.error(f"Slack API error: {e}")
            raise ChannelPostError(f"An unexpected error occurred when sending POST to {self.post_url}.") from e

        if response.status_code != 200:
            raise ChannelPostError(
                f"Action returned with status code {response.status_code}, message: {response.reason_phrase}",
                status_code=response.status_code,
            )

        # chat.postMessage reports failures in the body with a 200 status.
        try:
            data = response.json()
        except ValueError:
            data = {}
        if isinstance(data, dict) and data.get("ok") is False:
            logger.warning("Slack post rejected", extra={"context": {"error": data.get("error")}})
            raise ChannelPostError(f"Slack API error: {data.get('error')}", status_code=response.status_code)

        sent = {k: v for k, v in form.items() if k != "token"}
        return {"text": 200, "params": sent, "url": self.post_url}
