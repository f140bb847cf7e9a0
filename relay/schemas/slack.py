from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from relay.schemas.facebook import WebhookAckResponse


class SlackEventPayload(BaseModel):
    """Slack Events API callback: a `url_verification` handshake or an `event_callback`."""

    model_config = ConfigDict(extra="allow")

    token: Optional[str] = None
    type: Optional[str] = None
    challenge: Optional[str] = None
    event: Optional[dict[str, Any]] = None
    event_time: Optional[int] = None


class SlackChallengeResponse(BaseModel):
    challenge: str


class SlackAckResponse(WebhookAckResponse):
    # Set when the event was deliberately not dispatched (bot echo, timeout retry).
    ignored: Optional[str] = None
