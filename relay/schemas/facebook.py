from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class WebhookEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    time: Optional[int] = None
    messaging: list[dict[str, Any]] = Field(default_factory=list)


class WebhookPayload(BaseModel):
    """Facebook Messenger callback body: one or more entries, each with events."""

    model_config = ConfigDict(extra="allow")

    object: str
    entry: list[WebhookEntry]

    @property
    def event_count(self) -> int:
        return sum(len(e.messaging) for e in self.entry)


class WebhookAckResponse(BaseModel):
    # Facebook only looks at the status code; the report is for operators.
    text: str = "200"
    successfulInvocations: list[dict[str, Any]] = Field(default_factory=list)
    failedInvocations: list[dict[str, Any]] = Field(default_factory=list)
    accepted: Optional[int] = None


class PostResponse(BaseModel):
    successfulPosts: list[dict[str, Any]] = Field(default_factory=list)
    failedPosts: list[dict[str, Any]] = Field(default_factory=list)
