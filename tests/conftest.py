import asyncio

import pytest

from relay.schemas.auth import AuthContext, ConversationAuth, FacebookAuth
from relay.services.pipeline.base import PipelineActivation, PipelineInvocationError, PipelineInvoker


class RecordingInvoker(PipelineInvoker):
    """In-process pipeline that records call order and in-flight dispatches per conversation."""

    def __init__(self, fail_texts=(), crash_texts=(), delay: float = 0.0):
        self.fail_texts = set(fail_texts)
        self.crash_texts = set(crash_texts)
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.params: list[dict] = []
        self.in_flight: dict[str, int] = {}
        self.current = 0
        self.max_in_flight = 0
        self.overlapping_keys: list[str] = []

    async def invoke(self, name: str, params: dict) -> PipelineActivation:
        provider = params["provider"]
        if provider == "slack":
            event = params["slack"]["event"]
            key = f"{event['user']}_{event['channel']}"
            text = event.get("text", "")
        else:
            event = params[provider]
            key = f"{event['sender']['id']}_{event['recipient']['id']}"
            text = event.get("message", {}).get("text", "")

        if self.in_flight.get(key):
            self.overlapping_keys.append(key)
        self.in_flight[key] = self.in_flight.get(key, 0) + 1
        self.current += 1
        self.max_in_flight = max(self.max_in_flight, self.current)
        self.calls.append((key, text))
        self.params.append(params)
        try:
            await asyncio.sleep(self.delay)
            if text in self.crash_texts:
                raise RuntimeError(f"crashed on {text}")
            if text in self.fail_texts:
                raise PipelineInvocationError(f"pipeline failed on {text}", activation_id=f"act-{text}")
            return PipelineActivation(activation_id=f"act-{text}", result={"echo": text})
        finally:
            self.in_flight[key] -= 1
            self.current -= 1


def build_event(sender="S", recipient="P", timestamp=1, text="hi"):
    event = {"timestamp": timestamp, "message": {"mid": f"mid.{text}", "text": text}}
    if sender is not None:
        event["sender"] = {"id": sender}
    if recipient is not None:
        event["recipient"] = {"id": recipient}
    return event


def build_slack_event(user="U1", channel="D1", text="hi", event_type="message", **event_fields):
    return {
        "token": "slack-verify",
        "team_id": "T1",
        "type": "event_callback",
        "event_time": 1501786719,
        "event": {"type": event_type, "user": user, "channel": channel, "text": text, **event_fields},
    }


@pytest.fixture
def make_event():
    return build_event


@pytest.fixture
def make_slack_event():
    return build_slack_event


@pytest.fixture
def make_invoker():
    return RecordingInvoker


@pytest.fixture
def auth():
    return AuthContext(
        namespace="test-ns",
        facebook=FacebookAuth(app_secret="secret", verification_token="verify-me", page_access_token="page-token"),
        conversation=ConversationAuth(workspace_id="ws-1", username="user", password="pass"),
    )
