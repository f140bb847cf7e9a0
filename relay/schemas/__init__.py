from relay.schemas.auth import AuthContext, ConversationAuth, FacebookAuth, SlackAuth
from relay.schemas.facebook import PostResponse, WebhookAckResponse, WebhookEntry, WebhookPayload

__all__ = [
    "AuthContext",
    "ConversationAuth",
    "FacebookAuth",
    "SlackAuth",
    "WebhookPayload",
    "WebhookEntry",
    "WebhookAckResponse",
    "PostResponse",
]
