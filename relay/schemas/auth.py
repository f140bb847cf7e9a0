from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class FacebookAuth(BaseModel):
    model_config = ConfigDict(frozen=True)

    app_secret: Optional[str] = None
    verification_token: Optional[str] = None
    page_access_token: Optional[str] = None


class SlackAuth(BaseModel):
    model_config = ConfigDict(frozen=True)

    verification_token: Optional[str] = None
    bot_access_token: Optional[str] = None


class ConversationAuth(BaseModel):
    model_config = ConfigDict(frozen=True)

    workspace_id: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


class AuthContext(BaseModel):
    """Credentials forwarded unchanged to every pipeline dispatch of a batch."""

    model_config = ConfigDict(frozen=True)

    namespace: str = "_"
    facebook: FacebookAuth = FacebookAuth()
    slack: SlackAuth = SlackAuth()
    conversation: ConversationAuth = ConversationAuth()

    def forwardable(self) -> dict[str, Any]:
        return self.model_dump(exclude={"namespace"})
