from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Pipeline invoked once per inbound event
    sub_pipeline: str = ""
    pipeline_api_url: str = "http://localhost:3233"
    pipeline_namespace: str = "_"
    pipeline_api_key: Optional[str] = None  # "user:password"
    pipeline_timeout_seconds: float = 60.0

    # Batch dispatch
    batch_max_concurrency: Optional[int] = None
    dispatch_in_background: bool = False

    # Facebook channel
    facebook_app_secret: Optional[str] = None
    facebook_verification_token: Optional[str] = None
    facebook_page_access_token: Optional[str] = None
    facebook_post_url: str = "https://graph.facebook.com/v2.6/me/messages"

    # Slack channel
    slack_verification_token: Optional[str] = None
    slack_bot_access_token: Optional[str] = None
    slack_post_url: str = "https://slack.com/api/chat.postMessage"

    # Shared secret the pipeline sends in X-Relay-Secret when calling the post endpoints
    relay_api_secret: Optional[str] = None

    # Conversation backend credentials, forwarded to the pipeline untouched
    conversation_workspace_id: Optional[str] = None
    conversation_username: Optional[str] = None
    conversation_password: Optional[str] = None

    alert_bot_token: Optional[str] = None
    alert_chat_id: Optional[str] = None

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @field_validator("batch_max_concurrency", mode="before")
    @classmethod
    def _empty_concurrency_is_unbounded(cls, value):
        if value in ("", None):
            return None
        if int(value) <= 0:
            return None
        return int(value)


settings = Settings()
