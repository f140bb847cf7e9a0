from typing import Optional

import httpx

from relay.logging_config import get_logger

logger = get_logger("facebook_service")

# Credentials and pipeline bindings that must never be sent to the Send API.
PRIVATE_PARAM_KEYS = (
    "page_access_token",
    "app_secret",
    "verification_token",
    "raw_input_data",
    "raw_output_data",
    "sub_pipeline",
    "batched_messages",
    "auth",
    "url",
)


class ChannelPostError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def extract_facebook_params(params: dict) -> dict:
    return {k: v for k, v in params.items() if k not in PRIVATE_PARAM_KEYS}


def validate_post_params(params: dict) -> None:
    recipient = params.get("recipient")
    if not isinstance(recipient, dict) or not recipient.get("id"):
        raise ChannelPostError("Recipient id not provided.")
    if not params.get("message"):
        raise ChannelPostError("Message object not provided.")


class FacebookMessenger:
    """Posts replies to the Messenger Send API."""

    def __init__(self, page_access_token: Optional[str], post_url: str, timeout_seconds: float = 30.0):
        self.page_access_token = page_access_token
        self.post_url = post_url
        self.timeout_seconds = timeout_seconds

    async def post(self, params: dict) -> dict:
        validate_post_params(params)
        if not self.page_access_token:
            raise ChannelPostError("auth.facebook.page_access_token not found.")

        body = extract_facebook_params(params)
        post_url = self.post_url

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(
                    post_url,
                    params={"access_token": self.page_access_token},
                    json=body,
                )
        except httpx.HTTPError as e:
            logger.error(f"Facebook Send API error: {e}")
            raise ChannelPostError(f"An unexpected error occurred when sending POST to {post_url}.") from e

        if response.status_code != 200:
            logger.warning(
                "Facebook post rejected",
                extra={"context": {"status_code": response.status_code, "body": response.text[:200]}},
            )
            raise ChannelPostError(
                f"Action returned with status code {response.status_code}, message: {response.reason_phrase}",
                status_code=response.status_code,
            )

        return {"text": 200, "params": body, "url": post_url}
