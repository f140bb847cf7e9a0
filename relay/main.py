from fastapi import FastAPI

from relay.config import settings
from relay.logging_config import setup_logging
from relay.routers import facebook_post, facebook_webhook, slack_post, slack_webhook

setup_logging(settings.log_level)

app = FastAPI(
    title="Conversation Relay",
    description="Relays Facebook Messenger and Slack webhooks to the conversation pipeline",
    version="0.1.0",
)

app.include_router(facebook_webhook.router)
app.include_router(facebook_post.router)
app.include_router(slack_webhook.router)
app.include_router(slack_post.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
