"""Operator alerts delivered to a Telegram chat."""

from typing import Optional

import httpx

from relay.config import settings
from relay.logging_config import get_logger
from relay.services.result import BatchReport

logger = get_logger("alert_service")

ALERT_BOT_TOKEN = settings.alert_bot_token
ALERT_CHAT_ID = settings.alert_chat_id

# Keep alert messages short; the full report is in the logs.
MAX_ALERT_ERRORS = 5


def format_alert_text(level: str, message: str, context: Optional[dict] = None) -> str:
    emoji = {"INFO": "ℹ️", "WARNING": "⚠️", "ERROR": "❌", "CRITICAL": "🔥"}
    text = f"{emoji.get(level, '📢')} *{level}*\n\n{message}"
    if context:
        context_str = "\n".join(f"  {k}: {v}" for k, v in context.items())
        text += f"\n\n```\n{context_str}\n```"
    return text


async def send_alert(level: str, message: str, context: Optional[dict] = None) -> bool:
    """Send alert to Telegram. Returns True if it was delivered; never raises."""
    if not ALERT_BOT_TOKEN or not ALERT_CHAT_ID:
        logger.warning(f"Alert not configured: {level} - {message}")
        return False

    try:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.post(
                f"https://api.telegram.org/bot{ALERT_BOT_TOKEN}/sendMessage",
                json={
                    "chat_id": ALERT_CHAT_ID,
                    "text": format_alert_text(level, message, context),
                    "parse_mode": "Markdown",
                },
            )
            return response.status_code == 200
    except Exception as e:
        logger.error(f"Failed to send alert: {e}")
        return False


async def alert_warning(message: str, context: Optional[dict] = None) -> bool:
    """Shortcut for WARNING level alert."""
    return await send_alert("WARNING", message, context)


async def alert_batch_failures(report: BatchReport, pipeline_name: str) -> bool:
    if not report.has_failures:
        return False
    context = {
        "pipeline": pipeline_name,
        "succeeded": len(report.successful_invocations),
        "failed": len(report.failed_invocations),
    }
    for i, failure in enumerate(report.failed_invocations[:MAX_ALERT_ERRORS], start=1):
        context[f"error_{i}"] = failure.error_message
    return await alert_warning("Batch dispatch had failed invocations", context)
