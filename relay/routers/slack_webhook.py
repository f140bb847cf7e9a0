import hmac
import json
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request, status
from pydantic import ValidationError

from relay.config import Settings
from relay.dependencies import get_invoker, get_settings
from relay.logging_config import get_logger
from relay.schemas.auth import AuthContext
from relay.schemas.slack import SlackAckResponse, SlackChallengeResponse, SlackEventPayload
from relay.services.alert_service import alert_batch_failures
from relay.services.auth_service import build_auth_context
from relay.services.dispatch_service import dispatch_event
from relay.services.partition_service import EventRecord, partition_key
from relay.services.pipeline import PipelineInvoker
from relay.services.result import BatchReport, DispatchResult
from relay.services.slack_service import (
    SLACK_PROVIDER,
    extract_slack_event_params,
    is_timeout_retry,
    slack_event_record,
)

logger = get_logger("slack_webhook")

router = APIRouter()


def _parse_slack_payload(raw_body: bytes) -> tuple[dict[str, Any], SlackEventPayload]:
    try:
        body = json.loads(raw_body)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid JSON payload: {e}")
    if not isinstance(body, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Slack payload")
    try:
        return body, SlackEventPayload.model_validate(body)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid Slack payload: {e}")


def _require_verification_token(provided: Optional[str], expected: Optional[str]) -> None:
    if not provided or not expected or not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Verification token is incorrect.")


async def dispatch_slack_event(
    event: EventRecord,
    pipeline_name: str,
    auth: AuthContext,
    invoker: PipelineInvoker,
) -> DispatchResult:
    result = await dispatch_event(event, pipeline_name, auth, invoker, provider=SLACK_PROVIDER)
    if not result.ok:
        logger.warning(
            "Slack event dispatch failed",
            extra={"context": {"partition_key": partition_key(event), "error": result.error_message}},
        )
        await alert_batch_failures(BatchReport.from_results([result]), pipeline_name)
    return result


@router.post("/slack/webhook")
async def handle_slack_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_slack_retry_reason: Optional[str] = Header(default=None),
    x_slack_retry_num: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
    invoker: PipelineInvoker = Depends(get_invoker),
):
    """Slack Events API endpoint: answers the URL handshake and dispatches user messages."""
    body, payload = _parse_slack_payload(await request.body())
    _require_verification_token(payload.token, settings.slack_verification_token)

    if not payload.type:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No subscription type specified.")

    if payload.type == "url_verification":
        return SlackChallengeResponse(challenge=payload.challenge or "")

    if payload.type != "event_callback":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Event type not understood.")

    event_type = (payload.event or {}).get("type")
    if not event_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No event type specified in event callback slack subscription.",
        )
    if event_type != "message":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message type not understood.")

    if payload.event.get("bot_id"):
        logger.debug("Ignoring bot message", extra={"context": {"bot_id": payload.event["bot_id"]}})
        return SlackAckResponse(ignored="bot_message")

    if is_timeout_retry(x_slack_retry_reason, x_slack_retry_num):
        logger.info("Ignoring Slack timeout retry", extra={"context": {"retry_num": x_slack_retry_num}})
        return SlackAckResponse(ignored="timeout_retry")

    if not settings.sub_pipeline:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Subpipeline name does not exist. Please set SUB_PIPELINE",
        )

    event = slack_event_record(extract_slack_event_params(body))
    auth = build_auth_context(settings)

    logger.info("Slack event received", extra={"context": {"partition_key": partition_key(event)}})

    if settings.dispatch_in_background:
        background_tasks.add_task(dispatch_slack_event, event, settings.sub_pipeline, auth, invoker)
        return SlackAckResponse(accepted=1)

    result = await dispatch_slack_event(event, settings.sub_pipeline, auth, invoker)
    return SlackAckResponse(**BatchReport.from_results([result]).to_dict())
