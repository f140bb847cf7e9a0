import json
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from relay.config import Settings
from relay.dependencies import get_invoker, get_settings
from relay.logging_config import get_logger
from relay.schemas.auth import AuthContext
from relay.schemas.facebook import WebhookAckResponse, WebhookEntry, WebhookPayload
from relay.services.alert_service import alert_batch_failures
from relay.services.auth_service import build_auth_context
from relay.services.batch_service import process_batch
from relay.services.pipeline import PipelineInvoker
from relay.services.result import BatchReport
from relay.services.signature_service import verify_signature

logger = get_logger("facebook_webhook")

router = APIRouter()


def is_batched_message(payload: WebhookPayload) -> bool:
    """More than one entry, or more than one event in the only entry."""
    return len(payload.entry) > 1 or (len(payload.entry) == 1 and len(payload.entry[0].messaging) > 1)


def _require_valid_signature(request: Request, raw_body: bytes, app_secret: Optional[str]) -> None:
    if not app_secret:
        logger.warning("FACEBOOK_APP_SECRET not configured, skipping signature verification")
        return
    header = request.headers.get("X-Hub-Signature-256") or request.headers.get("X-Hub-Signature")
    if not header:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="x-hub-signature header not found.")
    if not verify_signature(raw_body, header, app_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Verification of facebook signature header failed. Please make sure you are passing the correct app secret",
        )


def _parse_payload(raw_body: bytes) -> WebhookPayload:
    try:
        body = json.loads(raw_body)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid JSON payload: {e}")
    try:
        payload = WebhookPayload.model_validate(body)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid webhook payload: {e}")
    if payload.object != "page":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Neither a page type request nor a verification type request detected",
        )
    return payload


async def dispatch_and_report(
    entries: list[WebhookEntry],
    pipeline_name: str,
    auth: AuthContext,
    invoker: PipelineInvoker,
    max_concurrency: Optional[int],
) -> BatchReport:
    report = await process_batch(entries, pipeline_name, auth, invoker, max_concurrency=max_concurrency)
    if report.has_failures:
        logger.warning(
            "Batch finished with failed invocations",
            extra={"context": {"failed": [r.to_dict() for r in report.failed_invocations]}},
        )
        await alert_batch_failures(report, pipeline_name)
    return report


@router.get("/facebook/webhook", response_class=PlainTextResponse)
async def verify_facebook_webhook(
    hub_mode: Optional[str] = Query(default=None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
    settings: Settings = Depends(get_settings),
):
    """URL verification handshake performed by Facebook when the webhook is registered."""
    expected = settings.facebook_verification_token
    if hub_mode != "subscribe" or not expected or hub_verify_token != expected:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Webhook verification failed")
    return PlainTextResponse(hub_challenge or "")


@router.post("/facebook/webhook", response_model=WebhookAckResponse)
async def handle_facebook_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_settings),
    invoker: PipelineInvoker = Depends(get_invoker),
):
    """
    Receive a Messenger delivery and dispatch every event to the conversation pipeline.
    Facebook gets a 200 regardless of individual dispatch outcomes.
    """
    raw_body = await request.body()
    _require_valid_signature(request, raw_body, settings.facebook_app_secret)

    if not settings.sub_pipeline:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Subpipeline name does not exist. Please set SUB_PIPELINE",
        )

    payload = _parse_payload(raw_body)

    logger.info(
        "Facebook webhook received",
        extra={
            "context": {
                "entries": len(payload.entry),
                "events": payload.event_count,
                "batched": is_batched_message(payload),
            }
        },
    )

    auth = build_auth_context(settings)

    if settings.dispatch_in_background:
        background_tasks.add_task(
            dispatch_and_report,
            payload.entry,
            settings.sub_pipeline,
            auth,
            invoker,
            settings.batch_max_concurrency,
        )
        return WebhookAckResponse(accepted=payload.event_count)

    report = await dispatch_and_report(
        payload.entry,
        settings.sub_pipeline,
        auth,
        invoker,
        settings.batch_max_concurrency,
    )
    return WebhookAckResponse(**report.to_dict())
