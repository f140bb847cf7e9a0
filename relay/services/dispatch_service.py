from relay.logging_config import get_logger
from relay.schemas.auth import AuthContext
from relay.services.partition_service import MISSING_ID_PLACEHOLDER, EventRecord
from relay.services.pipeline.base import PipelineInvocationError, PipelineInvoker
from relay.services.result import DispatchResult

logger = get_logger("dispatch_service")

PROVIDER = "facebook"


def build_pipeline_params(event: EventRecord, auth: AuthContext, provider: str = PROVIDER) -> dict:
    return {
        provider: event.payload,
        "provider": provider,
        "auth": auth.forwardable(),
    }


def _failure_message(event: EventRecord, reason: str) -> str:
    recipient = event.recipient_id if event.recipient_id is not None else MISSING_ID_PLACEHOLDER
    sender = event.sender_id if event.sender_id is not None else MISSING_ID_PLACEHOLDER
    return f"Recipient id: {recipient} , Sender id: {sender} -- {reason}"


async def dispatch_event(
    event: EventRecord,
    pipeline_name: str,
    auth: AuthContext,
    invoker: PipelineInvoker,
    provider: str = PROVIDER,
) -> DispatchResult:
    """Run the conversation pipeline for one event. Never raises."""
    if event.sender_id is None:
        return DispatchResult.failure(_failure_message(event, "Missing sender id"))
    if event.recipient_id is None:
        return DispatchResult.failure(_failure_message(event, "Missing recipient id"))

    try:
        activation = await invoker.invoke(pipeline_name, build_pipeline_params(event, auth, provider))
    except PipelineInvocationError as e:
        logger.warning(
            "Pipeline invocation failed",
            extra={
                "context": {
                    "pipeline": pipeline_name,
                    "provider": provider,
                    "sender_id": event.sender_id,
                    "recipient_id": event.recipient_id,
                    "activation_id": e.activation_id,
                    "error": e.message,
                }
            },
        )
        return DispatchResult.failure(_failure_message(event, e.message), activation_id=e.activation_id)
    except Exception as e:
        logger.error(
            "Pipeline invocation crashed",
            extra={"context": {"pipeline": pipeline_name, "sender_id": event.sender_id, "error": str(e)}},
            exc_info=True,
        )
        return DispatchResult.failure(_failure_message(event, str(e)))

    logger.info(
        "Pipeline invoked",
        extra={
            "context": {
                "pipeline": pipeline_name,
                "sender_id": event.sender_id,
                "recipient_id": event.recipient_id,
                "activation_id": activation.activation_id,
            }
        },
    )
    return DispatchResult.success(activation.activation_id, activation.result)
