"""Document-created trigger endpoints (APP_ROLE=worker).

One POST per created document. Handlers always answer 200 once the caller
is authenticated: a non-2xx would make the trigger platform redeliver the
same document, and every outcome (including failures) is already logged.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from petly.api.dependencies import get_services
from petly.api.task_auth import require_trigger_auth
from petly.domain.dispatcher import SKIP_MALFORMED
from petly.domain.events import TriggerStream
from petly.observability.correlation import (
    CORRELATION_ID_HEADER,
    bind_event_id,
    get_correlation_id,
)
from petly.observability.logging import get_logger
from petly.observability.redaction import safe_log_context
from petly.triggers.firestore_values import parse_envelope

router = APIRouter(
    prefix="/triggers",
    tags=["triggers"],
    dependencies=[Depends(require_trigger_auth)],
)

logger = get_logger(__name__)


async def _handle(request: Request, stream: TriggerStream) -> JSONResponse:
    correlation_id = get_correlation_id()

    try:
        payload: Any = await request.json()
        event = parse_envelope(payload)
    except ValueError as e:
        # JSONDecodeError and MalformedEventError are both ValueErrors
        logger.warning(
            "malformed trigger envelope",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id, stream=stream.value, error=str(e)
                )
            },
        )
        return JSONResponse(
            status_code=200,
            content={"ok": True, "status": "skipped", "reason": SKIP_MALFORMED},
        )

    correlation_id = bind_event_id(
        event.event_id, request.headers.get(CORRELATION_ID_HEADER)
    )

    logger.info(
        "trigger received",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                stream=stream.value,
                document_path=event.document_path,
                event_id=event.event_id,
            )
        },
    )

    services = get_services(request)
    result = await services.dispatcher.dispatch(stream, event.document_path, event.data)

    content: dict[str, Any] = {"ok": True, "status": result.status}
    if result.reason:
        content["reason"] = result.reason
    return JSONResponse(status_code=200, content=content)


@router.post("/chats")
async def chat_created(request: Request) -> JSONResponse:
    """chats/{chatId} created -> NEW_CHAT to the owner."""
    return await _handle(request, TriggerStream.CHAT_CREATED)


@router.post("/messages")
async def message_created(request: Request) -> JSONResponse:
    """chats/{chatId}/messages/{messageId} created -> NEW_MESSAGE."""
    return await _handle(request, TriggerStream.MESSAGE_CREATED)


@router.post("/adoption-intents")
async def adoption_intent_created(request: Request) -> JSONResponse:
    """adoptionIntents/{intentId} created -> resolve / notify by status."""
    return await _handle(request, TriggerStream.ADOPTION_INTENT_CREATED)
