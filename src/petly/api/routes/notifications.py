"""Administrative notification endpoints (APP_ROLE=worker).

- POST /notifications/send: push to a raw device token
- POST /notifications/test: sample notification of a given type to a user
- POST /notifications/reminder: caller-written reminder to a user

Unlike trigger endpoints these are called by operators and tools, so they
answer with real status codes (400 / 404 / 500).
"""

from dataclasses import replace
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from petly.api.dependencies import Services, get_services
from petly.api.task_auth import require_trigger_auth
from petly.notifications.composer import (
    NotificationContext,
    NotificationKind,
    PushPayload,
    compose,
)
from petly.notifications.recipients import Recipient
from petly.notifications.sender import DeliveryResult
from petly.observability.correlation import get_correlation_id
from petly.observability.logging import get_logger
from petly.observability.redaction import safe_log_context

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
    dependencies=[Depends(require_trigger_auth)],
)

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

# /notifications/test "type" values -> kind; anything else falls back to TEST
TEST_TYPES: dict[str, NotificationKind] = {
    "test": NotificationKind.TEST,
    "nova_mensagem": NotificationKind.NEW_MESSAGE,
    "adocao_confirmada": NotificationKind.ADOPTION_CONFIRMED,
    "adocao_recusada": NotificationKind.ADOPTION_REJECTED,
}

_TEST_CONTEXT = NotificationContext(
    chat_id="test-chat",
    animal_id="test-animal",
    animal_name="Rex",
    interested_name="Test user",
    owner_name="Test owner",
    sender_id="test-sender",
    sender_name="Test user",
    message_text="This is a test message to check that notifications arrive.",
    extra_data={"isTestNotification": "true"},
)


class NotificationBody(BaseModel):
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)
    sound: str | None = None


class SendRequest(BaseModel):
    token: str = Field(min_length=1)
    notification: NotificationBody
    data: dict[str, Any] = Field(default_factory=dict)


class SendTestRequest(BaseModel):
    userId: str = Field(min_length=1)
    type: str = "test"


class ReminderRequest(BaseModel):
    userId: str = Field(min_length=1)
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


async def _read(request: Request, model: type[M]) -> M | JSONResponse:
    """Parse the JSON body into `model`, or a 400 response."""
    try:
        return model.model_validate(await request.json())
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        logger.warning(
            "invalid notification request",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=get_correlation_id(), invalid_fields=",".join(fields)
                )
            },
        )
        return _error(400, f"invalid fields: {', '.join(fields)}")
    except ValueError:
        return _error(400, "invalid json")


async def _recipient(services: Services, user_id: str) -> Recipient | JSONResponse:
    recipient = await services.recipients.resolve(user_id)
    if recipient is None:
        return _error(404, "user not found")
    if not recipient.token:
        return _error(400, "user has no push token")
    return recipient


def _delivery_response(result: DeliveryResult, **extra: Any) -> JSONResponse:
    if result.status != "sent":
        # Provider details stay in the logs
        return _error(500, "notification delivery failed")
    return JSONResponse(
        status_code=200, content={"ok": True, "messageId": result.message_id, **extra}
    )


def _stringify(data: dict[str, Any]) -> dict[str, str]:
    return {str(k): str(v) for k, v in data.items() if v is not None}


@router.post("/send")
async def send_notification(request: Request) -> JSONResponse:
    """Send a caller-written notification to a raw device token."""
    parsed = await _read(request, SendRequest)
    if isinstance(parsed, JSONResponse):
        return parsed

    services = get_services(request)
    extra = _stringify(parsed.data)
    payload = compose(
        NotificationKind.REMINDER,
        NotificationContext(
            title=parsed.notification.title,
            body=parsed.notification.body,
            chat_id=extra.get("chatId"),
            animal_id=extra.get("animalId"),
            extra_data=extra,
        ),
    )
    if "type" in extra:
        payload = replace(payload, data={**payload.data, "type": extra["type"]})
    if parsed.notification.sound:
        payload = replace(
            payload, hints=replace(payload.hints, sound=parsed.notification.sound)
        )

    result = await services.sender.send_to_token(parsed.token, payload)
    return _delivery_response(
        result,
        data={"type": payload.data["type"], "title": payload.title, "body": payload.body},
    )


@router.post("/test")
async def send_test_notification(request: Request) -> JSONResponse:
    """Send a sample notification of `type` to `userId`."""
    parsed = await _read(request, SendTestRequest)
    if isinstance(parsed, JSONResponse):
        return parsed

    services = get_services(request)
    recipient = await _recipient(services, parsed.userId)
    if isinstance(recipient, JSONResponse):
        return recipient

    kind = TEST_TYPES.get(parsed.type, NotificationKind.TEST)
    payload: PushPayload = compose(kind, _TEST_CONTEXT)

    logger.info(
        "test notification requested",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                user_id=parsed.userId,
                kind=kind.value,
            )
        },
    )
    result = await services.sender.send_to_token(recipient.token or "", payload)
    return _delivery_response(result, type=payload.data["type"])


@router.post("/reminder")
async def send_reminder(request: Request) -> JSONResponse:
    """Send a caller-written reminder to `userId`."""
    parsed = await _read(request, ReminderRequest)
    if isinstance(parsed, JSONResponse):
        return parsed

    services = get_services(request)
    recipient = await _recipient(services, parsed.userId)
    if isinstance(recipient, JSONResponse):
        return recipient

    extra = _stringify(parsed.data)
    payload = compose(
        NotificationKind.REMINDER,
        NotificationContext(
            title=parsed.title,
            body=parsed.body,
            chat_id=extra.get("chatId"),
            animal_id=extra.get("animalId"),
            extra_data=extra,
        ),
    )
    result = await services.sender.send_to_token(recipient.token or "", payload)
    return _delivery_response(result)
