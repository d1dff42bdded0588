"""Event dispatcher: one created document in, side effects out.

Routes the three document-created streams:
- CHAT_CREATED -> NEW_CHAT to the owner
- MESSAGE_CREATED -> NEW_MESSAGE to the other participant + unread counter
- ADOPTION_INTENT_CREATED -> resolver + lifecycle + ADOPTION_CONFIRMED
  (confirmed), ADOPTION_REJECTED (denied), nothing (pending)

dispatch() never raises. Malformed input and unexpected errors become
DispatchResult values so the trigger platform never loops on redelivery.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from petly.infra.settings import CollectionNames
from petly.infra.time import Clock, utc_now
from petly.notifications.composer import NotificationContext, NotificationKind, compose
from petly.notifications.recipients import RecipientResolver
from petly.notifications.sender import SKIP_NOT_FOUND, NotificationSender
from petly.observability.logging import get_logger
from petly.observability.redaction import safe_log_context
from petly.store.base import DocumentStore, join_path

from .adoption_resolver import AdoptionResolver
from .chat_lifecycle import ChatLifecycleManager
from .errors import MalformedEventError
from .events import (
    TriggerStream,
    is_test_data,
    parse_adoption_intent,
    parse_chat_room,
    parse_message,
)
from .models import AdoptionIntent, AdoptionStatus

logger = get_logger(__name__)

SKIP_MALFORMED = "malformed-event"
SKIP_TEST_DATA = "test-data"
SKIP_SYSTEM_MESSAGE = "system-message"
SKIP_CHAT_FINALIZED = "chat-finalized"
SKIP_PENDING_INTENT = "pending-intent"
SKIP_CHAT_NOT_FOUND = "chat-not-found"
SKIP_NO_RECIPIENT = "no-recipient"
SKIP_ALREADY_ADOPTED = "animal-already-adopted"


@dataclass(frozen=True)
class DispatchResult:
    status: Literal["processed", "skipped", "failed"]
    reason: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def processed(cls, **details: Any) -> "DispatchResult":
        return cls(status="processed", details=details)

    @classmethod
    def skipped(cls, reason: str, **details: Any) -> "DispatchResult":
        return cls(status="skipped", reason=reason, details=details)

    @classmethod
    def failed(cls, reason: str) -> "DispatchResult":
        return cls(status="failed", reason=reason)


def _split_path(document_path: str) -> list[str]:
    segments = [s for s in document_path.strip("/").split("/") if s]
    if len(segments) < 2 or len(segments) % 2:
        raise MalformedEventError(f"not a document path: {document_path!r}")
    return segments


class EventDispatcher:
    """Stateless router from created documents to domain services."""

    def __init__(
        self,
        store: DocumentStore,
        resolver: AdoptionResolver,
        lifecycle: ChatLifecycleManager,
        sender: NotificationSender,
        recipients: RecipientResolver,
        collections: CollectionNames | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._lifecycle = lifecycle
        self._sender = sender
        self._recipients = recipients
        self._collections = collections or CollectionNames()
        self._clock = clock

    async def dispatch(
        self, stream: TriggerStream, document_path: str, data: dict[str, Any]
    ) -> DispatchResult:
        """Handle one created document. Never raises."""
        log_ctx = safe_log_context(stream=stream.value, document_path=document_path)

        if not isinstance(data, dict):
            return self._skip(SKIP_MALFORMED, log_ctx)
        if is_test_data(data):
            return self._skip(SKIP_TEST_DATA, log_ctx)

        try:
            if stream is TriggerStream.CHAT_CREATED:
                result = await self._on_chat_created(document_path, data)
            elif stream is TriggerStream.MESSAGE_CREATED:
                result = await self._on_message_created(document_path, data)
            else:
                result = await self._on_intent_created(document_path, data)
        except MalformedEventError as e:
            logger.warning(
                "malformed event skipped",
                extra={"extra_fields": {**log_ctx, **safe_log_context(error=str(e))}},
            )
            return DispatchResult.skipped(SKIP_MALFORMED)
        except Exception as e:
            logger.exception("event dispatch failed", extra={"extra_fields": log_ctx})
            return DispatchResult.failed(type(e).__name__)

        if result.status == "skipped":
            return self._skip(result.reason or "", log_ctx, result)

        logger.info("event processed", extra={"extra_fields": log_ctx})
        return result

    # CHAT_CREATED

    async def _on_chat_created(
        self, document_path: str, data: dict[str, Any]
    ) -> DispatchResult:
        segments = _split_path(document_path)
        chat = parse_chat_room(segments[-1], data)
        context = chat.context

        interested_name = await self._recipients.display_name(context.interested_id)
        animal_name = context.animal_name or await self._animal_name(context.animal_id)

        delivery = await self._sender.send(
            context.owner_id,
            compose(
                NotificationKind.NEW_CHAT,
                NotificationContext(
                    chat_id=chat.id,
                    animal_id=context.animal_id,
                    animal_name=animal_name,
                    interested_name=interested_name,
                ),
            ),
        )
        return DispatchResult.processed(delivery=delivery.to_dict())

    # MESSAGE_CREATED

    async def _on_message_created(
        self, document_path: str, data: dict[str, Any]
    ) -> DispatchResult:
        segments = _split_path(document_path)
        if len(segments) < 4:
            raise MalformedEventError("message path must be chats/{id}/messages/{id}")
        chat_id, message_id = segments[-3], segments[-1]

        message = parse_message(chat_id, message_id, data)
        if message.from_system:
            return DispatchResult.skipped(SKIP_SYSTEM_MESSAGE)

        chat_path = join_path(*segments[:-2])
        chat_doc = await self._store.get(chat_path)
        if chat_doc is None:
            return DispatchResult.skipped(SKIP_CHAT_NOT_FOUND)

        chat = parse_chat_room(chat_id, chat_doc.data)
        if chat.adoption_confirmed:
            return DispatchResult.skipped(SKIP_CHAT_FINALIZED)

        recipient_id = chat.other_participant(message.sender.id)
        if recipient_id is None:
            return DispatchResult.skipped(SKIP_NO_RECIPIENT)

        sender_name = message.sender.name or await self._recipients.display_name(
            message.sender.id
        )
        delivery = await self._sender.send(
            recipient_id,
            compose(
                NotificationKind.NEW_MESSAGE,
                NotificationContext(
                    chat_id=chat.id,
                    animal_id=chat.context.animal_id,
                    animal_name=chat.context.animal_name,
                    sender_id=message.sender.id,
                    sender_name=sender_name,
                    message_text=message.text,
                ),
            ),
        )

        if delivery.reason != SKIP_NOT_FOUND:
            await self._store.increment(
                chat_path,
                f"unread_{recipient_id}",
                1,
                extra={"lastNotificationAt": self._clock()},
            )
        return DispatchResult.processed(delivery=delivery.to_dict())

    # ADOPTION_INTENT_CREATED

    async def _on_intent_created(
        self, document_path: str, data: dict[str, Any]
    ) -> DispatchResult:
        segments = _split_path(document_path)
        intent = parse_adoption_intent(segments[-1], data)

        if intent.status is AdoptionStatus.PENDING:
            return DispatchResult.skipped(SKIP_PENDING_INTENT)
        if intent.status is AdoptionStatus.DENIED:
            return await self._notify_denied(intent)
        return await self._confirm(intent)

    async def _confirm(self, intent: AdoptionIntent) -> DispatchResult:
        resolution = await self._resolver.resolve(intent)
        if resolution.lost:
            return DispatchResult.skipped(
                SKIP_ALREADY_ADOPTED, resolution=resolution.to_dict()
            )
        if not resolution.committed:
            # Competing requests are still PENDING; cleanup would strand them
            return DispatchResult.failed("auto-deny-batch-failed")

        animal_name = resolution.animal_name or intent.animal_name
        cleanup = await self._lifecycle.finalize(intent, animal_name=animal_name)

        owner_name = intent.owner_name or await self._recipients.display_name(
            intent.owner_id or cleanup.previous_owner_id
        )
        delivery = await self._sender.send(
            intent.interested_id,
            compose(
                NotificationKind.ADOPTION_CONFIRMED,
                NotificationContext(
                    chat_id=intent.chat_id,
                    animal_id=intent.animal_id,
                    animal_name=animal_name,
                    owner_name=owner_name,
                ),
            ),
        )
        return DispatchResult.processed(
            resolution=resolution.to_dict(),
            cleanup=cleanup.to_dict(),
            delivery=delivery.to_dict(),
        )

    async def _notify_denied(self, intent: AdoptionIntent) -> DispatchResult:
        owner_name = intent.owner_name or await self._recipients.display_name(
            intent.owner_id
        )
        animal_name = intent.animal_name or await self._animal_name(intent.animal_id)
        delivery = await self._sender.send(
            intent.interested_id,
            compose(
                NotificationKind.ADOPTION_REJECTED,
                NotificationContext(
                    chat_id=intent.chat_id,
                    animal_id=intent.animal_id,
                    animal_name=animal_name,
                    owner_name=owner_name,
                    auto_denied=intent.auto_denied,
                ),
            ),
        )
        return DispatchResult.processed(delivery=delivery.to_dict())

    async def _animal_name(self, animal_id: str) -> str | None:
        doc = await self._store.get(join_path(self._collections.animals, animal_id))
        if doc is None:
            return None
        name = doc.data.get("name") or doc.data.get("nome")
        return name if isinstance(name, str) and name else None

    def _skip(
        self,
        reason: str,
        log_ctx: dict[str, Any],
        result: DispatchResult | None = None,
    ) -> DispatchResult:
        logger.info(
            "event skipped",
            extra={"extra_fields": {**log_ctx, **safe_log_context(reason=reason)}},
        )
        return result or DispatchResult.skipped(reason)
