"""Chat lifecycle after a confirmed adoption.

Steps, in order:
1. Transfer the animal to the adopter (ownerId, adoptedBy, adoptedAt)
2. Post a system message in the confirmed chat and mark it finalized
3. Find every other chat about the same animal
4. Delete the stale ones (messages first, chat document last)

The confirmed chat and any chat between exactly the old owner and the
adopter are never deleted. Steps 3-4 only run after 1-2 completed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from petly.infra.settings import CollectionNames
from petly.infra.time import Clock, utc_now
from petly.observability.logging import get_logger
from petly.observability.redaction import safe_log_context
from petly.store.base import (
    MAX_BATCH_WRITES,
    Document,
    DocumentStore,
    FieldFilter,
    join_path,
)

from .models import SYSTEM_SENDER_ID, SYSTEM_SENDER_NAME, AdoptionIntent

logger = get_logger(__name__)

CONFIRMATION_MESSAGE_PREFIX = "adoption-confirmed-"


@dataclass(frozen=True)
class CleanupResult:
    """What finalize() did to the chats of one animal."""

    deleted_chat_ids: tuple[str, ...] = ()
    preserved_chat_ids: tuple[str, ...] = ()
    failed_chat_ids: tuple[str, ...] = ()
    system_message_id: str | None = None
    previous_owner_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "deletedChats": list(self.deleted_chat_ids),
            "preservedChats": list(self.preserved_chat_ids),
            "failedChats": list(self.failed_chat_ids),
            "systemMessageId": self.system_message_id,
        }


def confirmation_text(animal_name: str | None) -> str:
    name = animal_name or "This animal"
    return f"Adoption confirmed! {name} has a new home."


def _participants(data: dict[str, Any]) -> frozenset[str]:
    raw = data.get("participants")
    if not isinstance(raw, list):
        return frozenset()
    return frozenset(p for p in raw if isinstance(p, str) and p)


def _context_owner(data: dict[str, Any] | None) -> str | None:
    if not data:
        return None
    context = data.get("context") or data.get("_chatContext")
    if not isinstance(context, dict):
        return None
    owner = context.get("ownerId") or context.get("donoId")
    return owner if isinstance(owner, str) and owner else None


class ChatLifecycleManager:
    """Ownership transfer and chat cleanup for a confirmed intent."""

    def __init__(
        self,
        store: DocumentStore,
        collections: CollectionNames | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._collections = collections or CollectionNames()
        self._clock = clock

    async def finalize(
        self, intent: AdoptionIntent, *, animal_name: str | None = None
    ) -> CleanupResult:
        """Run all steps for a confirmed intent.

        Errors from steps 1-2 propagate (cleanup must not run without them);
        per-chat deletion errors in step 4 are collected instead.
        """
        owner_id = await self.transfer_ownership(intent)
        message_id = await self.announce_confirmation(
            intent, animal_name=animal_name or intent.animal_name
        )
        result = await self.cleanup_stale_chats(intent, owner_id)
        return CleanupResult(
            deleted_chat_ids=result.deleted_chat_ids,
            preserved_chat_ids=result.preserved_chat_ids,
            failed_chat_ids=result.failed_chat_ids,
            system_message_id=message_id,
            previous_owner_id=owner_id or result.previous_owner_id,
        )

    async def transfer_ownership(self, intent: AdoptionIntent) -> str | None:
        """Make the adopter the animal's owner. Returns the previous owner id.

        A no-op write-wise when the animal already belongs to the adopter
        (re-delivery).
        """
        path = join_path(self._collections.animals, intent.animal_id)
        doc = await self._store.get(path)
        if doc is None:
            logger.warning(
                "animal missing, ownership not transferred",
                extra={
                    "extra_fields": safe_log_context(
                        intent_id=intent.id, animal_id=intent.animal_id
                    )
                },
            )
            return intent.owner_id

        current_owner = doc.data.get("ownerId") or doc.data.get("dono")
        adopter = intent.interested_id

        if current_owner == adopter and doc.data.get("adoptedBy") == adopter:
            return intent.owner_id or doc.data.get("previousOwnerId")

        previous_owner = intent.owner_id or current_owner
        await self._store.update(
            path,
            {
                "available": False,
                "adoptedBy": adopter,
                "adoptedAt": self._clock(),
                "ownerId": adopter,
                "previousOwnerId": previous_owner,
            },
        )
        logger.info(
            "animal ownership transferred",
            extra={
                "extra_fields": safe_log_context(
                    intent_id=intent.id, animal_id=intent.animal_id
                )
            },
        )
        return previous_owner

    async def announce_confirmation(
        self, intent: AdoptionIntent, *, animal_name: str | None = None
    ) -> str | None:
        """Append the system message to the confirmed chat (once per intent)."""
        if not intent.chat_id:
            return None

        chat_path = join_path(self._collections.chats, intent.chat_id)
        chat = await self._store.get(chat_path)
        if chat is None:
            logger.warning(
                "confirmed chat missing, no system message",
                extra={"extra_fields": safe_log_context(intent_id=intent.id)},
            )
            return None

        message_id = f"{CONFIRMATION_MESSAGE_PREFIX}{intent.id}"
        now = self._clock()
        text = confirmation_text(animal_name)

        created = await self._store.create(
            join_path(
                self._collections.chats,
                intent.chat_id,
                self._collections.messages,
                message_id,
            ),
            {
                "text": text,
                "createdAt": now,
                "sender": {"id": SYSTEM_SENDER_ID, "name": SYSTEM_SENDER_NAME},
                "isSystem": True,
            },
        )
        # A redelivery may find the message written but the chat not yet marked
        if created or not chat.data.get("adoptionConfirmed"):
            await self._store.update(
                chat_path,
                {"adoptionConfirmed": True, "lastMessage": text, "lastMessageAt": now},
            )
        return message_id

    async def cleanup_stale_chats(
        self, intent: AdoptionIntent, owner_id: str | None
    ) -> CleanupResult:
        """Delete the animal's other chats, keeping the owner/adopter pair.

        When `owner_id` is unknown it is read from the confirmed chat's
        context. If that fails too, every chat the adopter takes part in is
        kept, since the direct pair cannot be told apart.
        """
        chats = await self._chats_for_animal(intent.animal_id)
        if not owner_id:
            owner_id = _context_owner(
                next((c.data for c in chats if c.id == intent.chat_id), None)
            )
        if not owner_id:
            logger.warning(
                "owner unknown, keeping every chat with the adopter",
                extra={
                    "extra_fields": safe_log_context(
                        intent_id=intent.id, animal_id=intent.animal_id
                    )
                },
            )
        keep_pair = (
            frozenset({owner_id, intent.interested_id}) if owner_id else None
        )

        preserved: list[str] = []
        stale: list[Document] = []
        for chat in chats:
            members = _participants(chat.data)
            if chat.id == intent.chat_id:
                preserved.append(chat.id)
            elif keep_pair is not None and members == keep_pair:
                preserved.append(chat.id)
            elif keep_pair is None and intent.interested_id in members:
                preserved.append(chat.id)
            else:
                stale.append(chat)

        outcomes = await asyncio.gather(
            *(self._delete_chat(chat) for chat in stale), return_exceptions=True
        )

        deleted: list[str] = []
        failed: list[str] = []
        for chat, outcome in zip(stale, outcomes):
            if isinstance(outcome, BaseException):
                failed.append(chat.id)
                logger.error(
                    "stale chat deletion failed",
                    extra={
                        "extra_fields": safe_log_context(
                            chat_id=chat.id,
                            animal_id=intent.animal_id,
                            error_type=type(outcome).__name__,
                        )
                    },
                )
            else:
                deleted.append(chat.id)

        logger.info(
            "stale chats cleaned up",
            extra={
                "extra_fields": safe_log_context(
                    intent_id=intent.id,
                    deleted_count=len(deleted),
                    preserved_count=len(preserved),
                    failed_count=len(failed),
                )
            },
        )
        return CleanupResult(
            deleted_chat_ids=tuple(deleted),
            preserved_chat_ids=tuple(preserved),
            failed_chat_ids=tuple(failed),
            previous_owner_id=owner_id,
        )

    async def _chats_for_animal(self, animal_id: str) -> list[Document]:
        found: dict[str, Document] = {}
        # Older clients stored the context under "_chatContext"
        for field_path in ("context.animalId", "_chatContext.animalId"):
            for doc in await self._store.query(
                self._collections.chats, [FieldFilter(field_path, "==", animal_id)]
            ):
                found.setdefault(doc.path, doc)
        return list(found.values())

    async def _delete_chat(self, chat: Document) -> None:
        """Delete a chat's messages and then the chat, in atomic batches.

        Chats with more messages than fit in one batch are deleted over
        several batches; the chat document goes in the last one, so a
        partial failure leaves the chat in place for the next delivery.
        """
        messages = await self._store.list_documents(
            join_path(self._collections.chats, chat.id, self._collections.messages)
        )
        paths = [m.path for m in messages] + [chat.path]

        for start in range(0, len(paths), MAX_BATCH_WRITES):
            batch = self._store.batch()
            for path in paths[start:start + MAX_BATCH_WRITES]:
                batch.delete(path)
            await batch.commit()
