"""Boundary parsers: raw document maps -> typed records.

Each parser either returns a fully-populated record or raises
MalformedEventError. Older clients wrote Portuguese field names
(`_chatContext.donoId`, `interessadoId`, `fcmToken`, ...); those are read
as fallbacks so existing data keeps working.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from petly.infra.time import ensure_utc

from .errors import MalformedEventError
from .models import (
    AdoptionIntent,
    AdoptionStatus,
    Animal,
    ChatContext,
    ChatRoom,
    Message,
    Sender,
    UserProfile,
)

# Markers the client sets on documents created by its notification self-tests
TEST_MARKERS = ("isTestNotification", "isDelayedTest", "_testNotification", "_delayedTest")


class TriggerStream(str, Enum):
    """Document-created event streams the dispatcher handles."""

    CHAT_CREATED = "chat_created"
    MESSAGE_CREATED = "message_created"
    ADOPTION_INTENT_CREATED = "adoption_intent_created"


def is_test_data(data: dict[str, Any]) -> bool:
    return any(bool(data.get(marker)) for marker in TEST_MARKERS)


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def _str_or_none(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _required_str(data: dict[str, Any], *keys: str) -> str:
    value = _str_or_none(_first(data, *keys))
    if value is None:
        raise MalformedEventError(f"missing {keys[0]}")
    return value


def _as_datetime(value: Any) -> datetime | None:
    """Accept datetimes (Firestore snapshots) and ISO strings (decoded triggers)."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str) and value:
        try:
            return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def parse_chat_room(chat_id: str, data: dict[str, Any]) -> ChatRoom:
    """Parse a chats/{chatId} document.

    Raises:
        MalformedEventError: If participants are not exactly two ids or the
            context lacks animal / owner / interested ids.
    """
    participants = data.get("participants")
    if not isinstance(participants, list) or not participants:
        raise MalformedEventError("missing participants")
    members = frozenset(p for p in participants if _str_or_none(p))
    if len(members) != 2:
        raise MalformedEventError("chat must have exactly two participants")

    raw_context = data.get("context") or data.get("_chatContext") or {}
    if not isinstance(raw_context, dict):
        raise MalformedEventError("invalid context")

    context = ChatContext(
        animal_id=_required_str(raw_context, "animalId"),
        owner_id=_required_str(raw_context, "ownerId", "donoId"),
        interested_id=_required_str(raw_context, "interestedId"),
        animal_name=_str_or_none(raw_context.get("animalName")),
    )

    return ChatRoom(
        id=chat_id,
        participants=members,
        context=context,
        last_message=_str_or_none(data.get("lastMessage")),
        last_message_at=_as_datetime(
            _first(data, "lastMessageAt", "lastMessageTimestamp")
        ),
        adoption_confirmed=bool(data.get("adoptionConfirmed", False)),
    )


def parse_message(chat_id: str, message_id: str, data: dict[str, Any]) -> Message:
    """Parse a chats/{chatId}/messages/{messageId} document.

    Raises:
        MalformedEventError: If the sender id is missing.
    """
    raw_sender = data.get("sender") or data.get("user") or {}
    if not isinstance(raw_sender, dict):
        raise MalformedEventError("invalid sender")

    sender = Sender(
        id=_required_str(raw_sender, "id", "_id"),
        name=_str_or_none(raw_sender.get("name")),
    )
    text = data.get("text")

    return Message(
        id=message_id,
        chat_id=chat_id,
        text=text if isinstance(text, str) else "",
        sender=sender,
        created_at=_as_datetime(data.get("createdAt")),
        is_system=bool(data.get("isSystem", False)),
    )


def parse_adoption_intent(intent_id: str, data: dict[str, Any]) -> AdoptionIntent:
    """Parse an adoptionIntents/{intentId} document.

    Raises:
        MalformedEventError: If animalId, interestedId or status is missing
            or the status is not one of pending / confirmed / denied.
    """
    animal_id = _required_str(data, "animalId")
    interested_id = _required_str(data, "interestedId", "interessadoId")

    status = AdoptionStatus.parse(data.get("status"))
    if status is None:
        raise MalformedEventError("missing or unknown status")

    return AdoptionIntent(
        id=intent_id,
        animal_id=animal_id,
        chat_id=_str_or_none(data.get("chatId")),
        interested_id=interested_id,
        owner_id=_str_or_none(_first(data, "ownerId", "donoId")),
        status=status,
        auto_denied=bool(data.get("autoDenied", False)),
        reason=_str_or_none(data.get("reason")),
        created_at=_as_datetime(data.get("createdAt")),
        decided_at=_as_datetime(_first(data, "decidedAt", "deniedAt")),
        owner_name=_str_or_none(_first(data, "ownerName", "donoName")),
        animal_name=_str_or_none(data.get("animalName")),
        interested_name=_str_or_none(_first(data, "interestedName", "interessadoName")),
    )


def parse_animal(animal_id: str, data: dict[str, Any]) -> Animal:
    """Parse an animals/{animalId} document.

    Raises:
        MalformedEventError: If the owner id is missing.
    """
    available = _first(data, "available", "disponivel")
    return Animal(
        id=animal_id,
        owner_id=_required_str(data, "ownerId", "dono"),
        available=bool(available) if available is not None else True,
        name=_str_or_none(_first(data, "name", "nome")),
        adopted_by=_str_or_none(data.get("adoptedBy")),
        adopted_at=_as_datetime(data.get("adoptedAt")),
        confirmed_intent_id=_str_or_none(data.get("confirmedIntentId")),
    )


def parse_user_profile(user_id: str, data: dict[str, Any]) -> UserProfile:
    """Parse a users/{userId} document. Never raises: every field is optional."""
    enabled = data.get("notificationsEnabled")
    return UserProfile(
        id=user_id,
        display_name=_str_or_none(_first(data, "displayName", "nome")),
        username=_str_or_none(data.get("username")),
        push_token=_str_or_none(_first(data, "pushToken", "fcmToken")),
        notifications_enabled=True if enabled is None else bool(enabled),
    )
