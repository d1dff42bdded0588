"""Push notification composer.

Pure mapping (kind, context) -> PushPayload. No I/O, never raises: every
NotificationKind has a template, and missing context values fall back to
neutral placeholders instead of failing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

MESSAGE_PREVIEW_LIMIT = 50
ELLIPSIS = "..."

DEFAULT_COLOR = "#2196F3"
CLICK_ACTION = "FLUTTER_NOTIFICATION_CLICK"

SOMEONE = "Someone"
THE_ANIMAL = "the animal"
THE_OWNER = "The owner"


class NotificationKind(str, Enum):
    NEW_CHAT = "NEW_CHAT"
    NEW_MESSAGE = "NEW_MESSAGE"
    ADOPTION_CONFIRMED = "ADOPTION_CONFIRMED"
    ADOPTION_REJECTED = "ADOPTION_REJECTED"
    REMINDER = "REMINDER"
    TEST = "TEST"


@dataclass(frozen=True)
class Template:
    title: str
    body: str
    data_type: str
    channel: str
    color: str
    tag: str
    category: str | None = None


TEMPLATES: dict[NotificationKind, Template] = {
    NotificationKind.NEW_CHAT: Template(
        title="New conversation started",
        body="{interested_name} is interested in adopting {animal_name}",
        data_type="new_chat",
        channel="new_chats",
        color="#88c9bf",
        tag="new_chat",
        category="NEW_CHAT",
    ),
    NotificationKind.NEW_MESSAGE: Template(
        title="New message",
        body="{sender_name}: {message_preview}",
        data_type="nova_mensagem",
        channel="messages",
        color=DEFAULT_COLOR,
        tag="chat_{chat_id}",
    ),
    NotificationKind.ADOPTION_CONFIRMED: Template(
        title="Adoption confirmed",
        body="{owner_name} confirmed your adoption of {animal_name}",
        data_type="adocao_confirmada",
        channel="adoptions",
        color="#4CAF50",
        tag="adoption_status",
        category="ADOPTION_CONFIRMED",
    ),
    NotificationKind.ADOPTION_REJECTED: Template(
        title="Adoption not approved",
        body="{owner_name} did not approve your request for {animal_name}",
        data_type="adocao_recusada",
        channel="adoptions",
        color="#f44336",
        tag="adoption_status",
        category="ADOPTION_DENIED",
    ),
    NotificationKind.REMINDER: Template(
        title="{title}",
        body="{body}",
        data_type="lembrete",
        channel="reminders",
        color="#FF9800",
        tag="reminder",
    ),
    NotificationKind.TEST: Template(
        title="Test notification",
        body="This is a test notification from the system!",
        data_type="test",
        channel="tests",
        color=DEFAULT_COLOR,
        tag="test",
    ),
}

# Body used when the rejection comes from auto-deny rather than the owner
AUTO_DENIED_BODY = "{animal_name_capitalized} was adopted by someone else."


@dataclass(frozen=True)
class NotificationContext:
    """Values a template may reference. All optional; see placeholders above."""

    chat_id: str | None = None
    animal_id: str | None = None
    animal_name: str | None = None
    interested_name: str | None = None
    owner_name: str | None = None
    sender_id: str | None = None
    sender_name: str | None = None
    message_text: str | None = None
    auto_denied: bool = False
    title: str | None = None
    body: str | None = None
    extra_data: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PlatformHints:
    channel: str
    color: str
    tag: str
    sound: str = "default"
    badge: int = 1
    category: str | None = None


@dataclass(frozen=True)
class PushPayload:
    """Provider-neutral push request body (minus the token)."""

    kind: NotificationKind
    title: str
    body: str
    data: dict[str, str]
    hints: PlatformHints

    def to_dict(self) -> dict[str, Any]:
        return {
            "notification": {"title": self.title, "body": self.body},
            "data": dict(self.data),
            "platformHints": {
                "channel": self.hints.channel,
                "color": self.hints.color,
                "tag": self.hints.tag,
                "sound": self.hints.sound,
                "badge": self.hints.badge,
                "category": self.hints.category,
            },
        }


def truncate_text(text: str, limit: int = MESSAGE_PREVIEW_LIMIT) -> str:
    """Cut text to `limit` characters, appending "..." when anything was cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def _template_values(ctx: NotificationContext) -> dict[str, str]:
    animal_name = ctx.animal_name or THE_ANIMAL
    return {
        "chat_id": ctx.chat_id or "",
        "animal_name": animal_name,
        "animal_name_capitalized": animal_name[:1].upper() + animal_name[1:],
        "interested_name": ctx.interested_name or SOMEONE,
        "owner_name": ctx.owner_name or THE_OWNER,
        "sender_name": ctx.sender_name or SOMEONE,
        "message_preview": truncate_text(ctx.message_text or ""),
        "title": ctx.title or "New notification",
        "body": ctx.body or "You have a new notification",
    }


def compose(kind: NotificationKind, ctx: NotificationContext) -> PushPayload:
    """Render the push payload for `kind`.

    The data map carries enough for the client to deep-link into the chat
    without another lookup: type, chatId, animalId, animalName.
    """
    template = TEMPLATES[kind]
    values = _template_values(ctx)

    body_template = template.body
    if kind is NotificationKind.ADOPTION_REJECTED and ctx.auto_denied:
        body_template = AUTO_DENIED_BODY

    data: dict[str, str] = dict(ctx.extra_data)
    data["type"] = template.data_type
    if ctx.chat_id:
        data["chatId"] = ctx.chat_id
        data["screenToOpen"] = "ChatScreen"
    if ctx.animal_id:
        data["animalId"] = ctx.animal_id
    if ctx.animal_name:
        data["animalName"] = ctx.animal_name
    if ctx.sender_id:
        data["senderId"] = ctx.sender_id
    data["click_action"] = CLICK_ACTION

    return PushPayload(
        kind=kind,
        title=template.title.format(**values),
        body=body_template.format(**values),
        data=data,
        hints=PlatformHints(
            channel=template.channel,
            color=template.color,
            tag=template.tag.format(**values),
            category=template.category,
        ),
    )
