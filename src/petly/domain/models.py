"""Typed records for the documents the adoption engine reads and writes.

Documents are parsed into these at the boundary (see domain.events); the
business logic never touches raw maps.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

SYSTEM_SENDER_ID = "system"
SYSTEM_SENDER_NAME = "System"

AUTO_DENY_REASON = "animal adopted by someone else"


class AdoptionStatus(str, Enum):
    """Status an AdoptionIntent is created with. Stored lowercase."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    DENIED = "denied"

    @classmethod
    def parse(cls, value: object) -> "AdoptionStatus | None":
        """Parse a stored status, accepting upper case and legacy Portuguese values."""
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        return _STATUS_ALIASES.get(normalized)


_STATUS_ALIASES: dict[str, AdoptionStatus] = {
    "pending": AdoptionStatus.PENDING,
    "pendente": AdoptionStatus.PENDING,
    "confirmed": AdoptionStatus.CONFIRMED,
    "confirmada": AdoptionStatus.CONFIRMED,
    "denied": AdoptionStatus.DENIED,
    "recusada": AdoptionStatus.DENIED,
}


@dataclass(frozen=True)
class Animal:
    id: str
    owner_id: str
    available: bool
    name: str | None = None
    adopted_by: str | None = None
    adopted_at: datetime | None = None
    confirmed_intent_id: str | None = None


@dataclass(frozen=True)
class ChatContext:
    """Which animal a chat is about, and between whom."""

    animal_id: str
    owner_id: str
    interested_id: str
    animal_name: str | None = None


@dataclass(frozen=True)
class ChatRoom:
    id: str
    participants: frozenset[str]
    context: ChatContext
    last_message: str | None = None
    last_message_at: datetime | None = None
    adoption_confirmed: bool = False

    def other_participant(self, user_id: str) -> str | None:
        """Return the participant that is not `user_id` (None if not a member)."""
        if user_id not in self.participants:
            return None
        others = self.participants - {user_id}
        return next(iter(others), None)

    def is_pair(self, a: str, b: str) -> bool:
        """Membership check that ignores participant order."""
        return self.participants == frozenset({a, b})


@dataclass(frozen=True)
class Sender:
    id: str
    name: str | None = None


@dataclass(frozen=True)
class Message:
    id: str
    chat_id: str
    text: str
    sender: Sender
    created_at: datetime | None = None
    is_system: bool = False

    @property
    def from_system(self) -> bool:
        return self.is_system or self.sender.id == SYSTEM_SENDER_ID


@dataclass(frozen=True)
class AdoptionIntent:
    """An immutable adoption fact: a pending request or a final decision.

    Only the auto-deny transition (PENDING -> DENIED with auto_denied=True)
    ever rewrites one after creation.
    """

    id: str
    animal_id: str
    chat_id: str | None
    interested_id: str
    owner_id: str | None
    status: AdoptionStatus
    auto_denied: bool = False
    reason: str | None = None
    created_at: datetime | None = None
    decided_at: datetime | None = None
    owner_name: str | None = None
    animal_name: str | None = None
    interested_name: str | None = None


@dataclass(frozen=True)
class UserProfile:
    id: str
    display_name: str | None = None
    username: str | None = None
    push_token: str | None = None
    notifications_enabled: bool = True


def chat_room_id(animal_id: str, owner_id: str, interested_id: str) -> str:
    """Deterministic chat id the client uses when interest is expressed."""
    return f"{animal_id}_{owner_id}_{interested_id}"
