"""Recipient resolution: user id -> display name + push token."""

from __future__ import annotations

from dataclasses import dataclass

from petly.domain.events import parse_user_profile
from petly.domain.models import UserProfile
from petly.store.base import DocumentStore, join_path

from .composer import SOMEONE


@dataclass(frozen=True)
class Recipient:
    user_id: str
    display_name: str
    token: str | None
    notifications_enabled: bool = True


def display_name_for(profile: UserProfile) -> str:
    """username, then displayName, then the "Someone" placeholder."""
    return profile.username or profile.display_name or SOMEONE


class RecipientResolver:
    """Looks up users/{userId}. A missing profile is None, never an exception."""

    def __init__(self, store: DocumentStore, users_collection: str = "users") -> None:
        self._store = store
        self._users = users_collection

    async def resolve(self, user_id: str) -> Recipient | None:
        if not user_id:
            return None
        doc = await self._store.get(join_path(self._users, user_id))
        if doc is None:
            return None
        profile = parse_user_profile(user_id, doc.data)
        return Recipient(
            user_id=user_id,
            display_name=display_name_for(profile),
            token=profile.push_token,
            notifications_enabled=profile.notifications_enabled,
        )

    async def display_name(self, user_id: str | None) -> str:
        """Name for use inside another user's notification text."""
        if not user_id:
            return SOMEONE
        recipient = await self.resolve(user_id)
        return recipient.display_name if recipient else SOMEONE
