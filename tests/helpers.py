"""Shared test helper functions for petly tests.

Regular functions (not fixtures) that seed the in-memory store with the
documents the client app would have written.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from petly.store.memory_store import InMemoryDocumentStore

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


def token_for(user_id: str) -> str:
    return f"token-{user_id}"


def seed_user(
    store: InMemoryDocumentStore,
    user_id: str,
    *,
    username: str | None = None,
    with_token: bool = True,
    **extra: Any,
) -> None:
    data: dict[str, Any] = {"username": username or user_id}
    if with_token:
        data["pushToken"] = token_for(user_id)
    data.update(extra)
    store.seed(f"users/{user_id}", data)


def seed_animal(
    store: InMemoryDocumentStore,
    animal_id: str = "rex",
    *,
    owner_id: str = "owner",
    name: str = "Rex",
    **extra: Any,
) -> None:
    store.seed(
        f"animals/{animal_id}",
        {"name": name, "ownerId": owner_id, "available": True, **extra},
    )


def seed_chat(
    store: InMemoryDocumentStore,
    chat_id: str,
    *,
    animal_id: str = "rex",
    owner_id: str = "owner",
    interested_id: str,
    participants: list[str] | None = None,
    messages: int = 0,
    **extra: Any,
) -> str:
    path = f"chats/{chat_id}"
    store.seed(
        path,
        {
            "participants": participants or [owner_id, interested_id],
            "context": {
                "animalId": animal_id,
                "ownerId": owner_id,
                "interestedId": interested_id,
                "animalName": "Rex",
            },
            **extra,
        },
    )
    for i in range(messages):
        store.seed(
            f"{path}/messages/m{i:04d}",
            {"text": f"hello {i}", "sender": {"id": interested_id}},
        )
    return path


def seed_intent(
    store: InMemoryDocumentStore,
    intent_id: str,
    *,
    interested_id: str,
    animal_id: str = "rex",
    status: str = "pending",
    chat_id: str | None = None,
    owner_id: str = "owner",
    minutes_ago: int = 0,
    **extra: Any,
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "animalId": animal_id,
        "interestedId": interested_id,
        "ownerId": owner_id,
        "status": status,
        "createdAt": FIXED_NOW - timedelta(minutes=minutes_ago),
        **extra,
    }
    if chat_id:
        data["chatId"] = chat_id
    store.seed(f"adoptionIntents/{intent_id}", data)
    return data


def messages_under(store: InMemoryDocumentStore, chat_path: str) -> list[str]:
    prefix = f"{chat_path}/messages/"
    return [p for p in store._docs if p.startswith(prefix)]
