"""Seed a Firestore emulator / dev project with one adoption scenario.

Usage:
    STORE_BACKEND=firestore FIRESTORE_EMULATOR_HOST=localhost:8080 \
        GOOGLE_CLOUD_PROJECT=petly-dev uv run python -m petly.operations.seed_local

Creates an owner, two interested users, one animal, a chat per interested
user (with a message each) and a PENDING intent per chat. Re-running
overwrites the same documents.
"""

import asyncio
import os
import sys
from datetime import datetime, timezone

from petly.domain.models import chat_room_id
from petly.infra.settings import CollectionNames, load_settings
from petly.store.base import DocumentStore, join_path

OWNER_ID = "seed-owner"
ANIMAL_ID = "seed-animal-rex"
INTERESTED = (
    ("seed-adopter-ana", "ana"),
    ("seed-adopter-bruno", "bruno"),
)


def env(name: str, default: str | None = None) -> str:
    v = os.getenv(name, default)
    if v is None or v.strip() == "":
        raise RuntimeError(f"Missing env var: {name}")
    return v


async def seed(store: DocumentStore, collections: CollectionNames) -> list[str]:
    """Write the scenario. Returns the created chat ids."""
    now = datetime.now(timezone.utc)
    token_prefix = os.getenv("SEED_TOKEN_PREFIX", "seed-token")

    await store.set(
        join_path(collections.users, OWNER_ID),
        {"username": "owner", "pushToken": f"{token_prefix}-{OWNER_ID}"},
    )
    await store.set(
        join_path(collections.animals, ANIMAL_ID),
        {"name": "Rex", "ownerId": OWNER_ID, "available": True},
    )

    chat_ids: list[str] = []
    for user_id, username in INTERESTED:
        await store.set(
            join_path(collections.users, user_id),
            {"username": username, "pushToken": f"{token_prefix}-{user_id}"},
        )

        chat_id = chat_room_id(ANIMAL_ID, OWNER_ID, user_id)
        chat_path = join_path(collections.chats, chat_id)
        await store.set(
            chat_path,
            {
                "participants": [OWNER_ID, user_id],
                "context": {
                    "animalId": ANIMAL_ID,
                    "ownerId": OWNER_ID,
                    "interestedId": user_id,
                    "animalName": "Rex",
                },
                "lastMessage": "Hi! Is Rex still available?",
                "lastMessageAt": now,
            },
        )
        await store.set(
            join_path(
                collections.chats, chat_id, collections.messages, f"seed-message-{user_id}"
            ),
            {
                "text": "Hi! Is Rex still available?",
                "createdAt": now,
                "sender": {"id": user_id, "name": username},
            },
        )
        await store.set(
            join_path(collections.adoption_intents, f"seed-intent-{user_id}"),
            {
                "animalId": ANIMAL_ID,
                "chatId": chat_id,
                "interestedId": user_id,
                "ownerId": OWNER_ID,
                "status": "pending",
                "animalName": "Rex",
                "createdAt": now,
            },
        )
        chat_ids.append(chat_id)

    return chat_ids


def main() -> int:
    if env("STORE_BACKEND", "memory") != "firestore":
        sys.stderr.write("STORE_BACKEND=firestore is required (memory store is per-process)\n")
        return 1

    from petly.store.firestore_store import FirestoreDocumentStore, create_client

    settings = load_settings()
    store = FirestoreDocumentStore(
        create_client(settings.project_id, settings.firestore_database)
    )
    chat_ids = asyncio.run(seed(store, settings.collections))

    sys.stdout.write(f"seeded animal={ANIMAL_ID} chats={len(chat_ids)}\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
