"""Process configuration loaded from environment variables.

Read once in create_app() and handed to build_services(); nothing else in
the package reads os.environ for backend selection.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal

StoreBackend = Literal["memory", "firestore"]
PushBackend = Literal["inline", "fcm"]

_STORE_BACKENDS = ("memory", "firestore")
_PUSH_BACKENDS = ("inline", "fcm")


@dataclass(frozen=True)
class CollectionNames:
    """Document store collection names."""

    users: str = "users"
    animals: str = "animals"
    chats: str = "chats"
    messages: str = "messages"
    adoption_intents: str = "adoptionIntents"


@dataclass(frozen=True)
class Settings:
    """Service settings.

    Attributes:
        app_role: "public" mounts only health; "worker" mounts triggers and
            notification admin routes.
        store_backend: Document store implementation.
        push_backend: Push gateway implementation.
        project_id: GCP project for Firestore / FCM (None = ADC default).
        firestore_database: Firestore database id.
        collections: Collection names.
    """

    app_role: Literal["public", "worker"] = "public"
    store_backend: StoreBackend = "memory"
    push_backend: PushBackend = "inline"
    project_id: str | None = None
    firestore_database: str = "(default)"
    collections: CollectionNames = field(default_factory=CollectionNames)


def load_settings() -> Settings:
    """Build Settings from the environment.

    Raises:
        ValueError: If APP_ROLE, STORE_BACKEND or PUSH_BACKEND is unknown.
    """
    app_role = os.environ.get("APP_ROLE", "public")
    if app_role not in ("public", "worker"):
        raise ValueError(f"Unknown APP_ROLE: {app_role}")

    store_backend = os.environ.get("STORE_BACKEND", "memory")
    if store_backend not in _STORE_BACKENDS:
        raise ValueError(f"Unknown STORE_BACKEND: {store_backend}")

    push_backend = os.environ.get("PUSH_BACKEND", "inline")
    if push_backend not in _PUSH_BACKENDS:
        raise ValueError(f"Unknown PUSH_BACKEND: {push_backend}")

    defaults = CollectionNames()
    collections = CollectionNames(
        users=os.environ.get("COLLECTION_USERS", defaults.users),
        animals=os.environ.get("COLLECTION_ANIMALS", defaults.animals),
        chats=os.environ.get("COLLECTION_CHATS", defaults.chats),
        messages=os.environ.get("COLLECTION_MESSAGES", defaults.messages),
        adoption_intents=os.environ.get(
            "COLLECTION_ADOPTION_INTENTS", defaults.adoption_intents
        ),
    )

    return Settings(
        app_role=app_role,  # type: ignore[arg-type]
        store_backend=store_backend,  # type: ignore[arg-type]
        push_backend=push_backend,  # type: ignore[arg-type]
        project_id=os.environ.get("GOOGLE_CLOUD_PROJECT") or None,
        firestore_database=os.environ.get("FIRESTORE_DATABASE", "(default)"),
        collections=collections,
    )
