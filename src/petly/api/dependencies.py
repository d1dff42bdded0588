"""Service container.

Built once per process in create_app() and stored on app.state.services;
route handlers read it from the request instead of module-level clients.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from petly.domain.adoption_resolver import AdoptionResolver
from petly.domain.chat_lifecycle import ChatLifecycleManager
from petly.domain.dispatcher import EventDispatcher
from petly.infra.settings import Settings
from petly.notifications.gateway import FcmGateway, InlineGateway, PushGateway
from petly.notifications.recipients import RecipientResolver
from petly.notifications.sender import NotificationSender
from petly.store.base import DocumentStore
from petly.store.memory_store import InMemoryDocumentStore


@dataclass
class Services:
    settings: Settings
    store: DocumentStore
    gateway: PushGateway
    recipients: RecipientResolver
    sender: NotificationSender
    dispatcher: EventDispatcher


def _build_store(settings: Settings) -> DocumentStore:
    if settings.store_backend == "firestore":
        # Imported lazily so memory-backed runs need no GCP credentials
        from petly.store.firestore_store import FirestoreDocumentStore, create_client

        return FirestoreDocumentStore(
            create_client(settings.project_id, settings.firestore_database)
        )
    return InMemoryDocumentStore()


def _build_gateway(settings: Settings) -> PushGateway:
    if settings.push_backend == "fcm":
        return FcmGateway.from_project(settings.project_id)
    return InlineGateway()


def build_services(
    settings: Settings,
    *,
    store: DocumentStore | None = None,
    gateway: PushGateway | None = None,
) -> Services:
    """Wire every domain service for one process.

    `store` / `gateway` override the configured backends (tests, scripts).
    """
    store = store if store is not None else _build_store(settings)
    gateway = gateway if gateway is not None else _build_gateway(settings)
    collections = settings.collections

    recipients = RecipientResolver(store, users_collection=collections.users)
    sender = NotificationSender(recipients, gateway)
    dispatcher = EventDispatcher(
        store=store,
        resolver=AdoptionResolver(store, sender, collections=collections),
        lifecycle=ChatLifecycleManager(store, collections=collections),
        sender=sender,
        recipients=recipients,
        collections=collections,
    )
    return Services(
        settings=settings,
        store=store,
        gateway=gateway,
        recipients=recipients,
        sender=sender,
        dispatcher=dispatcher,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
