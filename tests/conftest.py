"""Shared pytest fixtures for petly tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from petly.api.dependencies import build_services  # noqa: E402
from petly.api.factory import create_app  # noqa: E402
from petly.domain.adoption_resolver import AdoptionResolver  # noqa: E402
from petly.domain.chat_lifecycle import ChatLifecycleManager  # noqa: E402
from petly.domain.dispatcher import EventDispatcher  # noqa: E402
from petly.infra.settings import Settings  # noqa: E402
from petly.notifications.gateway import InlineGateway  # noqa: E402
from petly.notifications.recipients import RecipientResolver  # noqa: E402
from petly.notifications.sender import NotificationSender  # noqa: E402
from petly.store.memory_store import InMemoryDocumentStore  # noqa: E402

from helpers import fixed_clock  # noqa: E402


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def gateway():
    return InlineGateway()


@pytest.fixture
def recipients(store):
    return RecipientResolver(store)


@pytest.fixture
def sender(recipients, gateway):
    return NotificationSender(recipients, gateway)


@pytest.fixture
def resolver(store, sender):
    return AdoptionResolver(store, sender, clock=fixed_clock)


@pytest.fixture
def lifecycle(store):
    return ChatLifecycleManager(store, clock=fixed_clock)


@pytest.fixture
def dispatcher(store, resolver, lifecycle, sender, recipients):
    return EventDispatcher(
        store=store,
        resolver=resolver,
        lifecycle=lifecycle,
        sender=sender,
        recipients=recipients,
        clock=fixed_clock,
    )


@pytest.fixture
def services(store, gateway):
    return build_services(Settings(app_role="worker"), store=store, gateway=gateway)


@pytest.fixture
def worker_client(services):
    """Worker app backed by the in-memory store (no auth mock)."""
    return TestClient(create_app(role="worker", services=services))


@pytest.fixture
def local_auth(monkeypatch):
    """Enable the local-dev shared secret and return the headers that pass it."""
    monkeypatch.setenv("TRIGGERS_OIDC_AUDIENCE", "petly-triggers-local")
    monkeypatch.setenv("INTERNAL_TRIGGER_SECRET", "local-secret")
    return {"X-Internal-Trigger-Secret": "local-secret"}
