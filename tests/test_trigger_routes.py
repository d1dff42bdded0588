"""Tests for the trigger HTTP endpoints."""

from unittest.mock import patch

import pytest

from petly.observability.correlation import CORRELATION_ID_HEADER

from helpers import (
    messages_under,
    seed_animal,
    seed_chat,
    seed_intent,
    seed_user,
    token_for,
)


class TestAuth:
    @pytest.mark.parametrize(
        "path", ["/triggers/chats", "/triggers/messages", "/triggers/adoption-intents"]
    )
    def test_no_auth_returns_401(self, worker_client, path, monkeypatch):
        monkeypatch.setenv("TRIGGERS_OIDC_AUDIENCE", "https://petly-worker.run.app")
        response = worker_client.post(path, json={"document": "chats/c1", "data": {}})
        assert response.status_code == 401

    def test_wrong_secret_returns_401(self, worker_client, local_auth):
        response = worker_client.post(
            "/triggers/chats",
            json={"document": "chats/c1", "data": {}},
            headers={"X-Internal-Trigger-Secret": "wrong"},
        )
        assert response.status_code == 401

    def test_secret_ignored_outside_local_audience(self, worker_client, monkeypatch):
        monkeypatch.setenv("TRIGGERS_OIDC_AUDIENCE", "https://petly-worker.run.app")
        monkeypatch.setenv("INTERNAL_TRIGGER_SECRET", "local-secret")
        response = worker_client.post(
            "/triggers/chats",
            json={"document": "chats/c1", "data": {}},
            headers={"X-Internal-Trigger-Secret": "local-secret"},
        )
        assert response.status_code == 401

    def test_valid_oidc_passes(self, worker_client):
        with patch("petly.api.task_auth.verify_trigger_auth", return_value=True):
            response = worker_client.post(
                "/triggers/chats", json={"document": "chats/c1", "data": {}}
            )
        assert response.status_code == 200


class TestChatTrigger:
    def test_new_chat_notifies_owner(self, worker_client, store, gateway, local_auth):
        seed_user(store, "owner")
        seed_user(store, "ana")
        seed_animal(store)

        response = worker_client.post(
            "/triggers/chats",
            headers=local_auth,
            json={
                "document": "chats/c1",
                "eventId": "evt-1",
                "value": {
                    "fields": {
                        "participants": {
                            "arrayValue": {
                                "values": [{"stringValue": "owner"}, {"stringValue": "ana"}]
                            }
                        },
                        "context": {
                            "mapValue": {
                                "fields": {
                                    "animalId": {"stringValue": "rex"},
                                    "ownerId": {"stringValue": "owner"},
                                    "interestedId": {"stringValue": "ana"},
                                }
                            }
                        },
                    }
                },
            },
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True, "status": "processed"}
        assert len(gateway.sent_to(token_for("owner"))) == 1

    def test_malformed_json_is_200_skipped(self, worker_client, local_auth):
        response = worker_client.post(
            "/triggers/chats",
            headers={**local_auth, "Content-Type": "application/json"},
            content=b"{not json",
        )
        assert response.status_code == 200
        assert response.json() == {"ok": True, "status": "skipped", "reason": "malformed-event"}

    def test_missing_document_is_200_skipped(self, worker_client, local_auth):
        response = worker_client.post("/triggers/chats", headers=local_auth, json={"data": {}})
        assert response.status_code == 200
        assert response.json()["reason"] == "malformed-event"

    @pytest.mark.parametrize(
        "fields",
        [
            {"context": {"mapValue": "oops"}},
            {"participants": {"arrayValue": ["a", "b"]}},
            {"participants": {"arrayValue": {"values": "a"}}},
            {"location": {"geoPointValue": 12}},
        ],
    )
    def test_bad_typed_value_is_200_skipped(self, worker_client, gateway, local_auth, fields):
        response = worker_client.post(
            "/triggers/chats",
            headers=local_auth,
            json={"document": "chats/c1", "value": {"fields": fields}},
        )
        assert response.status_code == 200
        assert response.json() == {"ok": True, "status": "skipped", "reason": "malformed-event"}
        assert gateway.sent == []

    def test_correlation_header_echoed(self, worker_client, local_auth):
        response = worker_client.post(
            "/triggers/chats",
            headers={**local_auth, CORRELATION_ID_HEADER: "cid-123"},
            json={"document": "chats/c1", "data": {}},
        )
        assert response.headers[CORRELATION_ID_HEADER] == "cid-123"


class TestMessageTrigger:
    def test_system_message_skipped(self, worker_client, store, gateway, local_auth):
        seed_chat(store, "c1", interested_id="ana")
        response = worker_client.post(
            "/triggers/messages",
            headers=local_auth,
            json={
                "document": "chats/c1/messages/m1",
                "data": {"text": "Adoption confirmed!", "sender": {"id": "system"}},
            },
        )
        assert response.json() == {"ok": True, "status": "skipped", "reason": "system-message"}
        assert gateway.sent == []


class TestAdoptionIntentTrigger:
    def test_confirmed_intent_auto_denies(self, worker_client, store, gateway, local_auth):
        for user_id in ("owner", "ana", "bruno"):
            seed_user(store, user_id)
        seed_animal(store)
        seed_intent(store, "i-bruno", interested_id="bruno")

        response = worker_client.post(
            "/triggers/adoption-intents",
            headers=local_auth,
            json={
                "document": "adoptionIntents/i-ana",
                "data": {
                    "animalId": "rex",
                    "interestedId": "ana",
                    "ownerId": "owner",
                    "status": "confirmed",
                },
            },
        )

        assert response.status_code == 200
        assert response.json()["status"] == "processed"
        assert store.snapshot("adoptionIntents/i-bruno")["status"] == "denied"
        assert len(gateway.sent_to(token_for("bruno"))) == 1
        assert len(gateway.sent_to(token_for("ana"))) == 1

    def test_handler_failure_is_still_200(self, worker_client, store, local_auth):
        with patch.object(store, "compare_and_set", side_effect=RuntimeError("boom")):
            response = worker_client.post(
                "/triggers/adoption-intents",
                headers=local_auth,
                json={
                    "document": "adoptionIntents/i1",
                    "data": {"animalId": "rex", "interestedId": "ana", "status": "confirmed"},
                },
            )
        assert response.status_code == 200
        assert response.json() == {"ok": True, "status": "failed", "reason": "RuntimeError"}

    def test_confirmed_intent_finalizes_chats(self, worker_client, store, gateway, local_auth):
        for user_id in ("owner", "ana", "bruno"):
            seed_user(store, user_id)
        seed_animal(store)
        seed_chat(store, "chat-ana", interested_id="ana", messages=1)
        seed_chat(store, "chat-bruno", interested_id="bruno", messages=2)
        seed_intent(store, "i-bruno", interested_id="bruno", chat_id="chat-bruno")

        response = worker_client.post(
            "/triggers/adoption-intents",
            headers=local_auth,
            json={
                "document": "adoptionIntents/i-ana",
                "data": {
                    "animalId": "rex",
                    "interestedId": "ana",
                    "ownerId": "owner",
                    "chatId": "chat-ana",
                    "status": "confirmed",
                },
            },
        )

        assert response.json() == {"ok": True, "status": "processed"}
        assert store.snapshot("chats/chat-ana")["adoptionConfirmed"] is True
        assert store.exists("chats/chat-ana/messages/adoption-confirmed-i-ana")
        assert not store.exists("chats/chat-bruno")
        assert messages_under(store, "chats/chat-bruno") == []
        assert store.snapshot("animals/rex")["ownerId"] == "ana"
        [confirmation] = gateway.sent_to(token_for("ana"))
        assert confirmation.data["type"] == "adocao_confirmada"
