"""Tests for the notification composer."""

import pytest

from petly.notifications.composer import (
    CLICK_ACTION,
    TEMPLATES,
    NotificationContext,
    NotificationKind,
    compose,
    truncate_text,
)


class TestTemplates:
    def test_every_kind_has_a_template(self):
        assert set(TEMPLATES) == set(NotificationKind)

    @pytest.mark.parametrize(
        "kind,data_type",
        [
            (NotificationKind.NEW_CHAT, "new_chat"),
            (NotificationKind.NEW_MESSAGE, "nova_mensagem"),
            (NotificationKind.ADOPTION_CONFIRMED, "adocao_confirmada"),
            (NotificationKind.ADOPTION_REJECTED, "adocao_recusada"),
            (NotificationKind.REMINDER, "lembrete"),
            (NotificationKind.TEST, "test"),
        ],
    )
    def test_data_type_per_kind(self, kind, data_type):
        payload = compose(kind, NotificationContext())
        assert payload.data["type"] == data_type


class TestCompose:
    def test_new_chat(self):
        payload = compose(
            NotificationKind.NEW_CHAT,
            NotificationContext(
                chat_id="c1", animal_id="rex", animal_name="Rex", interested_name="ana"
            ),
        )
        assert payload.title == "New conversation started"
        assert payload.body == "ana is interested in adopting Rex"
        assert payload.hints.channel == "new_chats"
        assert payload.hints.color == "#88c9bf"

    def test_adoption_confirmed(self):
        payload = compose(
            NotificationKind.ADOPTION_CONFIRMED,
            NotificationContext(animal_name="Rex", owner_name="maria"),
        )
        assert payload.title == "Adoption confirmed"
        assert payload.body == "maria confirmed your adoption of Rex"
        assert payload.hints.color == "#4CAF50"

    def test_adoption_rejected_by_owner(self):
        payload = compose(
            NotificationKind.ADOPTION_REJECTED,
            NotificationContext(animal_name="Rex", owner_name="maria"),
        )
        assert payload.title == "Adoption not approved"
        assert payload.body == "maria did not approve your request for Rex"

    def test_adoption_rejected_auto_denied_body(self):
        payload = compose(
            NotificationKind.ADOPTION_REJECTED,
            NotificationContext(animal_name="rex", auto_denied=True),
        )
        assert payload.body == "Rex was adopted by someone else."

    def test_missing_context_uses_placeholders(self):
        payload = compose(NotificationKind.ADOPTION_CONFIRMED, NotificationContext())
        assert payload.body == "The owner confirmed your adoption of the animal"

        payload = compose(NotificationKind.NEW_CHAT, NotificationContext())
        assert payload.body == "Someone is interested in adopting the animal"

    def test_deep_link_data(self):
        payload = compose(
            NotificationKind.ADOPTION_CONFIRMED,
            NotificationContext(chat_id="c1", animal_id="rex", animal_name="Rex"),
        )
        assert payload.data["chatId"] == "c1"
        assert payload.data["animalId"] == "rex"
        assert payload.data["animalName"] == "Rex"
        assert payload.data["screenToOpen"] == "ChatScreen"
        assert payload.data["click_action"] == CLICK_ACTION

    def test_no_chat_id_means_no_screen(self):
        payload = compose(NotificationKind.TEST, NotificationContext())
        assert "chatId" not in payload.data
        assert "screenToOpen" not in payload.data

    def test_message_tag_groups_by_chat(self):
        payload = compose(
            NotificationKind.NEW_MESSAGE, NotificationContext(chat_id="c42")
        )
        assert payload.hints.tag == "chat_c42"
        assert payload.hints.sound == "default"
        assert payload.hints.badge == 1

    def test_reminder_uses_caller_text(self):
        payload = compose(
            NotificationKind.REMINDER,
            NotificationContext(title="Vet visit", body="Tomorrow at 10"),
        )
        assert payload.title == "Vet visit"
        assert payload.body == "Tomorrow at 10"
        assert payload.hints.color == "#FF9800"

    def test_extra_data_cannot_override_type(self):
        payload = compose(
            NotificationKind.TEST, NotificationContext(extra_data={"type": "other"})
        )
        assert payload.data["type"] == "test"


class TestMessagePreview:
    def test_short_text_unchanged(self):
        assert truncate_text("hello") == "hello"

    def test_exactly_fifty_characters_unchanged(self):
        text = "x" * 50
        assert truncate_text(text) == text

    def test_eighty_characters_truncated(self):
        result = truncate_text("a" * 80)
        assert result == "a" * 50 + "..."
        assert len(result) == 53

    def test_message_body_carries_truncated_text(self):
        payload = compose(
            NotificationKind.NEW_MESSAGE,
            NotificationContext(sender_name="ana", message_text="b" * 80),
        )
        assert payload.body == "ana: " + "b" * 50 + "..."
        assert payload.body.endswith("b" * 50 + "...")
