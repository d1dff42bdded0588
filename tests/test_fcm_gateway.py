"""Tests for the FCM gateway (firebase-admin mocked, no network)."""

from unittest.mock import MagicMock, patch

import pytest
from firebase_admin import exceptions as fb_exceptions

from petly.domain.errors import DeliveryError
from petly.notifications.composer import NotificationContext, NotificationKind, compose
from petly.notifications.gateway import FcmGateway, InlineGateway, build_fcm_message


def _payload():
    return compose(
        NotificationKind.NEW_MESSAGE,
        NotificationContext(
            chat_id="c1", animal_id="rex", sender_name="ana", message_text="hi"
        ),
    )


class TestBuildFcmMessage:
    def test_android_and_apns_hints(self):
        message = build_fcm_message("tok", _payload())

        assert message.token == "tok"
        assert message.notification.title == "New message"
        assert message.android.priority == "high"
        assert message.android.notification.channel_id == "messages"
        assert message.android.notification.tag == "chat_c1"
        assert message.android.notification.color == "#2196F3"
        assert message.apns.payload.aps.badge == 1
        assert message.apns.payload.aps.sound == "default"

    def test_data_is_stringified_with_timestamp(self):
        message = build_fcm_message("tok", _payload())

        assert message.data["type"] == "nova_mensagem"
        assert message.data["chatId"] == "c1"
        assert "timestamp" in message.data
        assert all(isinstance(v, str) for v in message.data.values())


@pytest.mark.asyncio
class TestFcmGatewaySend:
    async def test_returns_message_id(self):
        app = MagicMock()
        with patch(
            "petly.notifications.gateway.messaging.send",
            return_value="projects/p/messages/1",
        ) as mock_send:
            message_id = await FcmGateway(app).send("tok", _payload())

        assert message_id == "projects/p/messages/1"
        assert mock_send.call_args.kwargs["app"] is app

    async def test_firebase_error_becomes_delivery_error(self):
        error = fb_exceptions.UnavailableError("service down")
        with patch("petly.notifications.gateway.messaging.send", side_effect=error):
            with pytest.raises(DeliveryError) as exc_info:
                await FcmGateway(MagicMock()).send("tok", _payload())

        assert exc_info.value.code == error.code

    async def test_value_error_becomes_invalid_argument(self):
        with patch(
            "petly.notifications.gateway.messaging.send",
            side_effect=ValueError("bad token"),
        ):
            with pytest.raises(DeliveryError) as exc_info:
                await FcmGateway(MagicMock()).send("tok", _payload())

        assert exc_info.value.code == "invalid-argument"


class TestFromProject:
    def test_reuses_existing_app(self):
        existing = MagicMock()
        with patch(
            "petly.notifications.gateway.firebase_admin.get_app", return_value=existing
        ), patch(
            "petly.notifications.gateway.firebase_admin.initialize_app"
        ) as mock_init:
            gateway = FcmGateway.from_project("petly-dev")

        assert gateway._app is existing
        mock_init.assert_not_called()

    def test_initialises_named_app(self):
        with patch(
            "petly.notifications.gateway.firebase_admin.get_app",
            side_effect=ValueError("no app"),
        ), patch(
            "petly.notifications.gateway.firebase_admin.initialize_app"
        ) as mock_init:
            FcmGateway.from_project("petly-dev")

        mock_init.assert_called_once_with(
            options={"projectId": "petly-dev"}, name="petly"
        )


@pytest.mark.asyncio
class TestInlineGateway:
    async def test_records_and_numbers_sends(self):
        gateway = InlineGateway()
        assert await gateway.send("a", _payload()) == "inline-1"
        assert await gateway.send("b", _payload()) == "inline-2"
        assert len(gateway.sent) == 2

        gateway.clear()
        assert gateway.sent == []

    async def test_failing_token(self):
        gateway = InlineGateway(failing_tokens={"bad"})
        with pytest.raises(DeliveryError):
            await gateway.send("bad", _payload())
        assert gateway.sent == []
