"""Push gateways.

Backends selectable via PUSH_BACKEND:
- inline (default): records messages in memory, returns synthetic ids (dev/tests)
- fcm: Firebase Cloud Messaging through firebase-admin

Security: NEVER log tokens or notification bodies. Only hashes and lengths.
"""

from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Protocol

import firebase_admin
from firebase_admin import exceptions as fb_exceptions
from firebase_admin import messaging

from petly.domain.errors import DeliveryError
from petly.observability.logging import get_logger
from petly.observability.redaction import hash_identifier, safe_log_context

from .composer import PushPayload

logger = get_logger(__name__)

FCM_APP_NAME = "petly"


class PushGateway(Protocol):
    """Sends one push message to one device token."""

    async def send(self, token: str, payload: PushPayload) -> str:
        """Deliver and return the provider message id.

        Raises:
            DeliveryError: On any provider failure. Implementations never retry.
        """
        ...


def build_fcm_message(token: str, payload: PushPayload) -> messaging.Message:
    """Render a PushPayload into an FCM message with Android/APNs hints."""
    data = {k: str(v) for k, v in payload.data.items()}
    data.setdefault("timestamp", datetime.now(timezone.utc).isoformat())

    hints = payload.hints
    return messaging.Message(
        token=token,
        notification=messaging.Notification(title=payload.title, body=payload.body),
        data=data,
        android=messaging.AndroidConfig(
            priority="high",
            notification=messaging.AndroidNotification(
                channel_id=hints.channel,
                sound=hints.sound,
                icon="ic_notification",
                color=hints.color,
                tag=hints.tag,
            ),
        ),
        apns=messaging.APNSConfig(
            payload=messaging.APNSPayload(
                aps=messaging.Aps(
                    sound=hints.sound,
                    badge=hints.badge,
                    category=hints.category,
                )
            )
        ),
    )


class FcmGateway:
    """Firebase Cloud Messaging via the Admin SDK.

    The Admin SDK is synchronous; each send runs in a worker thread so the
    event loop keeps serving other sends.
    """

    def __init__(self, app: firebase_admin.App) -> None:
        self._app = app

    @classmethod
    def from_project(cls, project_id: str | None) -> "FcmGateway":
        """Initialise a named Firebase app with Application Default Credentials."""
        try:
            app = firebase_admin.get_app(FCM_APP_NAME)
        except ValueError:
            options = {"projectId": project_id} if project_id else None
            app = firebase_admin.initialize_app(options=options, name=FCM_APP_NAME)
        return cls(app)

    async def send(self, token: str, payload: PushPayload) -> str:
        message = build_fcm_message(token, payload)
        try:
            return await asyncio.to_thread(messaging.send, message, app=self._app)
        except fb_exceptions.FirebaseError as e:
            logger.warning(
                "fcm send failed",
                extra={
                    "extra_fields": safe_log_context(
                        token_hash=hash_identifier(token),
                        kind=payload.kind.value,
                        error_code=e.code,
                        error_type=type(e).__name__,
                    )
                },
            )
            raise DeliveryError(f"fcm send failed: {type(e).__name__}", code=e.code) from e
        except ValueError as e:
            # Raised by the SDK for malformed messages/tokens before any I/O
            raise DeliveryError(f"invalid fcm message: {e}", code="invalid-argument") from e


class InlineGateway:
    """Records sends instead of delivering them.

    Tokens listed in `failing_tokens` raise DeliveryError, which lets local
    runs exercise the failure path.
    """

    def __init__(self, failing_tokens: set[str] | None = None) -> None:
        self.sent: list[tuple[str, PushPayload]] = []
        self.failing_tokens: set[str] = set(failing_tokens or ())
        self._ids = itertools.count(1)

    async def send(self, token: str, payload: PushPayload) -> str:
        if token in self.failing_tokens:
            raise DeliveryError("inline gateway configured to fail", code="unavailable")
        self.sent.append((token, payload))
        message_id = f"inline-{next(self._ids)}"
        logger.info(
            "inline push recorded",
            extra={
                "extra_fields": safe_log_context(
                    token_hash=hash_identifier(token),
                    kind=payload.kind.value,
                    text_len=len(payload.body),
                    message_id=message_id,
                )
            },
        )
        return message_id

    def sent_to(self, token: str) -> list[PushPayload]:
        return [payload for t, payload in self.sent if t == token]

    def clear(self) -> None:
        self.sent.clear()
