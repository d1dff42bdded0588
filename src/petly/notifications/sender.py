"""Notification sender: recipient lookup + single gateway call, never raises.

Retry policy: none. A failed send is reported as DeliveryResult.failed and
logged; retrying here would duplicate notifications on transient errors.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Iterable, Literal

from petly.domain.errors import DeliveryError
from petly.observability.logging import get_logger
from petly.observability.redaction import hash_identifier, safe_log_context

from .composer import PushPayload
from .gateway import PushGateway
from .recipients import RecipientResolver

logger = get_logger(__name__)

SKIP_NOT_FOUND = "not-found"
SKIP_NO_TOKEN = "no-token"
SKIP_DISABLED = "notifications-disabled"


@dataclass(frozen=True)
class DeliveryResult:
    status: Literal["sent", "skipped", "failed"]
    user_id: str | None = None
    reason: str | None = None
    message_id: str | None = None

    @classmethod
    def sent(cls, user_id: str | None, message_id: str) -> "DeliveryResult":
        return cls(status="sent", user_id=user_id, message_id=message_id)

    @classmethod
    def skipped(cls, user_id: str | None, reason: str) -> "DeliveryResult":
        return cls(status="skipped", user_id=user_id, reason=reason)

    @classmethod
    def failed(cls, user_id: str | None, reason: str) -> "DeliveryResult":
        return cls(status="failed", user_id=user_id, reason=reason)

    def to_dict(self) -> dict[str, str | None]:
        return {
            "status": self.status,
            "userId": self.user_id,
            "reason": self.reason,
            "messageId": self.message_id,
        }


class NotificationSender:
    """Delivers composed payloads to users through a PushGateway."""

    def __init__(self, resolver: RecipientResolver, gateway: PushGateway) -> None:
        self._resolver = resolver
        self._gateway = gateway

    async def send(self, user_id: str, payload: PushPayload) -> DeliveryResult:
        """Resolve `user_id` and push `payload` to their token once.

        Returns:
            - skipped(not-found) when the profile does not exist
            - skipped(no-token) when the profile has no push token
            - skipped(notifications-disabled) when the user opted out
            - failed(reason) when the gateway raised
            - sent(message_id) otherwise
        """
        try:
            recipient = await self._resolver.resolve(user_id)
        except Exception as e:
            logger.exception(
                "recipient lookup failed",
                extra={
                    "extra_fields": safe_log_context(
                        user_id=user_id, kind=payload.kind.value
                    )
                },
            )
            return DeliveryResult.failed(user_id, f"lookup-error: {type(e).__name__}")

        if recipient is None:
            self._log_skip(user_id, payload, SKIP_NOT_FOUND)
            return DeliveryResult.skipped(user_id, SKIP_NOT_FOUND)
        if not recipient.token:
            self._log_skip(user_id, payload, SKIP_NO_TOKEN)
            return DeliveryResult.skipped(user_id, SKIP_NO_TOKEN)
        if not recipient.notifications_enabled:
            self._log_skip(user_id, payload, SKIP_DISABLED)
            return DeliveryResult.skipped(user_id, SKIP_DISABLED)

        return await self._deliver(recipient.token, payload, user_id=user_id)

    async def send_to_token(self, token: str, payload: PushPayload) -> DeliveryResult:
        """Push to a raw token (administrative endpoint), same failure policy."""
        return await self._deliver(token, payload, user_id=None)

    async def fan_out(
        self, deliveries: Iterable[tuple[str, PushPayload]]
    ) -> list[DeliveryResult]:
        """Send to many users concurrently.

        Every send runs to completion; one failure never cancels the others.
        Results are returned in input order.
        """
        pairs = list(deliveries)
        outcomes = await asyncio.gather(
            *(self.send(user_id, payload) for user_id, payload in pairs),
            return_exceptions=True,
        )

        results: list[DeliveryResult] = []
        for (user_id, _), outcome in zip(pairs, outcomes):
            if isinstance(outcome, BaseException):
                # send() converts errors itself; this only guards programming errors
                logger.error(
                    "fan-out send raised",
                    extra={
                        "extra_fields": safe_log_context(
                            user_id=user_id, error_type=type(outcome).__name__
                        )
                    },
                )
                results.append(DeliveryResult.failed(user_id, type(outcome).__name__))
            else:
                results.append(outcome)
        return results

    async def _deliver(
        self, token: str, payload: PushPayload, *, user_id: str | None
    ) -> DeliveryResult:
        log_ctx = safe_log_context(
            user_id=user_id or "",
            token_hash=hash_identifier(token),
            kind=payload.kind.value,
            text_len=len(payload.body),
        )
        try:
            message_id = await self._gateway.send(token, payload)
        except DeliveryError as e:
            logger.warning(
                "push delivery failed",
                extra={"extra_fields": {**log_ctx, **safe_log_context(error_code=e.code)}},
            )
            return DeliveryResult.failed(user_id, e.code or "delivery-error")
        except Exception as e:
            logger.exception(
                "push delivery raised unexpectedly",
                extra={"extra_fields": log_ctx},
            )
            return DeliveryResult.failed(user_id, type(e).__name__)

        logger.info(
            "push delivered",
            extra={"extra_fields": {**log_ctx, **safe_log_context(message_id=message_id)}},
        )
        return DeliveryResult.sent(user_id, message_id)

    def _log_skip(self, user_id: str, payload: PushPayload, reason: str) -> None:
        logger.info(
            "push skipped",
            extra={
                "extra_fields": safe_log_context(
                    user_id=user_id, kind=payload.kind.value, reason=reason
                )
            },
        )
