"""Adoption resolver - claim the animal, auto-deny competing requests.

Runs when an AdoptionIntent is created with status CONFIRMED:
0. Claims the animal in a compare-and-set transaction so that at most one
   confirmation per animal is ever accepted
1. Queries PENDING intents for the same animal
2. Denies all of them (except the confirmed one) in a single atomic batch
3. Notifies each denied party concurrently; failures are collected, not raised

Every step re-reads current state, so re-delivery of the same event is a
no-op after the first successful run.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from petly.infra.settings import CollectionNames
from petly.infra.time import Clock, utc_now
from petly.notifications.composer import NotificationContext, NotificationKind, compose
from petly.notifications.sender import DeliveryResult, NotificationSender
from petly.observability.logging import get_logger
from petly.observability.redaction import safe_log_context
from petly.store.base import (
    BatchCommitError,
    Document,
    DocumentStore,
    FieldFilter,
    join_path,
)

from .models import AUTO_DENY_REASON, AdoptionIntent, AdoptionStatus

logger = get_logger(__name__)

# Stored status values that count as pending (older clients wrote Portuguese)
PENDING_VALUES = ["pending", "pendente", "PENDING"]


class ClaimOutcome(str, Enum):
    CLAIMED = "claimed"  # this confirmation won the animal now
    ALREADY_OURS = "already_ours"  # re-delivery: this confirmation already holds it
    LOST = "lost"  # another confirmation holds the animal
    MISSING = "missing"  # animal document does not exist; nothing to guard


@dataclass(frozen=True)
class AutoDenyResult:
    """Outcome of resolving one confirmed intent.

    Attributes:
        claim: Result of the compare-and-set on the animal.
        committed: False if the auto-deny batch failed (nothing was written).
        denied_intent_ids: Intents transitioned to DENIED by this run.
        deliveries: One result per denied party that was notified.
        animal_name: Name read from the animal document, if any.
    """

    claim: ClaimOutcome
    committed: bool = True
    denied_intent_ids: tuple[str, ...] = ()
    deliveries: tuple[DeliveryResult, ...] = ()
    animal_name: str | None = None

    @property
    def lost(self) -> bool:
        return self.claim is ClaimOutcome.LOST

    @property
    def failed_deliveries(self) -> tuple[DeliveryResult, ...]:
        return tuple(d for d in self.deliveries if d.status == "failed")

    def to_dict(self) -> dict[str, Any]:
        return {
            "claim": self.claim.value,
            "committed": self.committed,
            "autoDenied": list(self.denied_intent_ids),
            "deliveries": [d.to_dict() for d in self.deliveries],
        }


def _animal_name(data: dict[str, Any] | None) -> str | None:
    if not data:
        return None
    name = data.get("name") or data.get("nome")
    return name if isinstance(name, str) and name else None


@dataclass
class _Denial:
    doc: Document
    interested_id: str | None
    chat_id: str | None = None
    animal_name: str | None = None


class AdoptionResolver:
    """Applies the "one confirmation per animal" rule for a confirmed intent."""

    def __init__(
        self,
        store: DocumentStore,
        sender: NotificationSender,
        collections: CollectionNames | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._sender = sender
        self._collections = collections or CollectionNames()
        self._clock = clock

    async def resolve(self, intent: AdoptionIntent) -> AutoDenyResult:
        """Resolve a CONFIRMED intent.

        Raises:
            ValueError: If the intent is not CONFIRMED (caller bug).
        """
        if intent.status is not AdoptionStatus.CONFIRMED:
            raise ValueError(f"intent {intent.id} is not confirmed")

        claim, animal_data = await self.claim_animal(intent)
        animal_name = intent.animal_name or _animal_name(animal_data)

        if claim is ClaimOutcome.LOST:
            return await self._reject_losing_confirmation(intent, animal_name)

        denials = await self._find_pending(intent)
        if not denials:
            logger.info(
                "no pending intents to auto-deny",
                extra={
                    "extra_fields": safe_log_context(
                        intent_id=intent.id, animal_id=intent.animal_id, claim=claim.value
                    )
                },
            )
            return AutoDenyResult(claim=claim, animal_name=animal_name)

        now = self._clock()
        batch = self._store.batch()
        for denial in denials:
            batch.update(
                denial.doc.path,
                {
                    "status": AdoptionStatus.DENIED.value,
                    "autoDenied": True,
                    "reason": AUTO_DENY_REASON,
                    "decidedAt": now,
                },
            )

        try:
            await batch.commit()
        except BatchCommitError:
            logger.exception(
                "auto-deny batch failed",
                extra={
                    "extra_fields": safe_log_context(
                        intent_id=intent.id,
                        animal_id=intent.animal_id,
                        pending_count=len(denials),
                    )
                },
            )
            return AutoDenyResult(claim=claim, committed=False, animal_name=animal_name)

        denied_ids = tuple(d.doc.id for d in denials)
        logger.info(
            "pending intents auto-denied",
            extra={
                "extra_fields": safe_log_context(
                    intent_id=intent.id,
                    animal_id=intent.animal_id,
                    denied_count=len(denied_ids),
                )
            },
        )

        deliveries = await self._sender.fan_out(
            (
                denial.interested_id,
                compose(
                    NotificationKind.ADOPTION_REJECTED,
                    NotificationContext(
                        chat_id=denial.chat_id,
                        animal_id=intent.animal_id,
                        animal_name=denial.animal_name or animal_name,
                        auto_denied=True,
                    ),
                ),
            )
            for denial in denials
            if denial.interested_id
        )

        failed = [d for d in deliveries if d.status == "failed"]
        if failed:
            logger.warning(
                "some auto-deny notifications failed",
                extra={
                    "extra_fields": safe_log_context(
                        intent_id=intent.id,
                        failed_count=len(failed),
                        failed_user_ids=[d.user_id for d in failed],
                    )
                },
            )

        return AutoDenyResult(
            claim=claim,
            denied_intent_ids=denied_ids,
            deliveries=tuple(deliveries),
            animal_name=animal_name,
        )

    async def claim_animal(
        self, intent: AdoptionIntent
    ) -> tuple[ClaimOutcome, dict[str, Any] | None]:
        """Compare-and-set the animal from "unclaimed" to "claimed by intent".

        The gate is `confirmedIntentId` / `adoptedBy` rather than `available`
        alone, because owners also toggle `available` to hide a listing.
        """
        path = join_path(self._collections.animals, intent.animal_id)

        def unclaimed(current: dict[str, Any]) -> bool:
            return not current.get("confirmedIntentId") and not current.get("adoptedBy")

        result = await self._store.compare_and_set(
            path,
            unclaimed,
            {
                "available": False,
                "adoptedBy": intent.interested_id,
                "confirmedIntentId": intent.id,
            },
        )

        if not result.exists:
            logger.warning(
                "animal missing, confirmation not guarded",
                extra={
                    "extra_fields": safe_log_context(
                        intent_id=intent.id, animal_id=intent.animal_id
                    )
                },
            )
            return ClaimOutcome.MISSING, None

        if result.applied:
            return ClaimOutcome.CLAIMED, result.current

        current = result.current or {}
        if current.get("confirmedIntentId") == intent.id:
            return ClaimOutcome.ALREADY_OURS, current
        # Legacy adoptions recorded adoptedBy without an intent id
        if not current.get("confirmedIntentId") and current.get("adoptedBy") == intent.interested_id:
            return ClaimOutcome.ALREADY_OURS, current

        logger.warning(
            "double confirmation rejected",
            extra={
                "extra_fields": safe_log_context(
                    intent_id=intent.id,
                    animal_id=intent.animal_id,
                    holder_intent_id=current.get("confirmedIntentId"),
                )
            },
        )
        return ClaimOutcome.LOST, current

    async def _find_pending(self, intent: AdoptionIntent) -> list[_Denial]:
        docs = await self._store.query(
            self._collections.adoption_intents,
            [
                FieldFilter("animalId", "==", intent.animal_id),
                FieldFilter("status", "in", PENDING_VALUES),
            ],
        )

        denials: list[_Denial] = []
        for doc in docs:
            if doc.id == intent.id:
                continue
            interested = doc.data.get("interestedId") or doc.data.get("interessadoId")
            chat_id = doc.data.get("chatId")
            name = doc.data.get("animalName")
            denials.append(
                _Denial(
                    doc=doc,
                    interested_id=interested if isinstance(interested, str) else None,
                    chat_id=chat_id if isinstance(chat_id, str) else None,
                    animal_name=name if isinstance(name, str) and name else None,
                )
            )
        return denials

    async def _reject_losing_confirmation(
        self, intent: AdoptionIntent, animal_name: str | None
    ) -> AutoDenyResult:
        """Deny a confirmation that arrived after another one won the animal."""
        path = join_path(self._collections.adoption_intents, intent.id)
        result = await self._store.compare_and_set(
            path,
            lambda current: AdoptionStatus.parse(current.get("status"))
            is AdoptionStatus.CONFIRMED,
            {
                "status": AdoptionStatus.DENIED.value,
                "autoDenied": True,
                "reason": AUTO_DENY_REASON,
                "decidedAt": self._clock(),
            },
        )

        if not result.applied:
            # Already denied by an earlier delivery of this event
            return AutoDenyResult(claim=ClaimOutcome.LOST, animal_name=animal_name)

        delivery = await self._sender.send(
            intent.interested_id,
            compose(
                NotificationKind.ADOPTION_REJECTED,
                NotificationContext(
                    chat_id=intent.chat_id,
                    animal_id=intent.animal_id,
                    animal_name=animal_name,
                    auto_denied=True,
                ),
            ),
        )
        return AutoDenyResult(
            claim=ClaimOutcome.LOST,
            denied_intent_ids=(intent.id,),
            deliveries=(delivery,),
            animal_name=animal_name,
        )
