"""Animal availability derived from the adoption-intent log.

AdoptionIntents are append-only facts. Availability is a projection over
them: an animal is available until some intent is CONFIRMED, and the
earliest confirmation (created_at, then id) is the one that stands. This
module is pure so the rule can be checked without any store.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from .models import AdoptionIntent, AdoptionStatus

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class AnimalProjection:
    """Materialised view of one animal's adoption state.

    Attributes:
        available: False once any intent is CONFIRMED.
        confirmed_intent_id: The accepted confirmation, if any.
        adopted_by: Interested party of the accepted confirmation.
        pending_intent_ids: PENDING intents still awaiting a decision; these
            must be auto-denied once the animal is adopted.
        rejected_confirmation_ids: CONFIRMED intents that lost to an earlier one.
    """

    animal_id: str
    available: bool = True
    confirmed_intent_id: str | None = None
    adopted_by: str | None = None
    pending_intent_ids: tuple[str, ...] = ()
    rejected_confirmation_ids: tuple[str, ...] = field(default_factory=tuple)


def _order_key(intent: AdoptionIntent) -> tuple[datetime, str]:
    return (intent.created_at or _EPOCH, intent.id)


def project_availability(
    animal_id: str, intents: Iterable[AdoptionIntent]
) -> AnimalProjection:
    """Fold the intent log for one animal into its availability state.

    Intents for other animals are ignored.
    """
    relevant = sorted(
        (i for i in intents if i.animal_id == animal_id), key=_order_key
    )

    confirmed = [i for i in relevant if i.status is AdoptionStatus.CONFIRMED]
    pending = tuple(i.id for i in relevant if i.status is AdoptionStatus.PENDING)

    if not confirmed:
        return AnimalProjection(animal_id=animal_id, pending_intent_ids=pending)

    winner = confirmed[0]
    return AnimalProjection(
        animal_id=animal_id,
        available=False,
        confirmed_intent_id=winner.id,
        adopted_by=winner.interested_id,
        pending_intent_ids=pending,
        rejected_confirmation_ids=tuple(i.id for i in confirmed[1:]),
    )
