"""Recompute an animal's adoption state from its intent log and fix drift.

Usage:
    STORE_BACKEND=firestore GOOGLE_CLOUD_PROJECT=... \
        uv run python -m petly.operations.reconcile_availability <animal_id> [--apply]

Without --apply only reports what would change.
"""

import asyncio
import sys
from dataclasses import dataclass
from typing import Any

from petly.domain.errors import MalformedEventError
from petly.domain.events import parse_adoption_intent
from petly.domain.projection import AnimalProjection, project_availability
from petly.infra.settings import CollectionNames, load_settings
from petly.observability.logging import get_logger
from petly.observability.redaction import safe_log_context
from petly.store.base import DocumentStore, FieldFilter, join_path

logger = get_logger(__name__)


@dataclass(frozen=True)
class Drift:
    animal_id: str
    projection: AnimalProjection
    changes: dict[str, Any]

    @property
    def clean(self) -> bool:
        return not self.changes


async def compute_drift(
    store: DocumentStore, animal_id: str, collections: CollectionNames | None = None
) -> Drift | None:
    """Compare the stored animal with the projection of its intents.

    Only the claim fields are reconciled; ownership transfer is left to the
    lifecycle. Returns None if the animal does not exist.
    """
    collections = collections or CollectionNames()
    animal = await store.get(join_path(collections.animals, animal_id))
    if animal is None:
        return None

    docs = await store.query(
        collections.adoption_intents, [FieldFilter("animalId", "==", animal_id)]
    )
    intents = []
    for doc in docs:
        try:
            intents.append(parse_adoption_intent(doc.id, doc.data))
        except MalformedEventError:
            logger.warning(
                "malformed intent ignored",
                extra={"extra_fields": safe_log_context(intent_id=doc.id)},
            )

    projection = project_availability(animal_id, intents)
    changes: dict[str, Any] = {}
    if projection.confirmed_intent_id is not None:
        if animal.data.get("available") is not False:
            changes["available"] = False
        if not animal.data.get("confirmedIntentId"):
            changes["confirmedIntentId"] = projection.confirmed_intent_id
        if not animal.data.get("adoptedBy"):
            changes["adoptedBy"] = projection.adopted_by

    return Drift(animal_id=animal_id, projection=projection, changes=changes)


async def reconcile(
    store: DocumentStore,
    animal_id: str,
    *,
    apply: bool = False,
    collections: CollectionNames | None = None,
) -> Drift | None:
    collections = collections or CollectionNames()
    drift = await compute_drift(store, animal_id, collections)
    if drift is None or drift.clean or not apply:
        return drift

    await store.update(join_path(collections.animals, animal_id), drift.changes)
    logger.info(
        "animal availability reconciled",
        extra={
            "extra_fields": safe_log_context(
                animal_id=animal_id, fields=sorted(drift.changes)
            )
        },
    )
    return drift


def main() -> int:
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    if not args:
        sys.stderr.write("Usage: python -m petly.operations.reconcile_availability <animal_id> [--apply]\n")
        return 2

    from petly.store.firestore_store import FirestoreDocumentStore, create_client

    settings = load_settings()
    store = FirestoreDocumentStore(
        create_client(settings.project_id, settings.firestore_database)
    )
    drift = asyncio.run(
        reconcile(
            store,
            args[0],
            apply="--apply" in sys.argv,
            collections=settings.collections,
        )
    )

    if drift is None:
        sys.stderr.write(f"animal not found: {args[0]}\n")
        return 1
    if drift.clean:
        sys.stdout.write("no drift\n")
    else:
        sys.stdout.write(f"drift: {sorted(drift.changes)}\n")
        for intent_id in drift.projection.pending_intent_ids:
            sys.stdout.write(f"  still pending: {intent_id}\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
