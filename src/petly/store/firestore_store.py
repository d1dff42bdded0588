"""Firestore-backed DocumentStore (STORE_BACKEND=firestore).

Uses the async client from google-cloud-firestore. The client is created
once per process by build_services() and injected here.
"""

from __future__ import annotations

from typing import Any

from google.api_core import exceptions as gexc
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter as FsFieldFilter

from petly.observability.logging import get_logger
from petly.observability.redaction import safe_log_context

from .base import (
    MAX_BATCH_WRITES,
    BatchCommitError,
    CasResult,
    Document,
    DocumentNotFoundError,
    FieldFilter,
    Predicate,
)

logger = get_logger(__name__)


def create_client(project_id: str | None, database: str) -> firestore.AsyncClient:
    """Create the async Firestore client (honours FIRESTORE_EMULATOR_HOST)."""
    return firestore.AsyncClient(project=project_id, database=database)


class FirestoreWriteBatch:
    """Thin wrapper over AsyncWriteBatch that normalises commit errors."""

    def __init__(self, client: firestore.AsyncClient) -> None:
        self._client = client
        self._batch = client.batch()
        self._count = 0

    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        self._batch.set(self._client.document(path), data, merge=merge)
        self._count += 1

    def update(self, path: str, data: dict[str, Any]) -> None:
        self._batch.update(self._client.document(path), data)
        self._count += 1

    def delete(self, path: str) -> None:
        self._batch.delete(self._client.document(path))
        self._count += 1

    def __len__(self) -> int:
        return self._count

    async def commit(self) -> None:
        if self._count > MAX_BATCH_WRITES:
            raise BatchCommitError(
                f"batch has {self._count} writes (max {MAX_BATCH_WRITES})"
            )
        try:
            await self._batch.commit()
        except gexc.GoogleAPICallError as e:
            logger.error(
                "firestore batch commit failed",
                extra={
                    "extra_fields": safe_log_context(
                        writes=self._count, error_type=type(e).__name__
                    )
                },
            )
            raise BatchCommitError(str(e)) from e


class FirestoreDocumentStore:
    """DocumentStore over google.cloud.firestore.AsyncClient."""

    def __init__(self, client: firestore.AsyncClient) -> None:
        self._client = client

    async def get(self, path: str) -> Document | None:
        snap = await self._client.document(path).get()
        if not snap.exists:
            return None
        return Document(path=path, data=snap.to_dict() or {})

    async def create(self, path: str, data: dict[str, Any]) -> bool:
        try:
            await self._client.document(path).create(data)
        except gexc.AlreadyExists:
            return False
        return True

    async def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        await self._client.document(path).set(data, merge=merge)

    async def update(self, path: str, data: dict[str, Any]) -> None:
        try:
            await self._client.document(path).update(data)
        except gexc.NotFound as e:
            raise DocumentNotFoundError(path) from e

    async def query(
        self, collection: str, filters: list[FieldFilter]
    ) -> list[Document]:
        query: Any = self._client.collection(collection)
        for flt in filters:
            query = query.where(filter=FsFieldFilter(flt.field, flt.op, flt.value))
        return [
            Document(path=snap.reference.path, data=snap.to_dict() or {})
            async for snap in query.stream()
        ]

    async def list_documents(self, collection: str) -> list[Document]:
        return [
            Document(path=snap.reference.path, data=snap.to_dict() or {})
            async for snap in self._client.collection(collection).stream()
        ]

    async def increment(
        self,
        path: str,
        field_name: str,
        amount: int = 1,
        extra: dict[str, Any] | None = None,
    ) -> None:
        updates: dict[str, Any] = {field_name: firestore.Increment(amount)}
        if extra:
            updates.update(extra)
        await self.update(path, updates)

    async def compare_and_set(
        self, path: str, predicate: Predicate, updates: dict[str, Any]
    ) -> CasResult:
        ref = self._client.document(path)

        @firestore.async_transactional
        async def _apply(transaction: firestore.AsyncTransaction) -> CasResult:
            snap = await ref.get(transaction=transaction)
            if not snap.exists:
                return CasResult(applied=False, exists=False)
            current = snap.to_dict() or {}
            if not predicate(current):
                return CasResult(applied=False, exists=True, current=current)
            transaction.update(ref, updates)
            return CasResult(applied=True, exists=True, current=current)

        try:
            return await _apply(self._client.transaction())
        except gexc.GoogleAPICallError as e:
            logger.error(
                "firestore transaction failed",
                extra={
                    "extra_fields": safe_log_context(
                        path=path, error_type=type(e).__name__
                    )
                },
            )
            raise BatchCommitError(str(e)) from e

    def batch(self) -> FirestoreWriteBatch:
        return FirestoreWriteBatch(self._client)
