"""In-process document store (STORE_BACKEND=memory).

Used for local development and tests. A single asyncio.Lock serialises
batches, increments and compare-and-set, which gives the same atomicity
guarantees the Firestore backend relies on.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any

from .base import (
    MAX_BATCH_WRITES,
    BatchCommitError,
    CasResult,
    Document,
    DocumentNotFoundError,
    FieldFilter,
    Predicate,
    matches,
)


class InMemoryWriteBatch:
    """Queued writes validated up front and applied under the store lock."""

    def __init__(self, store: InMemoryDocumentStore) -> None:
        self._store = store
        self._ops: list[tuple[str, str, dict[str, Any] | None, bool]] = []

    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        self._ops.append(("set", path, copy.deepcopy(data), merge))

    def update(self, path: str, data: dict[str, Any]) -> None:
        self._ops.append(("update", path, copy.deepcopy(data), False))

    def delete(self, path: str) -> None:
        self._ops.append(("delete", path, None, False))

    def __len__(self) -> int:
        return len(self._ops)

    async def commit(self) -> None:
        if len(self._ops) > MAX_BATCH_WRITES:
            raise BatchCommitError(
                f"batch has {len(self._ops)} writes (max {MAX_BATCH_WRITES})"
            )

        async with self._store._lock:
            docs = self._store._docs
            # Validate everything before touching state so failure leaves no trace
            for kind, path, _, _ in self._ops:
                if kind == "update" and path not in docs:
                    raise BatchCommitError(f"update target missing: {path}")

            for kind, path, data, merge in self._ops:
                if kind == "delete":
                    docs.pop(path, None)
                elif kind == "update" or merge:
                    docs.setdefault(path, {}).update(data or {})
                else:
                    docs[path] = data or {}
                self._store.write_count += 1

            self._store.commit_count += 1


class InMemoryDocumentStore:
    """Dict-backed DocumentStore.

    Attributes:
        write_count: Number of document writes applied (tests assert on it).
        commit_count: Number of committed batches.
    """

    def __init__(self) -> None:
        self._docs: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()
        self.write_count = 0
        self.commit_count = 0

    # -- reads ---------------------------------------------------------------

    async def get(self, path: str) -> Document | None:
        data = self._docs.get(path)
        if data is None:
            return None
        return Document(path=path, data=copy.deepcopy(data))

    async def query(
        self, collection: str, filters: list[FieldFilter]
    ) -> list[Document]:
        return [
            doc
            for doc in await self.list_documents(collection)
            if all(matches(doc.data, f) for f in filters)
        ]

    async def list_documents(self, collection: str) -> list[Document]:
        prefix = collection.rstrip("/") + "/"
        return [
            Document(path=path, data=copy.deepcopy(data))
            for path, data in sorted(self._docs.items())
            if path.startswith(prefix) and "/" not in path[len(prefix):]
        ]

    # -- writes --------------------------------------------------------------

    async def create(self, path: str, data: dict[str, Any]) -> bool:
        async with self._lock:
            if path in self._docs:
                return False
            self._docs[path] = copy.deepcopy(data)
            self.write_count += 1
            return True

    async def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        async with self._lock:
            if merge:
                self._docs.setdefault(path, {}).update(copy.deepcopy(data))
            else:
                self._docs[path] = copy.deepcopy(data)
            self.write_count += 1

    async def update(self, path: str, data: dict[str, Any]) -> None:
        async with self._lock:
            if path not in self._docs:
                raise DocumentNotFoundError(path)
            self._docs[path].update(copy.deepcopy(data))
            self.write_count += 1

    async def increment(
        self,
        path: str,
        field_name: str,
        amount: int = 1,
        extra: dict[str, Any] | None = None,
    ) -> None:
        async with self._lock:
            if path not in self._docs:
                raise DocumentNotFoundError(path)
            doc = self._docs[path]
            doc[field_name] = (doc.get(field_name) or 0) + amount
            if extra:
                doc.update(copy.deepcopy(extra))
            self.write_count += 1

    async def compare_and_set(
        self, path: str, predicate: Predicate, updates: dict[str, Any]
    ) -> CasResult:
        async with self._lock:
            current = self._docs.get(path)
            if current is None:
                return CasResult(applied=False, exists=False)
            snapshot = copy.deepcopy(current)
            if not predicate(snapshot):
                return CasResult(applied=False, exists=True, current=snapshot)
            current.update(copy.deepcopy(updates))
            self.write_count += 1
            return CasResult(applied=True, exists=True, current=snapshot)

    def batch(self) -> InMemoryWriteBatch:
        return InMemoryWriteBatch(self)

    # -- test / seeding helpers ---------------------------------------------

    def seed(self, path: str, data: dict[str, Any]) -> None:
        """Insert a document without counting it as a write."""
        self._docs[path] = copy.deepcopy(data)

    def exists(self, path: str) -> bool:
        return path in self._docs

    def snapshot(self, path: str) -> dict[str, Any] | None:
        data = self._docs.get(path)
        return copy.deepcopy(data) if data is not None else None
