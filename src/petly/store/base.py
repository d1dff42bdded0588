"""Document store contract shared by the Firestore and in-memory backends.

Paths are slash-separated document paths ("chats/abc/messages/m1");
collection paths have an odd number of segments ("chats/abc/messages").
All reads and writes are async I/O boundaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Protocol

# Firestore refuses batches/transactions above this many writes
MAX_BATCH_WRITES = 500

FilterOp = Literal["==", "!=", "in", "array-contains"]


class StoreError(Exception):
    """Base class for document store failures."""

    pass


class DocumentNotFoundError(StoreError):
    """Raised when updating a document that does not exist."""

    pass


class BatchCommitError(StoreError):
    """Raised when an atomic batch or transaction fails. Nothing was written."""

    pass


@dataclass(frozen=True)
class Document:
    """A snapshot of one stored document."""

    path: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def collection(self) -> str:
        return self.path.rsplit("/", 1)[0]


@dataclass(frozen=True)
class FieldFilter:
    """Equality-style query filter. `field` may be a dotted path ("context.animalId")."""

    field: str
    op: FilterOp
    value: Any


@dataclass(frozen=True)
class CasResult:
    """Outcome of compare_and_set.

    Attributes:
        applied: True if the predicate held and updates were written.
        exists: False if the document was missing (never applied).
        current: Document data as read inside the transaction (before updates).
    """

    applied: bool
    exists: bool
    current: dict[str, Any] | None = None


Predicate = Callable[[dict[str, Any]], bool]


class WriteBatch(Protocol):
    """All-or-nothing group of writes."""

    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None: ...

    def update(self, path: str, data: dict[str, Any]) -> None: ...

    def delete(self, path: str) -> None: ...

    def __len__(self) -> int: ...

    async def commit(self) -> None:
        """Apply every queued write atomically.

        Raises:
            BatchCommitError: If any write fails; no write is applied.
        """
        ...


class DocumentStore(Protocol):
    """Async document store used by every domain service."""

    async def get(self, path: str) -> Document | None: ...

    async def create(self, path: str, data: dict[str, Any]) -> bool:
        """Create a document. Returns False if it already exists."""
        ...

    async def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None: ...

    async def update(self, path: str, data: dict[str, Any]) -> None:
        """Merge top-level fields into an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """
        ...

    async def query(
        self, collection: str, filters: list[FieldFilter]
    ) -> list[Document]: ...

    async def list_documents(self, collection: str) -> list[Document]: ...

    async def increment(
        self,
        path: str,
        field_name: str,
        amount: int = 1,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Atomically add `amount` to a numeric field (missing counts as 0)."""
        ...

    async def compare_and_set(
        self, path: str, predicate: Predicate, updates: dict[str, Any]
    ) -> CasResult:
        """Read-check-write in one transaction.

        Raises:
            BatchCommitError: If the transaction cannot be committed.
        """
        ...

    def batch(self) -> WriteBatch: ...


def join_path(*segments: str) -> str:
    """Join path segments, rejecting empty ids and embedded slashes."""
    for segment in segments:
        if not segment or "/" in segment:
            raise ValueError(f"Invalid path segment: {segment!r}")
    return "/".join(segments)


def get_field(data: dict[str, Any], dotted: str) -> Any:
    """Resolve a dotted field path; returns None when any hop is missing."""
    current: Any = data
    for part in dotted.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def matches(data: dict[str, Any], flt: FieldFilter) -> bool:
    value = get_field(data, flt.field)
    if flt.op == "==":
        return value == flt.value
    if flt.op == "!=":
        return value is not None and value != flt.value
    if flt.op == "in":
        return value in flt.value
    if flt.op == "array-contains":
        return isinstance(value, list) and flt.value in value
    raise ValueError(f"Unsupported filter op: {flt.op}")
