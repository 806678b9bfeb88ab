"""
Document Store

A durable key-value collection store with query-by-field and atomic batch
writes. Records are JSON-compatible dicts grouped into named collections
and keyed by string id. Every stored document carries a version that is
bumped on each write; batch writes may carry the version they expect,
which gives callers compare-and-swap.

Two sentinels mirror the hosted store the data model was designed for:
``SERVER_TIMESTAMP`` is replaced with the store clock on write and
``Increment(n)`` adds to the current value of a field.

``InMemoryDocumentStore`` implements the interface for tests and local
runs; ``apps.store.backend.DjangoDocumentStore`` persists to the database.
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Sequence

from shared.domain.base import utcnow

logger = logging.getLogger(__name__)


class DocumentStoreError(Exception):
    """Base class for document store failures."""


class DocumentNotFound(DocumentStoreError):
    """Raised when updating or deleting a document that does not exist."""


class PreconditionFailed(DocumentStoreError):
    """Raised when a write's expected version does not match the stored one."""


class _ServerTimestamp:
    def __repr__(self):
        return 'SERVER_TIMESTAMP'


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class Increment:
    """Add ``delta`` to the stored value of a field (missing counts as 0)."""
    delta: int | Decimal

    def apply(self, current: Any) -> Any:
        if isinstance(self.delta, int) and isinstance(current, (int, type(None))):
            return (current or 0) + self.delta
        # Decimal amounts are stored as strings to stay JSON-compatible
        return str(Decimal(str(current or '0')) + Decimal(str(self.delta)))


@dataclass
class Document:
    """A stored record: id, payload and store-managed metadata."""
    collection: str
    id: str
    data: dict[str, Any]
    version: int
    create_time: datetime
    update_time: datetime

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    '==': lambda a, b: a == b,
    '!=': lambda a, b: a != b,
    '<': lambda a, b: a is not None and a < b,
    '<=': lambda a, b: a is not None and a <= b,
    '>': lambda a, b: a is not None and a > b,
    '>=': lambda a, b: a is not None and a >= b,
    'in': lambda a, b: a in b,
    'not-in': lambda a, b: a not in b,
    'array-contains': lambda a, b: isinstance(a, list) and b in a,
}


@dataclass(frozen=True)
class Filter:
    """A single ``field <op> value`` query condition."""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def matches(self, data: dict[str, Any]) -> bool:
        return OPERATORS[self.op](data.get(self.field), self.value)


def where(field_name: str, op: str, value: Any) -> Filter:
    return Filter(field_name, op, value)


def matches_all(data: dict[str, Any], filters: Iterable[Filter]) -> bool:
    return all(f.matches(data) for f in filters)


def sort_documents(
    documents: list[Document],
    order_by: str | None,
    descending: bool,
) -> list[Document]:
    if not order_by:
        return sorted(documents, key=lambda d: d.create_time, reverse=descending)
    present = [d for d in documents if d.data.get(order_by) is not None]
    missing = [d for d in documents if d.data.get(order_by) is None]
    present.sort(key=lambda d: d.data[order_by], reverse=descending)
    return present + missing


def resolve_fields(
    fields: dict[str, Any],
    current: dict[str, Any] | None,
    now: datetime,
) -> dict[str, Any]:
    """Replace write sentinels with concrete values."""
    resolved = {}
    for key, value in fields.items():
        if value is SERVER_TIMESTAMP:
            resolved[key] = now.isoformat()
        elif isinstance(value, Increment):
            resolved[key] = value.apply((current or {}).get(key))
        else:
            resolved[key] = copy.deepcopy(value)
    return resolved


# ===== Batch writes =====

@dataclass(frozen=True)
class Write:
    """One operation inside a batch."""
    kind: str  # create | set | update | delete
    collection: str
    doc_id: str
    fields: dict[str, Any] = field(default_factory=dict)
    expected_version: int | None = None


class WriteBatch:
    """
    Ordered list of writes committed atomically by ``DocumentStore.commit``

    ``expected_version`` turns a write into compare-and-swap: the commit
    fails with ``PreconditionFailed`` unless the stored document still has
    that version. ``create`` fails if the document already exists.
    """

    def __init__(self):
        self._writes: list[Write] = []

    def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> 'WriteBatch':
        self._writes.append(Write('create', collection, doc_id, dict(data)))
        return self

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> 'WriteBatch':
        self._writes.append(Write('set', collection, doc_id, dict(data), expected_version))
        return self

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> 'WriteBatch':
        self._writes.append(Write('update', collection, doc_id, dict(fields), expected_version))
        return self

    def delete(
        self,
        collection: str,
        doc_id: str,
        *,
        expected_version: int | None = None,
    ) -> 'WriteBatch':
        self._writes.append(Write('delete', collection, doc_id, {}, expected_version))
        return self

    @property
    def writes(self) -> Sequence[Write]:
        return tuple(self._writes)

    def __len__(self) -> int:
        return len(self._writes)


def check_precondition(write: Write, existing_version: int | None) -> None:
    """Validate a write against the current version (None = missing)."""
    if write.kind == 'create' and existing_version is not None:
        raise PreconditionFailed(f"{write.collection}/{write.doc_id} already exists")
    if write.kind in ('update', 'delete') and existing_version is None and write.expected_version is None:
        raise DocumentNotFound(f"{write.collection}/{write.doc_id} does not exist")
    if write.expected_version is not None and write.expected_version != (existing_version or 0):
        raise PreconditionFailed(
            f"{write.collection}/{write.doc_id} is at version {existing_version or 0}, "
            f"expected {write.expected_version}"
        )


class DocumentStore(ABC):
    """Abstract document store"""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Document | None:
        """Return the document or None"""

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        """Return documents matching every filter"""

    @abstractmethod
    def commit(self, batch: WriteBatch) -> None:
        """Apply every write of the batch atomically or none of them"""

    def batch(self) -> WriteBatch:
        return WriteBatch()

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> Document:
        self.commit(self.batch().set(collection, doc_id, data))
        return self.get(collection, doc_id)

    def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> Document:
        self.commit(self.batch().create(collection, doc_id, data))
        return self.get(collection, doc_id)

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> Document:
        self.commit(self.batch().update(collection, doc_id, fields))
        return self.get(collection, doc_id)

    def delete(self, collection: str, doc_id: str) -> None:
        self.commit(self.batch().delete(collection, doc_id))


class InMemoryDocumentStore(DocumentStore):
    """
    Thread-safe in-process store

    Implements the same semantics as the database backend, including
    version preconditions and sentinels, so services can be exercised
    without a database.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or utcnow
        self._collections: dict[str, dict[str, Document]] = {}
        self._lock = threading.RLock()

    def get(self, collection: str, doc_id: str) -> Document | None:
        with self._lock:
            document = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(document)

    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        filters = list(filters)
        with self._lock:
            found = [
                copy.deepcopy(document)
                for document in self._collections.get(collection, {}).values()
                if matches_all(document.data, filters)
            ]
        found = sort_documents(found, order_by, descending)
        return found[:limit] if limit is not None else found

    def commit(self, batch: WriteBatch) -> None:
        with self._lock:
            now = self._clock()
            # Stage against a copy so a failing write leaves nothing behind
            staged = {name: dict(docs) for name, docs in self._collections.items()}
            for write in batch.writes:
                docs = staged.setdefault(write.collection, {})
                existing = docs.get(write.doc_id)
                check_precondition(write, existing.version if existing else None)

                if write.kind == 'delete':
                    docs.pop(write.doc_id, None)
                    continue

                if write.kind == 'update':
                    if existing is None:
                        raise DocumentNotFound(f"{write.collection}/{write.doc_id} does not exist")
                    data = dict(existing.data)
                    data.update(resolve_fields(write.fields, existing.data, now))
                else:
                    data = resolve_fields(write.fields, existing.data if existing else None, now)

                docs[write.doc_id] = Document(
                    collection=write.collection,
                    id=write.doc_id,
                    data=data,
                    version=(existing.version if existing else 0) + 1,
                    create_time=existing.create_time if existing else now,
                    update_time=now,
                )
            self._collections = staged
        logger.debug(f"Committed batch of {len(batch)} writes")
