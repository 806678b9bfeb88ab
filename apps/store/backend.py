"""Database-backed document store."""

from __future__ import annotations

import functools
import logging
from typing import Any, Iterable

from django.db import DatabaseError, IntegrityError, transaction  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.module_loading import import_string  # type: ignore

from shared.conf import rental_setting
from shared.infrastructure.document_store import (
    Document,
    DocumentNotFound,
    DocumentStore,
    DocumentStoreError,
    Filter,
    PreconditionFailed,
    WriteBatch,
    check_precondition,
    matches_all,
    resolve_fields,
    sort_documents,
)

from .models import StoredDocument

logger = logging.getLogger(__name__)


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def _to_document(row: StoredDocument) -> Document:
    return Document(
        collection=row.collection,
        id=row.doc_id,
        data=dict(row.data or {}),
        version=row.version,
        create_time=row.created_at,
        update_time=row.updated_at,
    )


class DjangoDocumentStore(DocumentStore):
    """
    Stores every document as a ``StoredDocument`` row

    Batches run inside ``transaction.atomic()`` with the touched rows
    locked via ``select_for_update`` where the database supports it, so
    version preconditions are checked and applied without interleaving.
    Equality filters on string values are pushed down to SQL; all filters
    are re-applied in Python so results match the in-memory store.
    """

    def get(self, collection: str, doc_id: str) -> Document | None:
        try:
            row = StoredDocument.objects.filter(collection=collection, doc_id=doc_id).first()
        except DatabaseError as e:
            raise DocumentStoreError(f"Failed to read {collection}/{doc_id}: {e}") from e
        return _to_document(row) if row else None

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
        queryset = StoredDocument.objects.filter(collection=collection)
        for condition in filters:
            if condition.op == "==" and isinstance(condition.value, str):
                queryset = queryset.filter(**{f"data__{condition.field}": condition.value})

        try:
            rows = list(queryset)
        except DatabaseError as e:
            raise DocumentStoreError(f"Failed to query {collection}: {e}") from e

        found = [_to_document(row) for row in rows if matches_all(row.data or {}, filters)]
        found = sort_documents(found, order_by, descending)
        return found[:limit] if limit is not None else found

    def commit(self, batch: WriteBatch) -> None:
        if not len(batch):
            return
        try:
            with transaction.atomic():
                now = timezone.now()
                for write in batch.writes:
                    self._apply(write, now)
        except IntegrityError as e:
            # Two writers created the same document concurrently
            raise PreconditionFailed(str(e)) from e
        except (DocumentNotFound, PreconditionFailed):
            raise
        except DatabaseError as e:
            raise DocumentStoreError(f"Batch commit failed: {e}") from e
        logger.debug(f"Committed batch of {len(batch)} writes")

    def _apply(self, write, now) -> None:
        queryset = _lock_queryset_if_possible(
            StoredDocument.objects.filter(collection=write.collection, doc_id=write.doc_id)
        )
        row = queryset.first()
        check_precondition(write, row.version if row else None)

        if write.kind == "delete":
            if row is not None:
                row.delete()
            return

        if write.kind == "update":
            if row is None:
                raise DocumentNotFound(f"{write.collection}/{write.doc_id} does not exist")
            data: dict[str, Any] = dict(row.data or {})
            data.update(resolve_fields(write.fields, row.data, now))
        else:
            data = resolve_fields(write.fields, row.data if row else None, now)

        if row is None:
            StoredDocument.objects.create(
                collection=write.collection,
                doc_id=write.doc_id,
                data=data,
                version=1,
                created_at=now,
                updated_at=now,
            )
            return

        row.data = data
        row.version += 1
        row.updated_at = now
        row.save(update_fields=["data", "version", "updated_at"])


@functools.lru_cache(maxsize=1)
def get_document_store() -> DocumentStore:
    """Return the configured process-wide document store."""
    backend = import_string(rental_setting("DOCUMENT_STORE"))
    logger.info(f"Using document store backend {backend.__name__}")
    return backend()
