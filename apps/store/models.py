"""Database model backing the document store."""

from __future__ import annotations

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class StoredDocument(models.Model):
    """One JSON document of a named collection."""

    collection = models.CharField(max_length=64)
    doc_id = models.CharField(max_length=64)
    data = models.JSONField(default=dict)
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        verbose_name = _("Document")
        verbose_name_plural = _("Documents")
        ordering = ["collection", "-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["collection", "doc_id"],
                name="unique_document_per_collection",
            ),
        ]
        indexes = [
            models.Index(fields=["collection", "created_at"], name="store_doc_collection_created"),
        ]

    def __str__(self) -> str:
        return f"{self.collection}/{self.doc_id} (v{self.version})"
