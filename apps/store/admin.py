"""Admin registration for stored documents."""

from __future__ import annotations

from django.contrib import admin

from .models import StoredDocument


@admin.register(StoredDocument)
class StoredDocumentAdmin(admin.ModelAdmin):
    list_display = (
        "collection",
        "doc_id",
        "version",
        "created_at",
        "updated_at",
    )
    list_filter = ("collection",)
    search_fields = ("doc_id",)
    readonly_fields = (
        "collection",
        "doc_id",
        "version",
        "created_at",
        "updated_at",
    )
