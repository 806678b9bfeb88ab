"""Serializers for notifications."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore


class NotificationSerializer(serializers.Serializer):
    """Serializer for stored notification documents."""

    id = serializers.CharField()
    type = serializers.CharField()
    title = serializers.CharField()
    message = serializers.CharField()
    data = serializers.DictField(required=False)
    read = serializers.BooleanField()
    created_at = serializers.CharField(source="createdAt", allow_null=True, required=False)
