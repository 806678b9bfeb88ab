"""Serializers for payment callbacks."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore


class PaymentWebhookSerializer(serializers.Serializer):
    """Gateway callback body; field names follow the gateway."""

    bookingId = serializers.CharField(max_length=64)
    status = serializers.CharField(max_length=32)
    resultDescription = serializers.CharField(required=False, allow_blank=True, default="")
    reference = serializers.CharField(required=False, allow_blank=True, default="")
    paidAt = serializers.DateTimeField(required=False, allow_null=True, default=None)
