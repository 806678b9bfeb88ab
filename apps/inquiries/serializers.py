"""Serializers for contact requests."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .services import REQUEST_STATUSES


class ContactRequestSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    subject = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    message = serializers.CharField()
    location = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class ContactRequestStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=REQUEST_STATUSES)
