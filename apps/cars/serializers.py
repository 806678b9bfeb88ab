"""Serializers for the car catalogue."""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers  # type: ignore

from shared.domain.value_objects import SUPPORTED_CURRENCIES

from .domain import SORT_KEYS, CarSearch


class CarSerializer(serializers.Serializer):
    """Read representation of a car."""

    id = serializers.CharField()
    name = serializers.CharField()
    category = serializers.CharField()
    price_per_day = serializers.DecimalField(source="price_per_day.amount", max_digits=12, decimal_places=2)
    currency = serializers.CharField()
    available = serializers.BooleanField()
    model = serializers.CharField()
    year = serializers.IntegerField(allow_null=True)
    transmission = serializers.CharField()
    fuel = serializers.CharField()
    seats = serializers.IntegerField(allow_null=True)
    location = serializers.CharField()
    description = serializers.CharField()
    features = serializers.ListField(child=serializers.CharField())
    total_bookings = serializers.IntegerField()
    total_revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    average_rating = serializers.FloatField()
    review_count = serializers.IntegerField()
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()


class CarWriteSerializer(serializers.Serializer):
    """Fields an admin may set on a car."""

    name = serializers.CharField(max_length=255)
    category = serializers.CharField(max_length=64)
    price_per_day = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    currency = serializers.ChoiceField(choices=SUPPORTED_CURRENCIES, required=False)
    available = serializers.BooleanField(required=False)
    model = serializers.CharField(max_length=255, required=False, allow_blank=True)
    year = serializers.IntegerField(min_value=1950, max_value=2100, required=False, allow_null=True)
    transmission = serializers.CharField(max_length=32, required=False, allow_blank=True)
    fuel = serializers.CharField(max_length=32, required=False, allow_blank=True)
    seats = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    location = serializers.CharField(max_length=255, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    features = serializers.ListField(child=serializers.CharField(max_length=64), required=False)


class CarSearchSerializer(serializers.Serializer):
    category = serializers.CharField(required=False)
    min_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    max_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    transmission = serializers.CharField(required=False)
    fuel = serializers.CharField(required=False)
    model = serializers.CharField(required=False)
    min_year = serializers.IntegerField(required=False)
    max_year = serializers.IntegerField(required=False)
    available_only = serializers.BooleanField(required=False, default=True)
    sort_by = serializers.ChoiceField(choices=list(SORT_KEYS), required=False)

    def to_search(self) -> CarSearch:
        return CarSearch(**self.validated_data)


class ReviewSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, default="")


class AvailabilitySerializer(serializers.Serializer):
    available = serializers.BooleanField()
