"""Serializers for the booking domain."""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers  # type: ignore

from .application.lifecycle import BookingRequest
from .domain.entities import BookingStatus


class BookingCreateSerializer(serializers.Serializer):
    """Booking request submitted by a customer."""

    car_id = serializers.CharField(max_length=64)
    pickup_date = serializers.DateField()
    dropoff_date = serializers.DateField()
    customer_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    customer_email = serializers.EmailField(required=False, allow_blank=True, default="")
    customer_phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    customer_notes = serializers.CharField(required=False, allow_blank=True, default="")
    pickup_location = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    dropoff_location = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")

    def to_request(self) -> BookingRequest:
        return BookingRequest(**self.validated_data)


class StatusChangeSerializer(serializers.Serializer):
    status = serializers.CharField(source="status.value")
    at = serializers.DateTimeField()
    actor_id = serializers.CharField(allow_null=True)
    note = serializers.CharField(allow_blank=True)


class BookingSerializer(serializers.Serializer):
    """Read representation of a booking aggregate."""

    id = serializers.CharField()
    car_id = serializers.CharField()
    user_id = serializers.CharField()
    pickup_date = serializers.DateField()
    dropoff_date = serializers.DateField()
    status = serializers.CharField(source="status.value")
    payment_status = serializers.CharField(source="payment_status.value")
    total_days = serializers.IntegerField()
    price_per_day = serializers.DecimalField(source="price_per_day.amount", max_digits=12, decimal_places=2)
    total_amount = serializers.DecimalField(source="total_amount.amount", max_digits=12, decimal_places=2)
    currency = serializers.CharField()
    customer_name = serializers.CharField()
    customer_email = serializers.CharField()
    customer_phone = serializers.CharField()
    customer_notes = serializers.CharField()
    pickup_location = serializers.CharField()
    dropoff_location = serializers.CharField()
    hold_expires_at = serializers.DateTimeField(allow_null=True)
    cancellation_reason = serializers.CharField()
    refund_amount = serializers.SerializerMethodField()
    payment_reference = serializers.CharField()
    paid_at = serializers.DateTimeField(allow_null=True)
    cancelled_at = serializers.DateTimeField(allow_null=True)
    completed_at = serializers.DateTimeField(allow_null=True)
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()
    history = StatusChangeSerializer(many=True)

    def get_refund_amount(self, booking):  # type: ignore
        if booking.refund_amount is None:
            return None
        return f"{booking.refund_amount.amount:.2f}"


class BookingStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[s.value for s in BookingStatus])


class BookingCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    refund_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True, default=None,
    )


class AvailabilityQuerySerializer(serializers.Serializer):
    pickup_date = serializers.DateField()
    dropoff_date = serializers.DateField()


class ConflictQuerySerializer(AvailabilityQuerySerializer):
    car_id = serializers.CharField(max_length=64)
    exclude_booking_id = serializers.CharField(required=False, allow_blank=True, default="")
