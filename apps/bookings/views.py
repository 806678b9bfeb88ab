"""API views for the booking domain."""

from __future__ import annotations

from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore

from apps.cars.views import render_cars
from apps.users.identity import actor_from_user
from apps.users.permissions import IsAdminRole
from shared.domain.errors import AuthRequired
from shared.infrastructure.api import error_response, result_response

from .serializers import (
    AvailabilityQuerySerializer,
    BookingCancelSerializer,
    BookingCreateSerializer,
    BookingSerializer,
    BookingStatusUpdateSerializer,
    ConflictQuerySerializer,
)
from .services import get_lifecycle_manager


def render_booking(booking):
    return BookingSerializer(booking).data


def render_bookings(bookings):
    return BookingSerializer(bookings, many=True).data


def render_conflicts(result):
    return {
        "has_conflict": result.has_conflict,
        "conflicts": render_bookings(result.conflicts),
    }


class BookingViewSet(viewsets.ViewSet):
    """
    Bookings of the requesting user.

    Authentication and ownership are enforced by the lifecycle manager so
    every refusal carries the same error payload.
    """

    permission_classes = [permissions.AllowAny]

    def list(self, request):  # type: ignore
        result = get_lifecycle_manager().get_user_bookings(actor_from_user(request.user))
        return result_response(result, render_bookings)

    def create(self, request):  # type: ignore
        payload = BookingCreateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        result = get_lifecycle_manager().create_booking(payload.to_request(), actor_from_user(request.user))
        return result_response(result, render_booking, status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):  # type: ignore
        actor = actor_from_user(request.user)
        manager = get_lifecycle_manager()
        if actor is None:
            return error_response(AuthRequired("Authentication required"))
        return result_response(manager.get_booking(pk, actor), render_booking)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        payload = BookingCancelSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        actor = actor_from_user(request.user)
        manager = get_lifecycle_manager()
        if actor is None:
            return error_response(AuthRequired("Authentication required"))
        result = manager.cancel_booking(
            pk,
            reason=payload.validated_data["reason"],
            refund_amount=payload.validated_data["refund_amount"],
            actor=actor,
        )
        return result_response(result, render_booking)

    @action(detail=True, methods=["post"], permission_classes=[IsAdminRole])
    def start(self, request, pk=None):  # type: ignore
        result = get_lifecycle_manager().start_rental(pk, actor_from_user(request.user))
        return result_response(result, render_booking)

    @action(detail=True, methods=["post"], permission_classes=[IsAdminRole])
    def complete(self, request, pk=None):  # type: ignore
        result = get_lifecycle_manager().complete_booking(pk, actor_from_user(request.user))
        return result_response(result, render_booking)

    @action(detail=True, methods=["post"], url_path="status")
    def change_status(self, request, pk=None):  # type: ignore
        payload = BookingStatusUpdateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        result = get_lifecycle_manager().update_booking_status(
            pk, payload.validated_data["status"], actor_from_user(request.user)
        )
        return result_response(result, render_booking)

    @action(detail=False, methods=["get"], url_path="all")
    def all_bookings(self, request):  # type: ignore
        result = get_lifecycle_manager().get_all_bookings(
            actor_from_user(request.user), request.query_params.get("status") or None
        )
        return result_response(result, render_bookings)

    @action(detail=False, methods=["get"])
    def upcoming(self, request):  # type: ignore
        result = get_lifecycle_manager().get_upcoming_bookings(actor_from_user(request.user))
        return result_response(result, render_bookings)

    @action(detail=False, methods=["get"])
    def history(self, request):  # type: ignore
        result = get_lifecycle_manager().get_booking_history(actor_from_user(request.user))
        return result_response(result, render_bookings)

    @action(detail=False, methods=["get"], url_path="available-cars")
    def available_cars(self, request):  # type: ignore
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        result = get_lifecycle_manager().get_available_cars(
            query.validated_data["pickup_date"], query.validated_data["dropoff_date"]
        )
        return result_response(result, render_cars)

    @action(detail=False, methods=["get"])
    def conflicts(self, request):  # type: ignore
        query = ConflictQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data
        result = get_lifecycle_manager().check_conflict(
            data["car_id"],
            data["pickup_date"],
            data["dropoff_date"],
            exclude_booking_id=data["exclude_booking_id"] or None,
        )
        return result_response(result, render_conflicts)
