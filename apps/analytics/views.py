"""API views for analytics.

Admin-only aggregates over bookings and the fleet.
"""

from __future__ import annotations

from rest_framework.views import APIView  # type: ignore

from apps.bookings.views import render_bookings
from apps.cars.views import render_cars
from apps.users.identity import actor_from_user
from apps.users.permissions import IsAdminRole
from shared.infrastructure.api import result_response

from .statistics import get_analytics_service


class BookingAnalyticsView(APIView):
    """Booking counts per status and revenue figures."""

    permission_classes = [IsAdminRole]

    def get(self, request, format=None):  # type: ignore
        result = get_analytics_service().get_booking_statistics(actor_from_user(request.user))
        return result_response(result, lambda stats: dict(stats, recent=render_bookings(stats["recent"])))


class CarAnalyticsView(APIView):
    """Fleet size, availability and the best earning cars."""

    permission_classes = [IsAdminRole]

    def get(self, request, format=None):  # type: ignore
        result = get_analytics_service().get_car_statistics(actor_from_user(request.user))
        return result_response(
            result, lambda stats: dict(stats, top_by_revenue=render_cars(stats["top_by_revenue"]))
        )
