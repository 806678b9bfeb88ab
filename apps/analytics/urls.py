"""URL routing for analytics endpoints."""

from django.urls import path  # type: ignore

from .views import BookingAnalyticsView, CarAnalyticsView


urlpatterns = [
    # Do not prefix with 'analytics/' here; the namespace is defined in config.urls
    path('bookings/', BookingAnalyticsView.as_view(), name='analytics-bookings'),
    path('cars/', CarAnalyticsView.as_view(), name='analytics-cars'),
]
