"""URL routing for payment callbacks."""

from django.urls import path  # type: ignore

from .views import PaymentWebhookView

urlpatterns = [
    path('webhook/', PaymentWebhookView.as_view(), name='payment-webhook'),
]
