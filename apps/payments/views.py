"""Payment gateway webhook."""

from __future__ import annotations

import logging

from django.conf import settings  # type: ignore
from rest_framework import permissions, status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.bookings.tasks import process_payment_event

from .serializers import PaymentWebhookSerializer
from .signatures import verify_signature

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Payment-Signature"


class PaymentWebhookView(APIView):
    """
    Receives payment outcomes from the gateway

    The callback is validated, optionally signature-checked and handed to
    a Celery task; the gateway gets 202 as soon as the event is queued.
    """

    authentication_classes: list = []
    permission_classes = [permissions.AllowAny]

    def post(self, request, format=None):  # type: ignore
        secret = getattr(settings, "PAYMENT_WEBHOOK_SECRET", "")
        if secret and not verify_signature(request.body, request.headers.get(SIGNATURE_HEADER), secret):
            logger.error("Payment webhook rejected: invalid signature")
            return Response({"error": "invalid_signature", "detail": "Invalid signature"},
                            status=status.HTTP_403_FORBIDDEN)

        payload = PaymentWebhookSerializer(data=request.data)
        if not payload.is_valid():
            logger.error(f"Payment webhook rejected: {payload.errors}")
            return Response(payload.errors, status=status.HTTP_400_BAD_REQUEST)

        event = dict(payload.validated_data)
        if event["paidAt"] is not None:
            event["paidAt"] = event["paidAt"].isoformat()
        logger.info(f"Payment webhook received for booking {event['bookingId']}: {event['status']}")

        process_payment_event.delay(event)
        return Response({"status": "accepted"}, status=status.HTTP_202_ACCEPTED)
