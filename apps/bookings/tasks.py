"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from .services import get_reconciler

logger = logging.getLogger(__name__)


@shared_task(bind=True, name="bookings.process_payment_event", max_retries=5, default_retry_delay=30)
def process_payment_event(self, payload: dict) -> dict:
    """
    Apply a payment gateway callback to its booking.

    Store failures are retried; every other outcome is final because the
    reconciler is idempotent and ignores statuses it does not know.
    """
    result = get_reconciler().on_gateway_event(payload)

    if not result.ok:
        if result.code == "store_error":
            logger.warning(f"Store unavailable while processing payment for {payload.get('bookingId')}, retrying")
            raise self.retry(exc=result.error)
        logger.warning(f"Payment event for {payload.get('bookingId')} rejected: {result.error.message}")
        return {"status": "rejected", "error": result.code}

    booking = result.value
    if booking is None:
        return {"status": "ignored"}
    return {
        "status": "processed",
        "booking_id": booking.id,
        "booking_status": booking.status.value,
        "payment_status": booking.payment_status.value,
    }
