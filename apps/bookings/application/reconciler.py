"""
Payment Status Reconciler

Maps payment gateway outcomes onto booking transitions. Gateways retry
callbacks, so every outcome is applied at most once: a booking that is
already paid (or refunded) is returned unchanged.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from shared.application.result import returns_result
from shared.domain.errors import ValidationFailed
from shared.infrastructure.mapping import to_datetime

from apps.bookings.domain.entities import Booking, BookingStatus, PaymentStatus
from apps.bookings.domain.inventory import ReservationIndex

from .lifecycle import BookingLifecycleManager, CarChanges

logger = logging.getLogger(__name__)

PAID = 'paid'
FAILED = 'failed'

# Gateway vocabularies differ; None means "nothing to do yet"
STATUS_ALIASES: dict[str, str | None] = {
    'paid': PAID,
    'completed': PAID,
    'success': PAID,
    'failed': FAILED,
    'cancelled': FAILED,
    'declined': FAILED,
    'pending': None,
    'processing': None,
}


def normalize_status(value: str | None) -> str | None:
    return STATUS_ALIASES.get((value or '').strip().lower(), 'unknown')


class PaymentStatusReconciler:
    """
    Applies payment outcomes to bookings

    - paid: pending -> confirmed, car statistics incremented once.
      If the hold lapsed and someone else booked the dates meanwhile,
      the booking is cancelled and the payment refunded in full.
      A payment for a cancelled booking is refunded in full.
    - failed: pending -> payment_failed; ignored for any other status.
    """

    def __init__(self, lifecycle: BookingLifecycleManager):
        self.lifecycle = lifecycle

    @returns_result
    def on_payment_update(
        self,
        booking_id: str,
        payment_status: str,
        payment_data: dict[str, Any] | None = None,
    ) -> Booking | None:
        """
        Apply one payment outcome

        Returns the booking, or None when the status is not one that
        changes anything.
        """
        payment_data = payment_data or {}
        outcome = normalize_status(payment_status)

        if outcome == 'unknown':
            logger.warning(f"Ignoring unknown payment status {payment_status!r} for booking {booking_id}")
            return None
        if outcome is None:
            logger.info(f"Payment for booking {booking_id} still {payment_status}, nothing to do")
            return None

        if outcome == PAID:
            return self.lifecycle.apply_change(booking_id, self._paid(payment_data))
        return self.lifecycle.apply_change(booking_id, self._failed(payment_data))

    @returns_result
    def on_gateway_event(self, payload: dict[str, Any]) -> Booking | None:
        """Normalise a gateway callback ``{bookingId, status, resultDescription}``."""
        booking_id = payload.get('bookingId') or payload.get('booking_id')
        status = payload.get('status')
        if not booking_id or not status:
            raise ValidationFailed("bookingId and status are required")

        payment_data = {
            'reference': payload.get('reference') or payload.get('transactionId') or '',
            'paidAt': payload.get('paidAt'),
            'description': payload.get('resultDescription') or '',
        }
        return self.on_payment_update(str(booking_id), str(status), payment_data).unwrap()

    def _paid(self, payment_data: dict[str, Any]):
        reference = payment_data.get('reference') or None

        def mutate(booking: Booking, index: ReservationIndex, now: datetime) -> CarChanges | None:
            paid_at = to_datetime(payment_data.get('paidAt')) or now

            if booking.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
                logger.info(f"Duplicate payment notification for booking {booking.id}, ignoring")
                return None

            if booking.status in (BookingStatus.CANCELLED, BookingStatus.PAYMENT_FAILED):
                logger.warning(f"Payment arrived for {booking.status.value} booking {booking.id}, refunding")
                booking.refund_late_payment(at=now, payment_reference=reference)
                return CarChanges()

            if booking.status != BookingStatus.PENDING:
                logger.warning(
                    f"Payment for booking {booking.id} in status {booking.status.value}, ignoring"
                )
                return None

            if booking.hold_expired(now) and not index.can_allocate(booking.dates, now, booking.id):
                logger.warning(
                    f"Hold of booking {booking.id} lapsed and its dates were taken, refunding payment"
                )
                booking.transition_to(
                    BookingStatus.CANCELLED,
                    at=now,
                    payment_status=PaymentStatus.REFUNDED,
                    cancellation_reason="Dates no longer available when payment arrived",
                    refund_amount=booking.total_amount,
                    paid_at=paid_at,
                    note='payment after hold expiry',
                )
                booking.payment_reference = reference or booking.payment_reference
                return CarChanges()

            booking.transition_to(
                BookingStatus.CONFIRMED,
                at=now,
                payment_status=PaymentStatus.PAID,
                paid_at=paid_at,
                payment_reference=reference,
                note=payment_data.get('description', ''),
            )
            logger.info(f"Payment received for booking {booking.id}: {booking.total_amount}")
            return CarChanges(record_payment=True)

        return mutate

    def _failed(self, payment_data: dict[str, Any]):
        def mutate(booking: Booking, index: ReservationIndex, now: datetime) -> CarChanges | None:
            if booking.status != BookingStatus.PENDING:
                logger.info(
                    f"Payment failure for booking {booking.id} in status {booking.status.value}, ignoring"
                )
                return None

            booking.transition_to(
                BookingStatus.PAYMENT_FAILED,
                at=now,
                payment_status=PaymentStatus.FAILED,
                note=payment_data.get('description', ''),
            )
            logger.info(f"Payment failed for booking {booking.id}")
            return CarChanges()

        return mutate
