"""
Booking persistence

Bookings live in the ``bookings`` collection and each car's reservation
index in ``car_schedules``. Documents use the camelCase field names of the
hosted data model so existing records stay readable.
"""

from __future__ import annotations

import logging
from datetime import datetime

from shared.domain.value_objects import DateRange, Money
from shared.infrastructure.document_store import (
    SERVER_TIMESTAMP,
    Document,
    DocumentStore,
    WriteBatch,
    where,
)
from shared.infrastructure.mapping import decimal_str, iso, to_date, to_datetime, to_decimal

from .domain.entities import Booking, BookingStatus, PaymentStatus, StatusChange
from .domain.inventory import Allocation, ReservationIndex

logger = logging.getLogger(__name__)

BOOKINGS = 'bookings'
SCHEDULES = 'car_schedules'


def booking_to_document(booking: Booking) -> dict:
    return {
        'carId': booking.car_id,
        'userId': booking.user_id,
        'pickupDate': iso(booking.pickup_date),
        'dropoffDate': iso(booking.dropoff_date),
        'status': booking.status.value,
        'paymentStatus': booking.payment_status.value,
        'totalAmount': decimal_str(booking.total_amount.amount),
        'currency': booking.currency,
        'pricePerDay': decimal_str(booking.price_per_day.amount),
        'totalDays': booking.total_days,
        'customerName': booking.customer_name,
        'customerEmail': booking.customer_email,
        'customerPhone': booking.customer_phone,
        'customerNotes': booking.customer_notes,
        'pickupLocation': booking.pickup_location,
        'dropoffLocation': booking.dropoff_location,
        'holdExpiresAt': iso(booking.hold_expires_at),
        'cancellationReason': booking.cancellation_reason or None,
        'refundAmount': decimal_str(booking.refund_amount.amount) if booking.refund_amount is not None else None,
        'paymentReference': booking.payment_reference or None,
        'paidAt': iso(booking.paid_at),
        'cancelledAt': iso(booking.cancelled_at),
        'completedAt': iso(booking.completed_at),
        'history': [
            {
                'status': change.status.value,
                'at': iso(change.at),
                'actorId': change.actor_id,
                'note': change.note,
            }
            for change in booking.history
        ],
    }


def booking_from_document(document: Document) -> Booking:
    data = document.data
    currency = data.get('currency') or 'KES'
    refund = data.get('refundAmount')
    return Booking(
        id=document.id,
        version=document.version,
        created_at=to_datetime(data.get('createdAt')) or document.create_time,
        updated_at=document.update_time,
        car_id=data['carId'],
        user_id=str(data['userId']),
        dates=DateRange(to_date(data['pickupDate']), to_date(data['dropoffDate'])),
        price_per_day=Money(to_decimal(data.get('pricePerDay')), currency),
        total_amount=Money(to_decimal(data.get('totalAmount')), currency),
        total_days=int(data.get('totalDays') or 0),
        customer_name=data.get('customerName') or '',
        customer_email=data.get('customerEmail') or '',
        customer_phone=data.get('customerPhone') or '',
        customer_notes=data.get('customerNotes') or '',
        pickup_location=data.get('pickupLocation') or '',
        dropoff_location=data.get('dropoffLocation') or '',
        status=BookingStatus(data.get('status') or 'pending'),
        payment_status=PaymentStatus(data.get('paymentStatus') or 'pending'),
        hold_expires_at=to_datetime(data.get('holdExpiresAt')),
        cancellation_reason=data.get('cancellationReason') or '',
        refund_amount=Money(to_decimal(refund), currency) if refund is not None else None,
        payment_reference=data.get('paymentReference') or '',
        paid_at=to_datetime(data.get('paidAt')),
        cancelled_at=to_datetime(data.get('cancelledAt')),
        completed_at=to_datetime(data.get('completedAt')),
        history=[
            StatusChange(
                status=BookingStatus(entry['status']),
                at=to_datetime(entry['at']),
                actor_id=entry.get('actorId'),
                note=entry.get('note') or '',
            )
            for entry in data.get('history') or []
        ],
    )


class BookingRepository:
    """Reads bookings and stages booking writes into a batch."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def get(self, booking_id: str) -> Booking | None:
        document = self.store.get(BOOKINGS, booking_id)
        return booking_from_document(document) if document else None

    def for_car(self, car_id: str) -> list[Booking]:
        documents = self.store.query(BOOKINGS, [where('carId', '==', car_id)], order_by='pickupDate')
        return [booking_from_document(d) for d in documents]

    def for_user(self, user_id: str) -> list[Booking]:
        documents = self.store.query(
            BOOKINGS, [where('userId', '==', user_id)], order_by='createdAt', descending=True,
        )
        return [booking_from_document(d) for d in documents]

    def all(self, status: BookingStatus | None = None) -> list[Booking]:
        filters = [where('status', '==', status.value)] if status else []
        documents = self.store.query(BOOKINGS, filters, order_by='createdAt', descending=True)
        return [booking_from_document(d) for d in documents]

    def stage_create(self, batch: WriteBatch, booking: Booking) -> None:
        data = booking_to_document(booking)
        data['createdAt'] = iso(booking.created_at)
        data['updatedAt'] = SERVER_TIMESTAMP
        batch.create(BOOKINGS, booking.id, data)

    def stage_save(self, batch: WriteBatch, booking: Booking) -> None:
        """Stage a full rewrite guarded by the version the booking was read at."""
        data = booking_to_document(booking)
        data['updatedAt'] = SERVER_TIMESTAMP
        batch.update(BOOKINGS, booking.id, data, expected_version=booking.version)


class ScheduleRepository:
    """
    Loads and stages per-car reservation indexes

    A car without an index document gets one rebuilt from its bookings;
    the first write then creates the document, which fails if another
    writer created it in the meantime.
    """

    def __init__(self, store: DocumentStore, bookings: BookingRepository):
        self.store = store
        self.bookings = bookings

    def load(self, car_id: str, now: datetime) -> ReservationIndex:
        document = self.store.get(SCHEDULES, car_id)
        if document is None:
            logger.info(f"No reservation index for car {car_id}, rebuilding from bookings")
            return ReservationIndex.rebuild(car_id, self.bookings.for_car(car_id), now)

        return ReservationIndex(
            id=car_id,
            car_id=car_id,
            version=document.version,
            allocations=[
                Allocation(
                    booking_id=entry['bookingId'],
                    dates=DateRange(to_date(entry['pickupDate']), to_date(entry['dropoffDate'])),
                    hold_expires_at=to_datetime(entry.get('holdExpiresAt')),
                )
                for entry in document.data.get('allocations') or []
            ],
        )

    def stage_save(self, batch: WriteBatch, index: ReservationIndex) -> None:
        data = {
            'carId': index.car_id,
            'allocations': [
                {
                    'bookingId': a.booking_id,
                    'pickupDate': iso(a.pickup_date),
                    'dropoffDate': iso(a.dropoff_date),
                    'holdExpiresAt': iso(a.hold_expires_at),
                }
                for a in sorted(index.allocations, key=lambda a: (a.pickup_date, a.booking_id))
            ],
            'updatedAt': SERVER_TIMESTAMP,
        }
        if index.version == 0:
            batch.create(SCHEDULES, index.car_id, data)
        else:
            batch.set(SCHEDULES, index.car_id, data, expected_version=index.version)
