"""
Booking event subscribers

Turn committed booking events into customer and admin notifications.
Registered on the message bus when the app is ready.
"""

from __future__ import annotations

import logging
from typing import Callable

from apps.bookings.domain import events
from apps.bookings.repository import BookingRepository
from shared.application.message_bus import MessageBus

from .services import NotificationService, NotificationType, send_booking_confirmation_email

logger = logging.getLogger(__name__)


class BookingNotifier:
    def __init__(self, service_factory: Callable[[], NotificationService]):
        self.service_factory = service_factory

    def booking_created(self, event: events.BookingCreated):
        service = self.service_factory()
        data = {'bookingId': event.booking_id, 'carId': event.car_id}
        service.notify(
            event.user_id,
            NotificationType.BOOKING,
            "Booking created",
            f"Booking {event.booking_id} for {event.dates} is awaiting payment of {event.total_amount}.",
            data,
        )
        service.notify_admins(
            "New booking",
            f"{event.customer_name or 'A customer'} booked car {event.car_id} for {event.dates}.",
            data,
        )

    def booking_confirmed(self, event: events.BookingConfirmed):
        service = self.service_factory()
        data = {'bookingId': event.booking_id, 'carId': event.car_id}
        service.notify(
            event.user_id,
            NotificationType.PAYMENT,
            "Payment received",
            f"We received {event.total_amount} for booking {event.booking_id}. Your booking is confirmed.",
            data,
        )
        service.notify_admins(
            "Payment received",
            f"Booking {event.booking_id} was paid: {event.total_amount}.",
            data,
        )

        booking = BookingRepository(service.store).get(event.booking_id)
        if booking is not None and booking.customer_email:
            send_booking_confirmation_email(booking)

    def booking_cancelled(self, event: events.BookingCancelled):
        service = self.service_factory()
        data = {'bookingId': event.booking_id, 'carId': event.car_id}
        message = f"Booking {event.booking_id} was cancelled."
        if event.reason:
            message = f"{message} Reason: {event.reason}"
        service.notify(event.user_id, NotificationType.BOOKING, "Booking cancelled", message, data)

        if event.refund_amount:
            service.notify(
                event.user_id,
                NotificationType.PAYMENT,
                "Refund processed",
                f"A refund of {event.refund_amount} for booking {event.booking_id} is on its way.",
                data,
            )

    def booking_refunded(self, event: events.BookingRefunded):
        self.service_factory().notify(
            event.user_id,
            NotificationType.PAYMENT,
            "Refund processed",
            f"Your payment for booking {event.booking_id} arrived after it was closed "
            f"and {event.refund_amount} will be refunded.",
            {'bookingId': event.booking_id},
        )

    def payment_failed(self, event: events.BookingPaymentFailed):
        self.service_factory().notify(
            event.user_id,
            NotificationType.PAYMENT,
            "Payment failed",
            f"The payment for booking {event.booking_id} did not go through.",
            {'bookingId': event.booking_id},
        )

    def status_changed(self, event: events.BookingEvent):
        status = 'active' if isinstance(event, events.BookingStarted) else 'completed'
        self.service_factory().notify(
            event.user_id,
            NotificationType.BOOKING,
            "Booking updated",
            f"Booking status changed to {status}",
            {'bookingId': event.booking_id, 'status': status},
        )


def register_handlers(bus: MessageBus, service_factory: Callable[[], NotificationService]) -> BookingNotifier:
    notifier = BookingNotifier(service_factory)
    bus.register_event_handler(events.BookingCreated, notifier.booking_created)
    bus.register_event_handler(events.BookingConfirmed, notifier.booking_confirmed)
    bus.register_event_handler(events.BookingCancelled, notifier.booking_cancelled)
    bus.register_event_handler(events.BookingRefunded, notifier.booking_refunded)
    bus.register_event_handler(events.BookingPaymentFailed, notifier.payment_failed)
    bus.register_event_handler(events.BookingStarted, notifier.status_changed)
    bus.register_event_handler(events.BookingCompleted, notifier.status_changed)
    logger.debug("Booking notification handlers registered")
    return notifier
