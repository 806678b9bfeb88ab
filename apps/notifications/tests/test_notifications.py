from __future__ import annotations

from datetime import date

import pytest

from apps.notifications.handlers import register_handlers
from apps.notifications.services import NOTIFICATIONS, NotificationService, NotificationType
from shared.infrastructure.document_store import where


@pytest.fixture
def notifications(store):
    return NotificationService(store, admin_ids=lambda: ["admin-1", "admin-2"])


@pytest.fixture
def notifier(bus, notifications):
    return register_handlers(bus, lambda: notifications)


def stored_for(store, user_id):
    return [d.data for d in store.query(NOTIFICATIONS, [where("userId", "==", user_id)])]


def test_booking_created_notifies_customer_and_admins(notifier, store, book, customer):
    booking = book(date(2024, 8, 20), date(2024, 8, 22), customer_name="Amina")

    mine = stored_for(store, customer.id)
    assert [n["title"] for n in mine] == ["Booking created"]
    assert mine[0]["data"]["bookingId"] == booking.id
    assert mine[0]["read"] is False

    for admin_id in ("admin-1", "admin-2"):
        admin_notes = stored_for(store, admin_id)
        assert [n["type"] for n in admin_notes] == [NotificationType.ADMIN]
        assert "Amina" in admin_notes[0]["message"]


def test_confirmation_sends_email(notifier, store, reconciler, book, customer, mailoutbox):
    booking = book(date(2024, 8, 20), date(2024, 8, 22), customer_email="amina@example.com")

    reconciler.on_payment_update(booking.id, "paid").unwrap()

    titles = [n["title"] for n in stored_for(store, customer.id)]
    assert "Payment received" in titles
    assert len(mailoutbox) == 1
    assert mailoutbox[0].to == ["amina@example.com"]
    assert booking.id in mailoutbox[0].subject


def test_confirmation_without_email_sends_nothing(notifier, reconciler, book, mailoutbox):
    booking = book(date(2024, 8, 20), date(2024, 8, 22))

    reconciler.on_payment_update(booking.id, "paid").unwrap()

    assert mailoutbox == []


def test_cancellation_with_refund_adds_refund_notice(notifier, store, lifecycle, reconciler, book, customer):
    booking = book(date(2024, 8, 20), date(2024, 8, 22))
    reconciler.on_payment_update(booking.id, "paid").unwrap()

    lifecycle.cancel_booking(booking.id, "Trip postponed", actor=customer).unwrap()

    mine = stored_for(store, customer.id)
    cancelled = [n for n in mine if n["title"] == "Booking cancelled"]
    assert cancelled and "Trip postponed" in cancelled[0]["message"]
    assert any(n["title"] == "Refund processed" for n in mine)


def test_failed_payment_and_completion_notices(notifier, store, lifecycle, reconciler, book, customer, admin):
    failed = book(date(2024, 8, 20), date(2024, 8, 22))
    reconciler.on_payment_update(failed.id, "failed").unwrap()

    done = book(date(2024, 8, 25), date(2024, 8, 27))
    reconciler.on_payment_update(done.id, "paid").unwrap()
    lifecycle.complete_booking(done.id, admin).unwrap()

    titles = [n["title"] for n in stored_for(store, customer.id)]
    assert "Payment failed" in titles
    updates = [n for n in stored_for(store, customer.id) if n["title"] == "Booking updated"]
    assert [n["data"]["status"] for n in updates] == ["completed"]


def test_reading_notifications(notifications, customer, other_customer):
    first = notifications.notify(customer.id, NotificationType.BOOKING, "One", "First")
    notifications.notify(customer.id, NotificationType.PAYMENT, "Two", "Second")
    notifications.notify(other_customer.id, NotificationType.BOOKING, "Other", "Not yours")

    assert len(notifications.list_for_user(customer).unwrap()) == 2
    assert notifications.unread_count(customer).unwrap() == 2

    marked = notifications.mark_read(first, customer).unwrap()
    assert marked["read"] is True
    assert [n["title"] for n in notifications.list_for_user(customer, unread_only=True).unwrap()] == ["Two"]

    assert notifications.mark_read(first, other_customer).code == "not_found"
    assert notifications.mark_all_read(customer).unwrap() == 1
    assert notifications.unread_count(customer).unwrap() == 0
    assert notifications.list_for_user(None).code == "auth_required"
