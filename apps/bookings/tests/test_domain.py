"""Tests for the booking domain: conflicts, status machine, index, refunds, pricing."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from apps.bookings.domain.conflicts import find_conflicts
from apps.bookings.domain.entities import (
    Booking,
    BookingStatus,
    PaymentStatus,
    generate_booking_id,
)
from apps.bookings.domain.events import BookingCancelled, BookingConfirmed
from apps.bookings.domain.inventory import ReservationIndex
from apps.bookings.domain.pricing import quote
from apps.bookings.domain.refunds import calculate_refund
from shared.domain.errors import DateConflict, IllegalTransition
from shared.domain.value_objects import DateRange, Money

NOW = datetime(2024, 8, 15, 9, 0, tzinfo=timezone.utc)


def make_booking(pickup, dropoff, status=BookingStatus.PENDING, total="11600", booking_id=None, **fields):
    payment_status = fields.pop("payment_status", None)
    if payment_status is None:
        payment_status = PaymentStatus.PAID if status in (
            BookingStatus.CONFIRMED, BookingStatus.ACTIVE, BookingStatus.COMPLETED,
        ) else PaymentStatus.PENDING
        if status == BookingStatus.CANCELLED:
            payment_status = PaymentStatus.CANCELLED
    kwargs = dict(
        car_id="car-1",
        user_id="user-1",
        dates=DateRange(pickup, dropoff),
        price_per_day=Money("5000"),
        total_amount=Money(total),
        status=status,
        payment_status=payment_status,
        **fields,
    )
    if booking_id:
        kwargs["id"] = booking_id
    return Booking(**kwargs)


# ===== Conflicts =====

def test_back_to_back_bookings_do_not_conflict():
    existing = make_booking(date(2024, 8, 20), date(2024, 8, 22), BookingStatus.CONFIRMED)

    result = find_conflicts([existing], DateRange(date(2024, 8, 22), date(2024, 8, 25)), NOW)
    assert not result.has_conflict

    result = find_conflicts([existing], DateRange(date(2024, 8, 18), date(2024, 8, 20)), NOW)
    assert not result.has_conflict


def test_overlapping_bookings_conflict_in_pickup_order():
    later = make_booking(date(2024, 8, 23), date(2024, 8, 26), BookingStatus.CONFIRMED)
    earlier = make_booking(date(2024, 8, 19), date(2024, 8, 21))

    result = find_conflicts([later, earlier], DateRange(date(2024, 8, 20), date(2024, 8, 24)), NOW)

    assert result.has_conflict
    assert result.conflicts == [earlier, later]


def test_cancelled_failed_and_lapsed_bookings_do_not_block():
    dates = DateRange(date(2024, 8, 20), date(2024, 8, 22))
    cancelled = make_booking(date(2024, 8, 20), date(2024, 8, 22), BookingStatus.CANCELLED)
    failed = make_booking(
        date(2024, 8, 20), date(2024, 8, 22), BookingStatus.PAYMENT_FAILED,
        payment_status=PaymentStatus.FAILED,
    )
    lapsed = make_booking(
        date(2024, 8, 20), date(2024, 8, 22), hold_expires_at=NOW - timedelta(minutes=1),
    )

    assert not find_conflicts([cancelled, failed, lapsed], dates, NOW).has_conflict


def test_completed_bookings_still_block_their_dates():
    completed = make_booking(date(2024, 8, 20), date(2024, 8, 22), BookingStatus.COMPLETED)
    result = find_conflicts([completed], DateRange(date(2024, 8, 21), date(2024, 8, 23)), NOW)
    assert result.has_conflict


def test_excluded_booking_is_ignored():
    existing = make_booking(date(2024, 8, 20), date(2024, 8, 22), BookingStatus.CONFIRMED)
    result = find_conflicts(
        [existing], DateRange(date(2024, 8, 20), date(2024, 8, 22)), NOW, exclude_booking_id=existing.id,
    )
    assert not result.has_conflict


# ===== Status machine =====

def test_confirming_sets_paid_and_clears_hold():
    booking = make_booking(date(2024, 8, 20), date(2024, 8, 22), hold_expires_at=NOW + timedelta(minutes=15))

    booking.transition_to(BookingStatus.CONFIRMED, at=NOW)

    assert booking.status == BookingStatus.CONFIRMED
    assert booking.payment_status == PaymentStatus.PAID
    assert booking.paid_at == NOW
    assert booking.hold_expires_at is None
    assert [change.status for change in booking.history] == [BookingStatus.CONFIRMED]
    assert isinstance(booking.events[0], BookingConfirmed)


@pytest.mark.parametrize("current,target", [
    (BookingStatus.COMPLETED, BookingStatus.CONFIRMED),
    (BookingStatus.CANCELLED, BookingStatus.CONFIRMED),
    (BookingStatus.PENDING, BookingStatus.ACTIVE),
    (BookingStatus.PENDING, BookingStatus.COMPLETED),
    (BookingStatus.CONFIRMED, BookingStatus.PENDING),
    (BookingStatus.ACTIVE, BookingStatus.CONFIRMED),
])
def test_illegal_transitions_are_rejected(current, target):
    booking = make_booking(date(2024, 8, 20), date(2024, 8, 22), current)

    with pytest.raises(IllegalTransition) as excinfo:
        booking.transition_to(target, at=NOW)

    assert excinfo.value.current == current.value
    assert booking.status == current
    assert booking.history == []


def test_cancelling_with_refund_marks_payment_refunded():
    booking = make_booking(date(2024, 8, 20), date(2024, 8, 22), BookingStatus.CONFIRMED)

    booking.transition_to(
        BookingStatus.CANCELLED, at=NOW, cancellation_reason="Plans changed", refund_amount=Money("10440"),
    )

    assert booking.payment_status == PaymentStatus.REFUNDED
    assert booking.cancelled_at == NOW
    event = booking.events[0]
    assert isinstance(event, BookingCancelled)
    assert event.refund_amount == Money("10440")


def test_cancelling_unpaid_booking_marks_payment_cancelled():
    booking = make_booking(date(2024, 8, 20), date(2024, 8, 22))
    booking.transition_to(BookingStatus.CANCELLED, at=NOW)
    assert booking.payment_status == PaymentStatus.CANCELLED


def test_paid_booking_cannot_be_stored_as_pending():
    with pytest.raises(ValueError):
        make_booking(date(2024, 8, 20), date(2024, 8, 22), payment_status=PaymentStatus.PAID)


def test_transition_breaking_payment_rules_is_illegal():
    booking = make_booking(date(2024, 8, 20), date(2024, 8, 22))

    with pytest.raises(IllegalTransition) as excinfo:
        booking.transition_to(BookingStatus.CANCELLED, at=NOW, payment_status=PaymentStatus.PAID)

    assert "is paid but has status cancelled" in excinfo.value.message


def test_refund_cannot_exceed_booking_total():
    booking = make_booking(date(2024, 8, 20), date(2024, 8, 22), BookingStatus.CONFIRMED)

    with pytest.raises(IllegalTransition):
        booking.transition_to(BookingStatus.CANCELLED, at=NOW, refund_amount=Money("11600.01"))


def test_legacy_pending_payment_status_reads_as_pending():
    assert BookingStatus("pending_payment") is BookingStatus.PENDING


def test_booking_id_format():
    booking_id = generate_booking_id(NOW)
    assert booking_id.startswith("BK")
    assert len(booking_id) == 14
    assert booking_id[2:10].isdigit()
    assert booking_id[10:].isalnum() and booking_id[10:].upper() == booking_id[10:]


# ===== Reservation index =====

def test_index_rejects_overlapping_allocation():
    index = ReservationIndex(car_id="car-1")
    index.allocate("b1", DateRange(date(2024, 8, 20), date(2024, 8, 22)), NOW)

    with pytest.raises(DateConflict) as excinfo:
        index.allocate("b2", DateRange(date(2024, 8, 21), date(2024, 8, 23)), NOW)

    assert "2024-08-20 - 2024-08-22" in excinfo.value.message
    assert excinfo.value.details["conflicts"][0]["booking_id"] == "b1"


def test_index_ignores_lapsed_holds_and_released_bookings():
    index = ReservationIndex(car_id="car-1")
    dates = DateRange(date(2024, 8, 20), date(2024, 8, 22))
    index.allocate("b1", dates, NOW, hold_expires_at=NOW + timedelta(minutes=15))

    later = NOW + timedelta(minutes=16)
    assert index.can_allocate(dates, later)

    index.allocate("b2", dates, later)
    assert [a.booking_id for a in index.allocations] == ["b2"]

    assert index.release("b2")
    assert index.can_allocate(dates, later)


def test_index_rebuild_keeps_only_blocking_bookings():
    confirmed = make_booking(date(2024, 8, 20), date(2024, 8, 22), BookingStatus.CONFIRMED)
    cancelled = make_booking(date(2024, 8, 23), date(2024, 8, 24), BookingStatus.CANCELLED)

    index = ReservationIndex.rebuild("car-1", [confirmed, cancelled], NOW)

    assert [a.booking_id for a in index.allocations] == [confirmed.id]
    assert index.version == 0


def test_index_prunes_allocations_that_are_over():
    index = ReservationIndex(car_id="car-1")
    earlier = NOW - timedelta(days=10)
    index.allocate("past", DateRange(date(2024, 8, 10), date(2024, 8, 12)), earlier)
    index.allocate("ending", DateRange(date(2024, 8, 12), date(2024, 8, 15)), earlier)
    index.allocate("future", DateRange(date(2024, 8, 20), date(2024, 8, 22)), earlier)

    assert index.prune(NOW) == 1
    assert [a.booking_id for a in index.allocations] == ["ending", "future"]

    rebuilt = ReservationIndex.rebuild("car-1", [
        make_booking(date(2024, 8, 10), date(2024, 8, 12), BookingStatus.COMPLETED, booking_id="done"),
        make_booking(date(2024, 8, 20), date(2024, 8, 22), BookingStatus.CONFIRMED, booking_id="next"),
    ], NOW)
    assert [a.booking_id for a in rebuilt.allocations] == ["next"]


# ===== Refunds =====

@pytest.mark.parametrize("hours_before,expected", [
    (72, Decimal("9000.00")),
    (50, Decimal("9000.00")),
    (48, Decimal("5000.00")),
    (36, Decimal("5000.00")),
    (24, Decimal("0.00")),
    (12, Decimal("0.00")),
    (-5, Decimal("0.00")),
])
def test_refund_depends_on_notice(hours_before, expected):
    booking = make_booking(date(2024, 8, 20), date(2024, 8, 22), BookingStatus.CONFIRMED, total="10000")
    pickup_midnight = datetime(2024, 8, 20, tzinfo=timezone.utc)

    refund = calculate_refund(booking, pickup_midnight - timedelta(hours=hours_before))

    assert refund.amount == expected


def test_refund_rounds_half_up_to_cents():
    booking = make_booking(date(2024, 8, 20), date(2024, 8, 22), BookingStatus.CONFIRMED, total="100.05")
    refund = calculate_refund(booking, datetime(2024, 8, 18, 12, tzinfo=timezone.utc))
    assert refund.amount == Decimal("50.03")


# ===== Pricing =====

def test_quote_adds_vat():
    priced = quote(Money("5000"), DateRange(date(2024, 8, 20), date(2024, 8, 22)), Decimal("0.16"))

    assert priced.days == 2
    assert priced.base.amount == Decimal("10000.00")
    assert priced.tax.amount == Decimal("1600.00")
    assert priced.total.amount == Decimal("11600.00")
