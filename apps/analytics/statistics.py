"""Aggregate booking and fleet statistics for the admin dashboard."""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Iterable

from apps.bookings.domain.entities import Booking, BookingStatus, PaymentStatus
from apps.bookings.repository import BookingRepository
from apps.cars.domain import Car
from apps.cars.repository import CarRepository
from apps.store.backend import get_document_store
from apps.users.identity import Actor, require_admin
from shared.application.result import returns_result
from shared.domain.base import utcnow
from shared.domain.value_objects import CENT
from shared.infrastructure.document_store import DocumentStore


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _previous_month_start(day: date) -> date:
    first = _month_start(day)
    if first.month == 1:
        return first.replace(year=first.year - 1, month=12)
    return first.replace(month=first.month - 1)


def booking_statistics(bookings: Iterable[Booking], now: datetime) -> dict[str, Any]:
    bookings = list(bookings)
    paid = [b for b in bookings if b.payment_status == PaymentStatus.PAID]

    this_month = _month_start(now.date())
    last_month = _previous_month_start(now.date())

    def revenue(selected: Iterable[Booking]) -> Decimal:
        return sum((b.total_amount.amount for b in selected), Decimal('0')).quantize(CENT)

    def paid_on(booking: Booking) -> date:
        return (booking.paid_at or booking.created_at).date()

    counts = Counter(b.status.value for b in bookings)
    total_revenue = revenue(paid)
    return {
        'total': len(bookings),
        'by_status': {status.value: counts.get(status.value, 0) for status in BookingStatus},
        'total_revenue': total_revenue,
        'this_month_revenue': revenue(b for b in paid if paid_on(b) >= this_month),
        'last_month_revenue': revenue(b for b in paid if last_month <= paid_on(b) < this_month),
        'average_booking_value': (total_revenue / len(paid)).quantize(CENT) if paid else Decimal('0.00'),
        'recent': sorted(bookings, key=lambda b: b.created_at, reverse=True)[:5],
    }


def car_statistics(cars: Iterable[Car]) -> dict[str, Any]:
    cars = list(cars)
    available = sum(1 for car in cars if car.available)
    return {
        'total': len(cars),
        'available': available,
        'unavailable': len(cars) - available,
        'by_category': dict(Counter(car.category for car in cars)),
        'top_by_revenue': sorted(cars, key=lambda car: car.total_revenue, reverse=True)[:5],
    }


class AnalyticsService:
    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utcnow):
        self.bookings = BookingRepository(store)
        self.cars = CarRepository(store)
        self.clock = clock

    @returns_result
    def get_booking_statistics(self, actor: Actor | None, now: datetime | None = None) -> dict[str, Any]:
        require_admin(actor)
        return booking_statistics(self.bookings.all(), now or self.clock())

    @returns_result
    def get_car_statistics(self, actor: Actor | None) -> dict[str, Any]:
        require_admin(actor)
        return car_statistics(self.cars.list())


def get_analytics_service() -> AnalyticsService:
    return AnalyticsService(get_document_store())
