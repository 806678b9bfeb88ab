"""Shared pytest fixtures.

Service-level tests run against the in-memory document store with a
fixed, adjustable clock; API tests use the Django-backed store.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from apps.bookings.application.lifecycle import BookingLifecycleManager, BookingRequest
from apps.bookings.application.reconciler import PaymentStatusReconciler
from apps.cars.domain import Car
from apps.cars.repository import CarRepository
from apps.users.identity import Actor, Role
from shared.application.message_bus import MessageBus
from shared.domain.value_objects import Money
from shared.infrastructure.document_store import InMemoryDocumentStore

FIXED_NOW = datetime(2024, 8, 15, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return now


@pytest.fixture
def clock():
    return FakeClock(FIXED_NOW)


@pytest.fixture
def store(clock):
    return InMemoryDocumentStore(clock=clock)


@pytest.fixture
def bus():
    return MessageBus()


@pytest.fixture
def customer():
    return Actor(id="user-1")


@pytest.fixture
def other_customer():
    return Actor(id="user-2")


@pytest.fixture
def admin():
    return Actor(id="admin-1", role=Role.ADMIN)


def add_car(store, name="Toyota Prado", category="suv", price="5000", **fields) -> Car:
    car = Car(name=name, category=category, price_per_day=Money(Decimal(price), "KES"), **fields)
    batch = store.batch()
    CarRepository(store).stage_create(batch, car)
    store.commit(batch)
    return CarRepository(store).get(car.id)


@pytest.fixture
def car(store):
    return add_car(store)


@pytest.fixture
def lifecycle(store, bus, clock):
    return BookingLifecycleManager(
        store, bus=bus, clock=clock, hold_minutes=15, vat=Decimal("0.16"), retries=3,
    )


@pytest.fixture
def reconciler(lifecycle):
    return PaymentStatusReconciler(lifecycle)


@pytest.fixture
def book(lifecycle, car, customer):
    """Create a booking for the default car and return it."""

    def _book(pickup: date, dropoff: date, actor: Actor | None = None, car_id: str | None = None, **contact):
        request = BookingRequest(
            car_id=car_id or car.id, pickup_date=pickup, dropoff_date=dropoff, **contact,
        )
        return lifecycle.create_booking(request, actor or customer).unwrap()

    return _book
