"""
Booking Lifecycle Manager

The use cases of the booking domain: create a booking, move it through
its status machine and answer the booking reads. Every write is one
atomic document-store batch; domain events are published after it
commits.

Operations:
- create_booking: hold the dates of a car for an unpaid booking
- update_status / update_booking_status: apply a status transition
- cancel_booking, complete_booking, start_rental: named transitions
- check_conflict, get_available_cars and the booking reads
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable

from apps.cars.repository import CarRepository
from apps.users.identity import Actor, require_actor, require_admin
from shared.application.message_bus import MessageBus
from shared.application.result import returns_result
from shared.application.uow import DocumentStoreUnitOfWork, retry_on_conflict
from shared.conf import rental_setting, vat_rate
from shared.domain.base import utcnow
from shared.domain.errors import (
    AdminRequired,
    DateConflict,
    InvalidDateRange,
    NotFound,
    ValidationFailed,
)
from shared.domain.value_objects import DateRange, Money
from shared.infrastructure.document_store import DocumentStore, WriteBatch
from shared.infrastructure.mapping import to_datetime, to_decimal

from apps.bookings.domain.conflicts import ConflictChecker, ConflictResult
from apps.bookings.domain.entities import (
    NON_BLOCKING_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
    generate_booking_id,
)
from apps.bookings.domain.events import BookingCreated
from apps.bookings.domain.inventory import ReservationIndex
from apps.bookings.domain.pricing import quote
from apps.bookings.domain.refunds import calculate_refund
from apps.bookings.repository import BookingRepository, ScheduleRepository

logger = logging.getLogger(__name__)


# ===== Requests =====

@dataclass
class BookingRequest:
    """What a customer submits to book a car"""
    car_id: str
    pickup_date: date
    dropoff_date: date
    customer_name: str = ''
    customer_email: str = ''
    customer_phone: str = ''
    customer_notes: str = ''
    pickup_location: str = ''
    dropoff_location: str = ''


@dataclass
class CarChanges:
    """Car-level writes that accompany a booking change"""
    record_payment: bool = False


Mutation = Callable[[Booking, ReservationIndex, datetime], 'CarChanges | None']


def parse_status(value: BookingStatus | str) -> BookingStatus:
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(value)
    except ValueError as e:
        raise ValidationFailed(f"Unknown booking status: {value}", status=value) from e


def parse_payment_status(value: PaymentStatus | str | None) -> PaymentStatus | None:
    if value is None or isinstance(value, PaymentStatus):
        return value
    try:
        return PaymentStatus(value)
    except ValueError as e:
        raise ValidationFailed(f"Unknown payment status: {value}", payment_status=value) from e


def validate_dates(pickup_date: date, dropoff_date: date, today: date) -> DateRange:
    if pickup_date is None or dropoff_date is None:
        raise InvalidDateRange("Pickup and dropoff dates are required")
    if pickup_date < today:
        raise InvalidDateRange("Pickup date cannot be in the past")
    if dropoff_date <= pickup_date:
        raise InvalidDateRange("Dropoff date must be after pickup date")
    return DateRange(pickup_date, dropoff_date)


def refund_money(booking: Booking, amount: Decimal) -> Money:
    """A refund for ``booking``: never negative, never above what was paid."""
    if amount < 0:
        raise ValidationFailed("Refund amount cannot be negative", refund_amount=str(amount))
    if amount > 0 and not booking.is_paid:
        raise ValidationFailed(f"Booking {booking.id} has not been paid", refund_amount=str(amount))
    if amount > booking.total_amount.amount:
        raise ValidationFailed(
            f"Refund cannot exceed the booking total of {booking.total_amount}", refund_amount=str(amount),
        )
    return Money(amount, booking.currency)


class BookingLifecycleManager:
    """
    Creates bookings and applies status transitions

    Creation closes the read-then-write race with the car's reservation
    index: the index is read with its version, checked for overlaps and
    written back in the same batch as the new booking under that version.
    A writer that loses the race re-reads and re-checks, so it either
    succeeds on free dates or gets DateConflict. Transitions are guarded
    by the booking document's version in the same way.
    """

    def __init__(
        self,
        store: DocumentStore,
        bus: MessageBus | None = None,
        clock: Callable[[], datetime] = utcnow,
        hold_minutes: int | None = None,
        vat: Decimal | None = None,
        retries: int | None = None,
    ):
        self.store = store
        self.bus = bus
        self.clock = clock
        self.hold = timedelta(minutes=hold_minutes if hold_minutes is not None else rental_setting('HOLD_MINUTES'))
        self.vat = vat if vat is not None else vat_rate()
        self.retries = retries if retries is not None else rental_setting('CONCURRENCY_RETRIES')

        self.cars = CarRepository(store)
        self.bookings = BookingRepository(store)
        self.schedules = ScheduleRepository(store, self.bookings)
        self.checker = ConflictChecker(self.bookings, clock)

    # ===== Creation =====

    @returns_result
    def create_booking(self, request: BookingRequest, actor: Actor | None) -> Booking:
        """
        Create a pending booking that holds the car's dates

        Returns Err with AuthRequired, InvalidDateRange, NotFound or
        DateConflict when the booking cannot be made.
        """
        require_actor(actor, "Authentication required to make a booking")
        dates = validate_dates(request.pickup_date, request.dropoff_date, self.clock().date())

        car = self.cars.get(request.car_id)
        if car is None:
            raise NotFound('car', request.car_id)

        logger.info(f"Creating booking for car {car.id}, user {actor.id}, dates {dates}")

        def attempt() -> Booking:
            now = self.clock()
            index = self.schedules.load(car.id, now)
            conflicts = index.conflicting(dates, now)
            if conflicts:
                raise DateConflict(self._conflicting_bookings(conflicts))

            priced = quote(car.price_per_day, dates, self.vat)
            booking = Booking(
                id=generate_booking_id(now),
                created_at=now,
                updated_at=now,
                car_id=car.id,
                user_id=actor.id,
                dates=dates,
                price_per_day=car.price_per_day,
                total_amount=priced.total,
                total_days=priced.days,
                customer_name=request.customer_name,
                customer_email=request.customer_email,
                customer_phone=request.customer_phone,
                customer_notes=request.customer_notes,
                pickup_location=request.pickup_location,
                dropoff_location=request.dropoff_location,
                hold_expires_at=now + self.hold,
            )
            index.allocate(booking.id, dates, now, booking.hold_expires_at)
            booking.add_event(BookingCreated(
                aggregate_id=booking.id,
                booking_id=booking.id,
                car_id=booking.car_id,
                user_id=booking.user_id,
                dates=dates,
                total_amount=booking.total_amount,
                customer_name=booking.customer_name,
                customer_email=booking.customer_email,
                occurred_at=now,
            ))

            with DocumentStoreUnitOfWork(self.store, self.bus) as uow:
                self.bookings.stage_create(uow.batch, booking)
                self.schedules.stage_save(uow.batch, index)
                uow.collect_events(booking)

            booking.version = 1
            return booking

        booking = retry_on_conflict(attempt, self.retries)
        logger.info(
            f"Booking {booking.id} created: {booking.total_amount}, "
            f"hold until {booking.hold_expires_at.isoformat()}"
        )
        return booking

    def _conflicting_bookings(self, allocations) -> list:
        found = []
        for allocation in allocations:
            booking = self.bookings.get(allocation.booking_id)
            found.append(booking if booking is not None else allocation)
        return found

    # ===== Transitions =====

    def apply_change(self, booking_id: str, mutate: Mutation) -> Booking:
        """
        Read-modify-write one booking and everything that follows from it

        ``mutate`` changes the booking in place and returns the car-level
        changes, or None when there is nothing to write. The booking, the
        car's reservation index and the car are written in one batch; a
        concurrent write to the booking or index makes the batch fail and
        the whole step is retried on fresh data.
        """
        def attempt() -> Booking:
            now = self.clock()
            booking = self.bookings.get(booking_id)
            if booking is None:
                raise NotFound('booking', booking_id)

            previous = booking.status
            index = self.schedules.load(booking.car_id, now)
            changes = mutate(booking, index, now)
            if changes is None:
                return booking

            with DocumentStoreUnitOfWork(self.store, self.bus) as uow:
                self.bookings.stage_save(uow.batch, booking)
                self._stage_schedule(uow.batch, booking, index, now)
                self._stage_car(uow.batch, booking, previous, changes)
                uow.collect_events(booking)

            booking.version += 1
            return booking

        return retry_on_conflict(attempt, self.retries)

    def _stage_schedule(self, batch: WriteBatch, booking: Booking, index: ReservationIndex, now: datetime):
        if booking.status == BookingStatus.CONFIRMED:
            # Re-allocates when the hold had already lapsed
            index.allocate(booking.id, booking.dates, now)
            changed = True
        elif booking.status in NON_BLOCKING_STATUSES:
            released = index.release(booking.id)
            changed = index.prune(now) > 0 or released
        else:
            changed = False

        if changed:
            self.schedules.stage_save(batch, index)

    def _stage_car(self, batch: WriteBatch, booking: Booking, previous: BookingStatus, changes: CarChanges):
        car = self.cars.get(booking.car_id)
        if car is None:
            logger.warning(f"Car {booking.car_id} of booking {booking.id} no longer exists")
            return

        if changes.record_payment:
            self.cars.stage_paid_booking(batch, car.id, booking.total_amount.amount)

        if booking.status == previous:
            return
        if booking.status == BookingStatus.CONFIRMED:
            self.cars.stage_availability(batch, car.id, False)
        elif booking.status in (BookingStatus.CANCELLED, BookingStatus.COMPLETED):
            still_held = any(
                other.holds_car for other in self.bookings.for_car(car.id)
                if other.id != booking.id
            )
            self.cars.stage_availability(batch, car.id, not still_held)

    def _update_status(
        self,
        booking_id: str,
        new_status: BookingStatus | str,
        extra: dict[str, Any] | None = None,
        actor: Actor | None = None,
    ) -> Booking:
        target = parse_status(new_status)
        extra = dict(extra or {})
        payment_status = extra.get('paymentStatus')
        refund = extra.get('refundAmount')
        paid_at = extra.get('paidAt')

        def mutate(booking: Booking, index: ReservationIndex, now: datetime) -> CarChanges:
            booking.transition_to(
                target,
                at=now,
                actor_id=actor.id if actor else None,
                payment_status=parse_payment_status(payment_status),
                cancellation_reason=extra.get('cancellationReason'),
                refund_amount=refund_money(booking, to_decimal(refund)) if refund is not None else None,
                paid_at=to_datetime(paid_at),
                payment_reference=extra.get('paymentReference'),
                note=extra.get('note', ''),
            )
            return CarChanges()

        booking = self.apply_change(booking_id, mutate)
        logger.info(f"Booking {booking.id} is now {booking.status.value} ({booking.payment_status.value})")
        return booking

    @returns_result
    def update_status(
        self,
        booking_id: str,
        new_status: BookingStatus | str,
        extra: dict[str, Any] | None = None,
        actor: Actor | None = None,
    ) -> Booking:
        """
        Move a booking to ``new_status``

        ``extra`` may carry cancellationReason, refundAmount,
        paymentStatus, paidAt, paymentReference and note.
        """
        return self._update_status(booking_id, new_status, extra, actor)

    @returns_result
    def update_booking_status(self, booking_id: str, new_status: BookingStatus | str, actor: Actor | None) -> Booking:
        """Admin action: set any permitted status on any booking."""
        require_admin(actor)
        return self._update_status(booking_id, new_status, actor=actor)

    @returns_result
    def cancel_booking(
        self,
        booking_id: str,
        reason: str = '',
        refund_amount: Decimal | None = None,
        actor: Actor | None = None,
        now: datetime | None = None,
    ) -> Booking:
        """
        Cancel a booking, refunding per the cancellation policy

        Without an explicit ``refund_amount`` a paid booking is refunded by
        ``calculate_refund`` and an unpaid one gets nothing back. Only an
        admin may set the refund; it is capped at the amount paid. The
        refund is worked out on the booking as re-read for each attempt.
        """
        self._get_visible(booking_id, actor, require_owner=True)
        override = None
        if refund_amount is not None:
            require_actor(actor)
            if not actor.is_admin:
                raise AdminRequired("Only an admin can set the refund amount")
            override = to_decimal(refund_amount)

        def mutate(booking: Booking, index: ReservationIndex, at: datetime) -> CarChanges:
            if override is not None:
                refund = refund_money(booking, override)
            elif booking.is_paid:
                refund = calculate_refund(booking, now or at)
            else:
                refund = Money.zero(booking.currency)

            booking.transition_to(
                BookingStatus.CANCELLED,
                at=at,
                actor_id=actor.id if actor else None,
                cancellation_reason=reason,
                refund_amount=refund,
                payment_status=PaymentStatus.REFUNDED if refund else PaymentStatus.CANCELLED,
            )
            return CarChanges()

        booking = self.apply_change(booking_id, mutate)
        logger.info(f"Booking {booking.id} cancelled, refund {booking.refund_amount}")
        return booking

    @returns_result
    def complete_booking(self, booking_id: str, actor: Actor | None = None) -> Booking:
        return self._update_status(booking_id, BookingStatus.COMPLETED, actor=actor)

    @returns_result
    def start_rental(self, booking_id: str, actor: Actor | None = None) -> Booking:
        return self._update_status(booking_id, BookingStatus.ACTIVE, actor=actor)

    # ===== Reads =====

    @returns_result
    def check_conflict(
        self,
        car_id: str,
        pickup_date: date,
        dropoff_date: date,
        exclude_booking_id: str | None = None,
    ) -> ConflictResult:
        if pickup_date is None or dropoff_date is None or dropoff_date <= pickup_date:
            raise InvalidDateRange("Dropoff date must be after pickup date")
        return self.checker.check_conflict(car_id, pickup_date, dropoff_date, exclude_booking_id)

    @returns_result
    def get_available_cars(self, pickup_date: date, dropoff_date: date) -> list:
        """Cars with no blocking booking overlapping the requested dates."""
        dates = validate_dates(pickup_date, dropoff_date, self.clock().date())
        now = self.clock()
        available = []
        for car in self.cars.list():
            index = self.schedules.load(car.id, now)
            if index.can_allocate(dates, now):
                available.append(car)
        return available

    def _get_visible(self, booking_id: str, actor: Actor | None, require_owner: bool = False) -> Booking:
        booking = self.bookings.get(booking_id)
        if booking is None:
            raise NotFound('booking', booking_id)
        if actor is not None and not actor.is_admin and booking.user_id != actor.id:
            if require_owner:
                raise AdminRequired("You can only change your own bookings")
            raise NotFound('booking', booking_id)
        return booking

    @returns_result
    def get_booking(self, booking_id: str, actor: Actor | None = None) -> Booking:
        return self._get_visible(booking_id, actor)

    @returns_result
    def get_user_bookings(self, actor: Actor | None) -> list[Booking]:
        require_actor(actor)
        return self.bookings.for_user(actor.id)

    @returns_result
    def get_all_bookings(self, actor: Actor | None, status: BookingStatus | str | None = None) -> list[Booking]:
        require_admin(actor)
        return self.bookings.all(parse_status(status) if status else None)

    @returns_result
    def get_upcoming_bookings(self, actor: Actor | None) -> list[Booking]:
        """Confirmed or active bookings picking up today or later, soonest first."""
        require_actor(actor)
        today = self.clock().date()
        upcoming = [
            b for b in self.bookings.for_user(actor.id)
            if b.pickup_date >= today and b.holds_car
        ]
        return sorted(upcoming, key=lambda b: b.pickup_date)

    @returns_result
    def get_booking_history(self, actor: Actor | None) -> list[Booking]:
        """Completed and cancelled bookings, newest first."""
        require_actor(actor)
        finished = (BookingStatus.COMPLETED, BookingStatus.CANCELLED)
        return [b for b in self.bookings.for_user(actor.id) if b.status in finished]
