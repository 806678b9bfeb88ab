"""
Booking Domain Entities

Core business entities for the booking domain:
- Booking: Main aggregate representing a car reservation
- BookingStatus: FSM states for booking lifecycle
- PaymentStatus: Payment state tracking
- StatusChange: One entry of the booking's audit history
"""

from __future__ import annotations

import random
import string
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from shared.domain.base import Aggregate, utcnow
from shared.domain.errors import IllegalTransition
from shared.domain.value_objects import DateRange, Money


class BookingStatus(Enum):
    """
    Booking Status Finite State Machine

    State transitions:
    - PENDING -> CONFIRMED (payment succeeded)
    - PENDING -> PAYMENT_FAILED (payment declined)
    - PENDING -> CANCELLED (customer cancelled before paying)
    - CONFIRMED -> ACTIVE (car handed over)
    - CONFIRMED -> CANCELLED
    - CONFIRMED -> COMPLETED
    - ACTIVE -> COMPLETED (car returned)
    - ACTIVE -> CANCELLED
    """
    PENDING = 'pending'                # Waiting for payment
    CONFIRMED = 'confirmed'            # Paid and confirmed
    ACTIVE = 'active'                  # Car is out with the customer
    COMPLETED = 'completed'            # Car returned
    CANCELLED = 'cancelled'            # Cancelled by customer or admin
    PAYMENT_FAILED = 'payment_failed'  # Gateway declined the payment

    @classmethod
    def _missing_(cls, value):
        # Older records used a separate name for the unpaid state
        if value == 'pending_payment':
            return cls.PENDING
        return None


class PaymentStatus(Enum):
    """Payment status tracking"""
    PENDING = 'pending'      # Waiting for payment
    PAID = 'paid'            # Payment successful
    FAILED = 'failed'        # Payment failed
    REFUNDED = 'refunded'    # Payment refunded (after cancellation)
    CANCELLED = 'cancelled'  # Booking cancelled, nothing to refund


ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({
        BookingStatus.CONFIRMED,
        BookingStatus.PAYMENT_FAILED,
        BookingStatus.CANCELLED,
    }),
    BookingStatus.CONFIRMED: frozenset({
        BookingStatus.ACTIVE,
        BookingStatus.CANCELLED,
        BookingStatus.COMPLETED,
    }),
    BookingStatus.ACTIVE: frozenset({
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
    }),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.PAYMENT_FAILED: frozenset(),
}


# Statuses that never hold dates on a car
NON_BLOCKING_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.PAYMENT_FAILED})

# Statuses during which the car is physically committed to the customer
HOLDING_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.ACTIVE})

PAID_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.ACTIVE, BookingStatus.COMPLETED})

CANCELLED_PAYMENT_STATUSES = frozenset({
    PaymentStatus.REFUNDED,
    PaymentStatus.CANCELLED,
    PaymentStatus.FAILED,
})


def generate_booking_id(now: datetime | None = None) -> str:
    """BK + the last 8 digits of the epoch milliseconds + 4 random characters."""
    now = now or utcnow()
    millis = str(int(now.timestamp() * 1000))[-8:]
    suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=4))
    return f"BK{millis}{suffix}"


@dataclass(frozen=True)
class StatusChange:
    """Audit entry appended on every status change."""
    status: BookingStatus
    at: datetime
    actor_id: str | None = None
    note: str = ''


@dataclass(kw_only=True, eq=False)
class Booking(Aggregate):
    """
    Booking Aggregate Root

    Represents a customer's reservation of a car for a date range.
    Enforces the status machine and the payment/status invariants.

    Key invariants:
    - Booking must have valid date range (pickup < dropoff)
    - paymentStatus paid implies status confirmed, active or completed
    - a cancelled booking's payment is refunded, cancelled or failed
    - Pending bookings stop blocking dates once their hold expires
    """

    car_id: str
    user_id: str
    dates: DateRange

    # Pricing
    price_per_day: Money
    total_amount: Money
    total_days: int = 0

    # Customer contact information
    customer_name: str = ''
    customer_email: str = ''
    customer_phone: str = ''
    customer_notes: str = ''
    pickup_location: str = ''
    dropoff_location: str = ''

    # Status tracking
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    hold_expires_at: datetime | None = None

    # Cancellation and payment details
    cancellation_reason: str = ''
    refund_amount: Money | None = None
    payment_reference: str = ''

    # Timestamps
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None

    history: list[StatusChange] = field(default_factory=list)

    def __post_init__(self):
        if self.total_days <= 0:
            self.total_days = len(self.dates)
        self.check_invariants()

    @property
    def pickup_date(self) -> date:
        return self.dates.start_date

    @property
    def dropoff_date(self) -> date:
        return self.dates.end_date

    @property
    def currency(self) -> str:
        return self.total_amount.currency

    def check_invariants(self):
        if self.payment_status == PaymentStatus.PAID and self.status not in PAID_STATUSES:
            raise ValueError(
                f"Booking {self.id} is paid but has status {self.status.value}"
            )
        if (self.status == BookingStatus.CANCELLED
                and self.payment_status not in CANCELLED_PAYMENT_STATUSES):
            raise ValueError(
                f"Cancelled booking {self.id} has payment status {self.payment_status.value}"
            )
        if self.refund_amount is not None and self.refund_amount.amount > self.total_amount.amount:
            raise ValueError(
                f"Refund {self.refund_amount} exceeds the total of booking {self.id}"
            )

    def can_transition_to(self, target: BookingStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]

    def transition_to(
        self,
        target: BookingStatus,
        *,
        at: datetime,
        actor_id: str | None = None,
        payment_status: PaymentStatus | None = None,
        cancellation_reason: str | None = None,
        refund_amount: Money | None = None,
        paid_at: datetime | None = None,
        payment_reference: str | None = None,
        note: str = '',
    ):
        """
        Move the booking to ``target`` and record the change

        Raises IllegalTransition when the status machine forbids the move
        or the resulting state breaks an invariant.
        The payment status follows the target unless given explicitly.
        Emits the domain event matching the new status.
        """
        if not self.can_transition_to(target):
            raise IllegalTransition(self.status.value, target.value)

        previous = self.status
        self.status = target
        self.updated_at = at

        if target == BookingStatus.CONFIRMED:
            self.payment_status = payment_status or PaymentStatus.PAID
            self.paid_at = paid_at or at
            self.hold_expires_at = None
            if payment_reference:
                self.payment_reference = payment_reference
        elif target == BookingStatus.PAYMENT_FAILED:
            self.payment_status = payment_status or PaymentStatus.FAILED
            self.hold_expires_at = None
        elif target == BookingStatus.CANCELLED:
            self.cancelled_at = at
            self.cancellation_reason = cancellation_reason or ''
            self.refund_amount = refund_amount
            self.hold_expires_at = None
            self.payment_status = payment_status or self._payment_status_on_cancel()
        elif target == BookingStatus.COMPLETED:
            self.completed_at = at
        elif payment_status is not None:
            self.payment_status = payment_status

        self.history.append(StatusChange(status=target, at=at, actor_id=actor_id, note=note))
        try:
            self.check_invariants()
        except ValueError as e:
            raise IllegalTransition(previous.value, target.value, str(e)) from e
        self._record_event(previous, at)

    def _payment_status_on_cancel(self) -> PaymentStatus:
        if self.refund_amount:
            return PaymentStatus.REFUNDED
        if self.payment_status == PaymentStatus.FAILED:
            return PaymentStatus.FAILED
        return PaymentStatus.CANCELLED

    def _record_event(self, previous: BookingStatus, at: datetime):
        from apps.bookings.domain import events

        common = dict(
            aggregate_id=self.id,
            booking_id=self.id,
            car_id=self.car_id,
            user_id=self.user_id,
            previous_status=previous.value,
            occurred_at=at,
        )
        if self.status == BookingStatus.CONFIRMED:
            self.add_event(events.BookingConfirmed(total_amount=self.total_amount, **common))
        elif self.status == BookingStatus.ACTIVE:
            self.add_event(events.BookingStarted(**common))
        elif self.status == BookingStatus.COMPLETED:
            self.add_event(events.BookingCompleted(**common))
        elif self.status == BookingStatus.CANCELLED:
            self.add_event(events.BookingCancelled(
                reason=self.cancellation_reason,
                refund_amount=self.refund_amount,
                **common,
            ))
        elif self.status == BookingStatus.PAYMENT_FAILED:
            self.add_event(events.BookingPaymentFailed(**common))

    def refund_late_payment(self, *, at: datetime, payment_reference: str | None = None):
        """
        Record a payment that arrived after the booking stopped being payable

        The booking keeps its terminal status; the whole amount is refunded.
        Events: BookingRefunded
        """
        if self.status not in (BookingStatus.CANCELLED, BookingStatus.PAYMENT_FAILED):
            raise IllegalTransition(self.status.value, PaymentStatus.REFUNDED.value)

        from apps.bookings.domain.events import BookingRefunded

        self.payment_status = PaymentStatus.REFUNDED
        self.refund_amount = self.total_amount
        self.paid_at = at
        self.updated_at = at
        if payment_reference:
            self.payment_reference = payment_reference
        self.history.append(StatusChange(status=self.status, at=at, note='late payment refunded'))
        try:
            self.check_invariants()
        except ValueError as e:
            raise IllegalTransition(self.status.value, PaymentStatus.REFUNDED.value, str(e)) from e

        self.add_event(BookingRefunded(
            aggregate_id=self.id,
            booking_id=self.id,
            car_id=self.car_id,
            user_id=self.user_id,
            previous_status=self.status.value,
            refund_amount=self.refund_amount,
            occurred_at=at,
        ))

    def hold_expired(self, now: datetime) -> bool:
        """Whether an unpaid booking's reservation hold has run out"""
        if self.status != BookingStatus.PENDING or self.hold_expires_at is None:
            return False
        return now >= self.hold_expires_at

    def blocks_dates(self, now: datetime) -> bool:
        """
        Check if this booking blocks the car's dates

        Everything except cancelled and failed bookings blocks, apart from
        pending bookings whose hold has expired. Completed bookings keep
        their dates so history never overlaps.
        """
        if self.status in NON_BLOCKING_STATUSES:
            return False
        return not self.hold_expired(now)

    @property
    def holds_car(self) -> bool:
        return self.status in HOLDING_STATUSES

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    def __str__(self):
        return f"Booking {self.id} ({self.status.value})"

    def __repr__(self):
        return (
            f"Booking(id={self.id}, car_id={self.car_id}, "
            f"status={self.status.value}, dates={self.dates})"
        )
