"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
These are published after successful batch commits.
"""

from dataclasses import dataclass

from shared.domain.base import DomainEvent
from shared.domain.value_objects import DateRange, Money


@dataclass(kw_only=True)
class BookingEvent(DomainEvent):
    booking_id: str
    car_id: str
    user_id: str
    previous_status: str | None = None

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            'booking_id': self.booking_id,
            'car_id': self.car_id,
            'user_id': self.user_id,
            'previous_status': self.previous_status,
        })
        return data


@dataclass(kw_only=True)
class BookingCreated(BookingEvent):
    """
    Event: A new booking was created and its dates are held

    Triggers:
    - Notify the customer that the booking awaits payment
    - Notify admins of the new booking
    """
    dates: DateRange
    total_amount: Money
    customer_name: str = ''
    customer_email: str = ''


@dataclass(kw_only=True)
class BookingConfirmed(BookingEvent):
    """
    Event: Payment received (PENDING -> CONFIRMED)

    Triggers:
    - Send booking confirmation to the customer
    - Notify admins of the payment
    """
    total_amount: Money


@dataclass(kw_only=True)
class BookingStarted(BookingEvent):
    """Event: Car handed over (CONFIRMED -> ACTIVE)"""


@dataclass(kw_only=True)
class BookingCompleted(BookingEvent):
    """
    Event: Car returned (-> COMPLETED)

    Triggers:
    - Ask the customer for a review
    """


@dataclass(kw_only=True)
class BookingCancelled(BookingEvent):
    """
    Event: Booking was cancelled

    Triggers:
    - Notify the customer, including any refund
    """
    reason: str = ''
    refund_amount: Money | None = None


@dataclass(kw_only=True)
class BookingPaymentFailed(BookingEvent):
    """Event: The gateway declined the payment (PENDING -> PAYMENT_FAILED)"""


@dataclass(kw_only=True)
class BookingRefunded(BookingEvent):
    """Event: A payment that arrived after cancellation was refunded in full"""
    refund_amount: Money
