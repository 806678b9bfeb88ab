"""
Booking Conflict Checker

Decides whether a requested date range collides with bookings that
still block a car. Ranges are half-open: a booking returned on the 22nd
does not collide with one picked up on the 22nd.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Iterable

from shared.domain.base import utcnow
from shared.domain.value_objects import DateRange

from .entities import Booking

logger = logging.getLogger(__name__)


@dataclass
class ConflictResult:
    conflicts: list[Booking] = field(default_factory=list)

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicts)

    def __bool__(self) -> bool:
        return self.has_conflict


def find_conflicts(
    bookings: Iterable[Booking],
    dates: DateRange,
    now: datetime,
    exclude_booking_id: str | None = None,
) -> ConflictResult:
    """Return the blocking bookings overlapping ``dates``, by pickup date."""
    overlapping = [
        booking for booking in bookings
        if booking.id != exclude_booking_id
        and booking.blocks_dates(now)
        and booking.dates.overlaps_with(dates)
    ]
    overlapping.sort(key=lambda b: (b.pickup_date, b.id))
    return ConflictResult(conflicts=overlapping)


class ConflictChecker:
    """
    Checks a car's stored bookings for overlaps

    Reads only; calling it twice with the same inputs and no writes in
    between gives the same answer.
    """

    def __init__(self, bookings, clock: Callable[[], datetime] = utcnow):
        self.bookings = bookings
        self.clock = clock

    def check_conflict(
        self,
        car_id: str,
        pickup_date: date,
        dropoff_date: date,
        exclude_booking_id: str | None = None,
    ) -> ConflictResult:
        dates = DateRange(pickup_date, dropoff_date)
        result = find_conflicts(
            self.bookings.for_car(car_id),
            dates,
            self.clock(),
            exclude_booking_id=exclude_booking_id,
        )
        if result.has_conflict:
            logger.info(
                f"Car {car_id} has {len(result.conflicts)} conflicting bookings for {dates}"
            )
        return result
