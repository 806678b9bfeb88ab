"""
Reservation Index Aggregate

This is the aggregate that prevents double bookings.
Every booking write that changes whether a booking blocks dates also
writes the car's index.

The index is stored as one document per car and written with a version
precondition, so two requests that read the same index cannot both
commit an allocation: the loser's batch fails, it re-reads the index and
sees the winner's allocation.

Strategy:
1. Domain validation: can_allocate() checks for overlaps
2. Compare-and-swap: the index document version guards every write
3. Lazy expiry: unpaid holds stop counting once hold_expires_at passes
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, List

from shared.domain.base import Aggregate
from shared.domain.errors import DateConflict
from shared.domain.value_objects import DateRange


@dataclass
class Allocation:
    """
    Allocation - the dates one booking reserves

    ``hold_expires_at`` is set while the booking awaits payment and
    cleared once it is confirmed.
    """
    booking_id: str
    dates: DateRange
    hold_expires_at: datetime | None = None

    @property
    def id(self) -> str:
        return self.booking_id

    @property
    def pickup_date(self) -> date:
        return self.dates.start_date

    @property
    def dropoff_date(self) -> date:
        return self.dates.end_date

    def expired(self, now: datetime) -> bool:
        return self.hold_expires_at is not None and now >= self.hold_expires_at


@dataclass(kw_only=True, eq=False)
class ReservationIndex(Aggregate):
    """
    Reservation Index Aggregate Root

    Keyed by car id. Key invariant: no two live allocations overlap.

    Usage:
        index = schedules.load(car_id)
        index.allocate(booking.id, booking.dates, now, booking.hold_expires_at)
        schedules.stage_save(batch, index)   # carries index.version
        store.commit(batch)                  # fails if someone else wrote first
    """

    car_id: str
    allocations: List[Allocation] = field(default_factory=list)

    def __post_init__(self):
        if not self.id or self.id != self.car_id:
            self.id = self.car_id

    @classmethod
    def rebuild(cls, car_id: str, bookings: Iterable, now: datetime) -> 'ReservationIndex':
        """Build an index from the car's stored bookings."""
        index = cls(car_id=car_id)
        for booking in bookings:
            if booking.blocks_dates(now) and booking.dropoff_date >= now.date():
                index.allocations.append(Allocation(
                    booking_id=booking.id,
                    dates=booking.dates,
                    hold_expires_at=booking.hold_expires_at,
                ))
        return index

    def live(self, now: datetime) -> List[Allocation]:
        return [a for a in self.allocations if not a.expired(now)]

    def conflicting(
        self,
        dates: DateRange,
        now: datetime,
        exclude_booking_id: str | None = None,
    ) -> List[Allocation]:
        """Live allocations overlapping ``dates``, ordered by pickup date."""
        found = [
            a for a in self.live(now)
            if a.booking_id != exclude_booking_id and a.dates.overlaps_with(dates)
        ]
        return sorted(found, key=lambda a: (a.pickup_date, a.booking_id))

    def can_allocate(self, dates: DateRange, now: datetime, exclude_booking_id: str | None = None) -> bool:
        return not self.conflicting(dates, now, exclude_booking_id)

    def allocate(
        self,
        booking_id: str,
        dates: DateRange,
        now: datetime,
        hold_expires_at: datetime | None = None,
    ) -> Allocation:
        """
        Reserve dates for a booking

        Expired holds and past allocations are pruned first. Re-allocating
        a booking replaces its previous allocation.

        Raises:
            DateConflict: If a live allocation of another booking overlaps
        """
        self.prune(now)
        conflicts = self.conflicting(dates, now, exclude_booking_id=booking_id)
        if conflicts:
            raise DateConflict(conflicts)

        self.allocations = [a for a in self.allocations if a.booking_id != booking_id]
        allocation = Allocation(booking_id=booking_id, dates=dates, hold_expires_at=hold_expires_at)
        self.allocations.append(allocation)
        return allocation

    def release(self, booking_id: str) -> bool:
        """Drop a booking's allocation; returns whether one existed."""
        before = len(self.allocations)
        self.allocations = [a for a in self.allocations if a.booking_id != booking_id]
        return len(self.allocations) != before

    def prune(self, now: datetime) -> int:
        """Drop allocations whose hold has expired or whose dates are over."""
        today = now.date()
        before = len(self.allocations)
        self.allocations = [a for a in self.live(now) if a.dropoff_date >= today]
        return before - len(self.allocations)

    def get_allocation(self, booking_id: str) -> Allocation | None:
        return next((a for a in self.allocations if a.booking_id == booking_id), None)

    def __str__(self):
        return f"ReservationIndex(car={self.car_id}, allocations={len(self.allocations)})"
