"""
Domain error taxonomy

Every expected failure of the rental core is one of these. Domain and
application code raise them; the public application operations turn them
into ``Err`` results (see ``shared.application.result``) so callers render
them instead of crashing.
"""

from __future__ import annotations

from typing import Any, Sequence


class RentalError(Exception):
    """Base class for expected, request-scoped failures."""

    code = 'rental_error'

    def __init__(self, message: str = '', **details: Any):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self.args[0])
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload = {'error': self.code, 'detail': self.message}
        payload.update(self.details)
        return payload


class AuthRequired(RentalError):
    """Authentication required."""

    code = 'auth_required'


class AdminRequired(RentalError):
    """Admin access required."""

    code = 'admin_required'


class InvalidDateRange(RentalError):
    """The requested dates are malformed or in the past."""

    code = 'invalid_date_range'


class ValidationFailed(RentalError):
    """The request payload is invalid."""

    code = 'validation_failed'


class NotFound(RentalError):
    """The requested record does not exist."""

    code = 'not_found'

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind.capitalize()} not found", kind=kind, id=identifier)
        self.kind = kind
        self.identifier = identifier


class IllegalTransition(RentalError):
    """The status change is not permitted from the current state."""

    code = 'illegal_transition'

    def __init__(self, current: str, target: str, reason: str = ''):
        message = f"Cannot change booking status from {current} to {target}"
        super().__init__(
            f"{message}: {reason}" if reason else message,
            current=current,
            target=target,
        )
        self.current = current
        self.target = target


class DateConflict(RentalError):
    """The car is already booked for part of the requested period."""

    code = 'date_conflict'

    def __init__(self, conflicts: Sequence[Any]):
        first = conflicts[0] if conflicts else None
        if first is not None:
            message = (
                "Car is not available for the selected dates. "
                f"Conflicts with existing booking: {first.pickup_date} - {first.dropoff_date}"
            )
        else:
            message = "Car is not available for the selected dates."
        super().__init__(
            message,
            conflicts=[
                {
                    'booking_id': booking.id,
                    'pickup_date': booking.pickup_date.isoformat(),
                    'dropoff_date': booking.dropoff_date.isoformat(),
                }
                for booking in conflicts
            ],
        )
        self.conflicts = list(conflicts)


class StoreError(RentalError):
    """The document store failed; the caller may retry."""

    code = 'store_error'
