"""
Refund policy

The share of a paid booking returned on cancellation depends on how far
ahead of pickup the customer cancels, measured to midnight at the start
of the pickup day:

- more than 48 hours: 90 %
- more than 24 and up to 48 hours: 50 %
- 24 hours or less: nothing
"""

from __future__ import annotations

from datetime import datetime, time, timedelta
from decimal import Decimal

from shared.domain.value_objects import Money

FULL_NOTICE = timedelta(hours=48)
SHORT_NOTICE = timedelta(hours=24)

FULL_NOTICE_SHARE = Decimal('0.90')
SHORT_NOTICE_SHARE = Decimal('0.50')


def refund_share(pickup_at: datetime, now: datetime) -> Decimal:
    notice = pickup_at - now
    if notice > FULL_NOTICE:
        return FULL_NOTICE_SHARE
    if notice > SHORT_NOTICE:
        return SHORT_NOTICE_SHARE
    return Decimal('0')


def calculate_refund(booking, now: datetime) -> Money:
    """Refund owed if ``booking`` is cancelled at ``now``."""
    pickup_at = datetime.combine(booking.pickup_date, time.min, tzinfo=now.tzinfo)
    share = refund_share(pickup_at, now)
    return (booking.total_amount * share).rounded()
