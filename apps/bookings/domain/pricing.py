"""Booking price quotes: daily rate times rental days, plus VAT."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from shared.domain.value_objects import DateRange, Money


@dataclass(frozen=True)
class Quote:
    days: int
    base: Money
    tax: Money
    total: Money


def quote(price_per_day: Money, dates: DateRange, vat_rate: Decimal) -> Quote:
    days = max(len(dates), 1)
    base = price_per_day * days
    tax = (base * vat_rate).rounded()
    return Quote(days=days, base=base.rounded(), tax=tax, total=(base + tax).rounded())
