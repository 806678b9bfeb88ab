"""Helpers for mapping domain values to JSON-compatible document fields."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from django.utils.dateparse import parse_date, parse_datetime  # type: ignore

from shared.domain.errors import ValidationFailed


def iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def to_datetime(value: Any) -> datetime | None:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = parse_datetime(str(value))
    except ValueError as e:
        raise ValidationFailed(f"Invalid datetime: {value!r}") from e
    if parsed is None:
        raise ValidationFailed(f"Invalid datetime: {value!r}")
    return parsed


def to_date(value: Any) -> date | None:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    try:
        parsed = parse_date(text[:10]) if len(text) >= 10 else None
    except ValueError as e:
        raise ValidationFailed(f"Invalid date: {value!r}") from e
    if parsed is None:
        raise ValidationFailed(f"Invalid date: {value!r}")
    return parsed


def to_decimal(value: Any, default: str = '0') -> Decimal:
    if value is None or value == '':
        return Decimal(default)
    try:
        amount = Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationFailed(f"Invalid amount: {value!r}") from e
    if not amount.is_finite():
        raise ValidationFailed(f"Invalid amount: {value!r}")
    return amount


def decimal_str(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None
