"""Access to the ``RENTAL_CORE`` settings block with defaults."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from django.conf import settings  # type: ignore

DEFAULTS: dict[str, Any] = {
    'DOCUMENT_STORE': 'apps.store.backend.DjangoDocumentStore',
    'HOLD_MINUTES': 15,
    'VAT_RATE': '0.16',
    'CURRENCY': 'KES',
    'CONCURRENCY_RETRIES': 3,
    'ADMIN_GROUP': 'admin',
}


def rental_setting(name: str) -> Any:
    overrides = getattr(settings, 'RENTAL_CORE', {}) or {}
    if name not in DEFAULTS and name not in overrides:
        raise KeyError(f"Unknown RENTAL_CORE setting: {name}")
    return overrides.get(name, DEFAULTS.get(name))


def vat_rate() -> Decimal:
    return Decimal(str(rental_setting('VAT_RATE')))
