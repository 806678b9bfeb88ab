"""Wiring of the booking services to the configured document store."""

from __future__ import annotations

from shared.application.message_bus import message_bus
from apps.store.backend import get_document_store

from .application.lifecycle import BookingLifecycleManager
from .application.reconciler import PaymentStatusReconciler


def get_lifecycle_manager() -> BookingLifecycleManager:
    return BookingLifecycleManager(get_document_store(), bus=message_bus)


def get_reconciler() -> PaymentStatusReconciler:
    return PaymentStatusReconciler(get_lifecycle_manager())
