"""
Unit of Work Pattern

Accumulates writes for one business operation into a single atomic
document-store batch and ensures that domain events are published only
after the batch commits.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, TypeVar
import logging

from shared.application.message_bus import MessageBus, message_bus as default_bus
from shared.domain.base import DomainEvent
from shared.infrastructure.document_store import DocumentStore, PreconditionFailed, WriteBatch

logger = logging.getLogger(__name__)

T = TypeVar('T')


class AbstractUnitOfWork(ABC):
    """Abstract Unit of Work pattern"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    @abstractmethod
    def commit(self):
        """Commit the transaction"""
        pass

    @abstractmethod
    def rollback(self):
        """Rollback the transaction"""
        pass

    @abstractmethod
    def collect_events(self, aggregate):
        """Collect events from aggregate root"""
        pass


class DocumentStoreUnitOfWork(AbstractUnitOfWork):
    """
    Document store implementation of Unit of Work

    Usage:
        with DocumentStoreUnitOfWork(store) as uow:
            booking = booking_repo.get(booking_id)
            booking.transition_to(BookingStatus.CONFIRMED, at=now)
            booking_repo.stage_save(uow.batch, booking)
            uow.collect_events(booking)
            # Batch commits here
        # Events are published after commit

    A failed commit (including a lost compare-and-swap) raises out of the
    ``with`` block and the collected events are discarded.
    """

    def __init__(self, store: DocumentStore, bus: MessageBus | None = None):
        self.store = store
        self.bus = bus or default_bus
        self.batch: WriteBatch = store.batch()
        self._events: List[DomainEvent] = []

    def commit(self):
        """Commit the batch, then publish events"""
        logger.debug(f"Committing {len(self.batch)} writes with {len(self._events)} events")

        self.store.commit(self.batch)

        events = self._events.copy()
        self._events.clear()
        if events:
            self._publish_events(events)

    def rollback(self):
        """Discard staged writes and events"""
        if self._events or len(self.batch):
            logger.warning(
                f"Rolling back unit of work, discarding {len(self.batch)} writes "
                f"and {len(self._events)} events"
            )
        self._events.clear()
        self.batch = self.store.batch()

    def collect_events(self, aggregate):
        """
        Collect events from aggregate root

        Extracts all domain events from the aggregate and
        clears them from the aggregate.
        """
        if hasattr(aggregate, 'events'):
            new_events = aggregate.events
            if new_events:
                self._events.extend(new_events)
                aggregate.clear_events()
                logger.debug(
                    f"Collected {len(new_events)} events from "
                    f"{aggregate.__class__.__name__} (ID: {aggregate.id})"
                )

    def _publish_events(self, events: List[DomainEvent]):
        logger.info(f"Publishing {len(events)} domain events after commit")

        try:
            self.bus.publish_events(events)
        except Exception as e:
            logger.error(f"Error publishing events: {e}", exc_info=True)
            # Writes are already committed; failures are left to monitoring


def retry_on_conflict(operation: Callable[[], T], attempts: int) -> T:
    """
    Run an optimistic read-modify-write operation until it commits

    ``operation`` must re-read everything it depends on. Only lost
    compare-and-swap races are retried; any other failure propagates.
    """
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except PreconditionFailed as e:
            if attempt == attempts:
                raise
            logger.warning(f"Concurrent modification, retrying ({attempt}/{attempts}): {e}")
    raise ValueError("attempts must be at least 1")
