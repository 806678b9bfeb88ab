from __future__ import annotations

import pytest

from shared.application.result import Err, Ok, returns_result
from shared.application.uow import DocumentStoreUnitOfWork, retry_on_conflict
from shared.domain.base import DomainEvent
from shared.domain.errors import NotFound
from shared.infrastructure.document_store import DocumentStoreError, PreconditionFailed


@returns_result
def find(kind: str):
    if kind == "missing":
        raise NotFound("car", "c1")
    if kind == "broken":
        raise DocumentStoreError("connection reset")
    return kind


def test_returns_result_wraps_outcomes():
    assert find("ok") == Ok("ok")

    missing = find("missing")
    assert isinstance(missing, Err)
    assert missing.code == "not_found"
    assert missing.error.to_dict()["kind"] == "car"

    broken = find("broken")
    assert broken.code == "store_error"


def test_err_unwrap_raises_the_error():
    with pytest.raises(NotFound):
        find("missing").unwrap()


def test_retry_on_conflict_retries_lost_races_only():
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise PreconditionFailed("version moved")
        return "done"

    assert retry_on_conflict(flaky, 3) == "done"
    assert len(attempts) == 3

    with pytest.raises(PreconditionFailed):
        retry_on_conflict(lambda: (_ for _ in ()).throw(PreconditionFailed("always")), 2)


class Aggregated:
    def __init__(self, event):
        self.id = "a1"
        self._events = [event]

    @property
    def events(self):
        return list(self._events)

    def clear_events(self):
        self._events.clear()


def test_events_are_published_only_after_commit(store, bus):
    received = []
    bus.register_event_handler(DomainEvent, received.append)
    event = DomainEvent(aggregate_id="a1")

    with DocumentStoreUnitOfWork(store, bus) as uow:
        uow.batch.create("things", "t1", {"n": 1})
        uow.collect_events(Aggregated(event))
        assert received == []

    assert received == [event]
    assert store.get("things", "t1") is not None


def test_failed_commit_discards_events(store, bus):
    received = []
    bus.register_event_handler(DomainEvent, received.append)
    store.create("things", "t1", {"n": 1})

    with pytest.raises(PreconditionFailed):
        with DocumentStoreUnitOfWork(store, bus) as uow:
            uow.batch.create("things", "t1", {"n": 2})
            uow.collect_events(Aggregated(DomainEvent()))

    assert received == []
