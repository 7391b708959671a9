import sqlite3
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from printshop.models.event import WorkflowEvent
from printshop.services.events import INVOICE_PAID, TASK_COMPLETED, EventEmitter

NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def _stage(emitter, session_factory, event_type=INVOICE_PAID):
    db = session_factory()
    try:
        event = emitter.record(db, event_type, "invoice", "inv-1", {"total": 185.0}, NOW)
        db.commit()
    finally:
        db.close()
    return event


def _row(session_factory, event_id):
    db = session_factory()
    try:
        return db.get(WorkflowEvent, event_id)
    finally:
        db.close()


class TestEventEmitter:
    def test_unknown_event_type(self):
        with pytest.raises(ValueError):
            EventEmitter().subscribe("InvoiceLost", print)

    def test_dispatch_marks_delivered(self, session_factory):
        emitter = EventEmitter()
        seen = []
        emitter.subscribe(INVOICE_PAID, seen.append)
        event = _stage(emitter, session_factory)

        assert emitter.dispatch(session_factory, [event]) == 1
        assert [e.payload for e in seen] == [{"total": 185.0}]
        row = _row(session_factory, event.id)
        assert row.dispatched_at is not None
        assert row.attempts == 1

    def test_only_matching_subscribers(self, session_factory):
        emitter = EventEmitter()
        tasks, everything = [], []
        emitter.subscribe(TASK_COMPLETED, tasks.append)
        emitter.subscribe("*", everything.append)
        emitter.dispatch(session_factory, [_stage(emitter, session_factory)])
        assert tasks == []
        assert len(everything) == 1

    def test_failing_subscriber_leaves_event_pending(self, session_factory):
        emitter = EventEmitter()
        calls = []

        def flaky(event):
            calls.append(event.id)
            if len(calls) == 1:
                raise RuntimeError("smtp down")

        emitter.subscribe(INVOICE_PAID, flaky)
        event = _stage(emitter, session_factory)

        assert emitter.dispatch(session_factory, [event]) == 0
        row = _row(session_factory, event.id)
        assert row.dispatched_at is None
        assert row.attempts == 1

        assert emitter.redeliver_pending(session_factory) == 1
        row = _row(session_factory, event.id)
        assert row.dispatched_at is not None
        assert row.attempts == 2
        assert calls == [event.id, event.id]

    def test_failure_does_not_stop_other_subscribers(self, session_factory):
        emitter = EventEmitter()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        emitter.subscribe(INVOICE_PAID, broken)
        emitter.subscribe(INVOICE_PAID, seen.append)
        emitter.dispatch(session_factory, [_stage(emitter, session_factory)])
        assert len(seen) == 1

    def test_marking_failure_keeps_event_pending(self, session_factory, monkeypatch):
        emitter = EventEmitter()
        seen = []
        emitter.subscribe(INVOICE_PAID, seen.append)
        event = _stage(emitter, session_factory)

        def locked(*args):
            raise OperationalError("UPDATE workflow_events", {}, sqlite3.OperationalError("database is locked"))

        monkeypatch.setattr(emitter, "_mark", locked)
        assert emitter.dispatch(session_factory, [event]) == 1
        assert len(seen) == 1
        row = _row(session_factory, event.id)
        assert row.dispatched_at is None
        assert row.attempts == 0

        monkeypatch.undo()
        assert emitter.redeliver_pending(session_factory) == 1
        assert _row(session_factory, event.id).dispatched_at is not None
