from datetime import date, datetime, timedelta, timezone

import pytest

from printshop.database import get_engine, init_db, make_session_factory
from printshop.services.events import EventEmitter
from printshop.services.workflow import Workflow


class FakeClock:
    """Settable clock so date-dependent rules can be exercised deterministically."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "printshop.sqlite"


@pytest.fixture
def engine(db_path):
    init_db(db_path)
    engine = get_engine(db_path)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def emitter():
    return EventEmitter()


@pytest.fixture
def workflow(engine, session_factory, emitter, clock):
    return Workflow(engine, session_factory, emitter=emitter, clock=clock)


@pytest.fixture
def received(emitter):
    """Every event delivered to subscribers, in order."""
    events = []
    emitter.subscribe("*", events.append)
    return events


@pytest.fixture
def project(workflow):
    return workflow.create_project({
        "name": "Spring Catalogue",
        "client_id": "client-1",
        "category": "brochure",
        "status": "active",
        "deadline": date(2025, 4, 1),
        "budget": {"amount": 5000, "currency": "AED"},
    })


@pytest.fixture
def storage():
    def make(name="proof.pdf", size=2048):
        return {
            "url": f"https://storage.example/{name}",
            "objectId": f"obj-{name}",
            "mimeType": "application/pdf",
            "sizeBytes": size,
        }

    return make
