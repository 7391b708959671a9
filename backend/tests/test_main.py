import logging
import sqlite3

from printshop.database import get_engine, init_db, make_session_factory
from printshop.main import configure_logging, lifespan
from printshop.services.events import INVOICE_OVERDUE, EventEmitter
from printshop.utils.timestamps import utc_now


class TestLifespan:
    def test_creates_store(self, tmp_path):
        db_path = tmp_path / "nested" / "printshop.sqlite"
        with lifespan(db_path) as workflow:
            assert workflow.allocate_identifier("INV", 2025) == "INV20250001"
        assert db_path.exists()

    def test_migrations_are_idempotent(self, db_path):
        init_db(db_path)
        init_db(db_path)
        conn = sqlite3.connect(str(db_path))
        columns = [row[1] for row in conn.execute("PRAGMA table_info(invoices)")]
        conn.close()
        assert columns.count("overdue_notified_at") == 1

    def test_redelivers_leftover_events(self, db_path):
        init_db(db_path)
        engine = get_engine(db_path)
        factory = make_session_factory(engine)
        emitter = EventEmitter()
        db = factory()
        emitter.record(db, INVOICE_OVERDUE, "invoice", "inv-1", {}, utc_now())
        db.commit()
        db.close()
        engine.dispose()

        seen = []
        emitter.subscribe(INVOICE_OVERDUE, seen.append)
        with lifespan(db_path, emitter=emitter) as workflow:
            assert [e.entity_id for e in seen] == ["inv-1"]
            assert workflow.redeliver_pending() == 0


class TestLogging:
    def test_configure_logging(self):
        configure_logging("debug")
        configure_logging("debug")
        root = logging.getLogger("printshop")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        configure_logging("info")
