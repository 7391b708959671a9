import logging
from contextlib import contextmanager
from pathlib import Path

from printshop.config import settings
from printshop.database import check_integrity, get_engine, init_db, make_session_factory
from printshop.services.events import EventEmitter
from printshop.services.workflow import Workflow

logger = logging.getLogger("printshop")


def configure_logging(level: str | None = None):
    logger.setLevel((level or settings.log_level).upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)


@contextmanager
def lifespan(db_path: Path | None = None, emitter: EventEmitter | None = None):
    """Open the workflow core for a host process and release it on exit."""
    path = db_path or settings.db_path
    # Startup: create or migrate the store, then verify it
    init_db(path)
    if not check_integrity(path):
        logger.error("Store at %s failed its integrity check.", path)
    engine = get_engine(path)
    workflow = Workflow(engine, make_session_factory(engine), emitter=emitter)
    # Events staged before a crash are still in the outbox
    pending = workflow.redeliver_pending()
    if pending:
        logger.info("Delivered %d events left over from a previous run.", pending)
    try:
        yield workflow
    finally:
        engine.dispose()
