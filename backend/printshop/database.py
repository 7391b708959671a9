import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from printshop.config import settings

logger = logging.getLogger("printshop.database")


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(db_path: Path | None = None):
    path = db_path or settings.db_path
    engine = create_engine(
        f"sqlite:///{path}",
        # The sqlite3 busy timeout lets concurrent writers queue instead of failing.
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


def make_session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@contextmanager
def session_scope(session_factory: sessionmaker):
    db: Session = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


SCHEMA_SQL = """\
-- ============================================================
-- PROJECTS
-- ============================================================
CREATE TABLE IF NOT EXISTS projects (
    id                   TEXT PRIMARY KEY,
    name                 TEXT NOT NULL,
    description          TEXT,
    client_id            TEXT NOT NULL,
    assigned_to          TEXT,
    status               TEXT NOT NULL DEFAULT 'draft'
                         CHECK(status IN ('draft','active','on-hold','completed','cancelled')),
    priority             TEXT NOT NULL DEFAULT 'medium'
                         CHECK(priority IN ('low','medium','high','urgent')),
    category             TEXT NOT NULL
                         CHECK(category IN ('brochure','business-card','banner','poster',
                                            'book','packaging','other')),
    deadline             TEXT,
    start_date           TEXT,
    completed_date       TEXT,
    budget_amount        REAL CHECK(budget_amount IS NULL OR budget_amount >= 0),
    budget_currency      TEXT NOT NULL DEFAULT 'AED',
    actual_cost_amount   REAL NOT NULL DEFAULT 0 CHECK(actual_cost_amount >= 0),
    actual_cost_currency TEXT NOT NULL DEFAULT 'AED',
    progress             INTEGER NOT NULL DEFAULT 0 CHECK(progress BETWEEN 0 AND 100),
    row_version          INTEGER NOT NULL,
    created_at           TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at           TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_projects_client_status ON projects(client_id, status);
CREATE INDEX IF NOT EXISTS idx_projects_deadline ON projects(deadline);

-- ============================================================
-- TASKS
-- ============================================================
CREATE TABLE IF NOT EXISTS tasks (
    id              TEXT PRIMARY KEY,
    project_id      TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    title           TEXT NOT NULL,
    description     TEXT,
    assigned_to     TEXT,
    created_by      TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'todo'
                    CHECK(status IN ('todo','in-progress','review','completed','cancelled')),
    priority        TEXT NOT NULL DEFAULT 'medium'
                    CHECK(priority IN ('low','medium','high','urgent')),
    category        TEXT NOT NULL
                    CHECK(category IN ('design','review','printing','quality-check',
                                       'delivery','other')),
    due_date        TEXT,
    start_date      TEXT,
    completed_date  TEXT,
    estimated_hours REAL CHECK(estimated_hours IS NULL OR estimated_hours >= 0),
    actual_hours    REAL NOT NULL DEFAULT 0 CHECK(actual_hours >= 0),
    progress        INTEGER NOT NULL DEFAULT 0 CHECK(progress BETWEEN 0 AND 100),
    row_version     INTEGER NOT NULL,
    created_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_tasks_project_status ON tasks(project_id, status);
CREATE INDEX IF NOT EXISTS idx_tasks_assignee_status ON tasks(assigned_to, status);
CREATE INDEX IF NOT EXISTS idx_tasks_due ON tasks(due_date);

CREATE TABLE IF NOT EXISTS subtasks (
    id           TEXT PRIMARY KEY,
    task_id      TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
    position     INTEGER NOT NULL,
    title        TEXT NOT NULL,
    completed    INTEGER NOT NULL DEFAULT 0,
    completed_at TEXT,
    completed_by TEXT
);

CREATE INDEX IF NOT EXISTS idx_subtasks_task ON subtasks(task_id);

CREATE TABLE IF NOT EXISTS task_dependencies (
    task_id       TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
    depends_on_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
    PRIMARY KEY (task_id, depends_on_id)
);

-- ============================================================
-- FILES
-- ============================================================
CREATE TABLE IF NOT EXISTS files (
    id                TEXT PRIMARY KEY,
    original_name     TEXT NOT NULL,
    storage_url       TEXT NOT NULL,
    storage_object_id TEXT NOT NULL,
    mime_type         TEXT NOT NULL,
    size_bytes        INTEGER NOT NULL CHECK(size_bytes >= 0),
    category          TEXT NOT NULL DEFAULT 'other'
                      CHECK(category IN ('design','proof','final','reference',
                                         'invoice','contract','other')),
    project_id        TEXT REFERENCES projects(id) ON DELETE SET NULL,
    task_id           TEXT REFERENCES tasks(id) ON DELETE SET NULL,
    uploaded_by       TEXT NOT NULL,
    version           INTEGER NOT NULL DEFAULT 1 CHECK(version >= 1),
    parent_file_id    TEXT REFERENCES files(id),
    root_file_id      TEXT NOT NULL,
    is_latest_version INTEGER NOT NULL DEFAULT 1,
    approval_status   TEXT NOT NULL DEFAULT 'pending'
                      CHECK(approval_status IN ('pending','approved','rejected','needs-revision')),
    approved_by       TEXT,
    approved_at       TEXT,
    approval_comments TEXT,
    access_level      TEXT NOT NULL DEFAULT 'client'
                      CHECK(access_level IN ('public','client','internal','private')),
    row_version       INTEGER NOT NULL,
    created_at        TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at        TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_files_project_category ON files(project_id, category);
CREATE INDEX IF NOT EXISTS idx_files_approval ON files(approval_status);
-- At most one latest record per version chain.
CREATE UNIQUE INDEX IF NOT EXISTS idx_files_latest ON files(root_file_id) WHERE is_latest_version = 1;

-- ============================================================
-- PRINT JOBS
-- ============================================================
CREATE TABLE IF NOT EXISTS print_jobs (
    id                   TEXT PRIMARY KEY,
    job_number           TEXT NOT NULL UNIQUE,
    project_id           TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    title                TEXT NOT NULL,
    description          TEXT,
    status               TEXT NOT NULL DEFAULT 'pending'
                         CHECK(status IN ('pending','in-queue','printing','quality-check',
                                          'completed','failed')),
    priority             TEXT NOT NULL DEFAULT 'medium'
                         CHECK(priority IN ('low','medium','high','urgent')),
    machine              TEXT NOT NULL
                         CHECK(machine IN ('offset-press','digital-press','large-format',
                                           'cutting-machine','binding-machine')),
    operator_id          TEXT,
    quantity_ordered     INTEGER NOT NULL CHECK(quantity_ordered >= 1),
    quantity_printed     INTEGER NOT NULL DEFAULT 0 CHECK(quantity_printed >= 0),
    quantity_approved    INTEGER NOT NULL DEFAULT 0 CHECK(quantity_approved >= 0),
    quantity_rejected    INTEGER NOT NULL DEFAULT 0 CHECK(quantity_rejected >= 0),
    cost_materials       REAL NOT NULL DEFAULT 0 CHECK(cost_materials >= 0),
    cost_labor           REAL NOT NULL DEFAULT 0 CHECK(cost_labor >= 0),
    cost_overhead        REAL NOT NULL DEFAULT 0 CHECK(cost_overhead >= 0),
    cost_total           REAL NOT NULL DEFAULT 0 CHECK(cost_total >= 0),
    cost_currency        TEXT NOT NULL DEFAULT 'AED',
    scheduled_start      TEXT,
    actual_start         TEXT,
    estimated_completion TEXT,
    actual_completion    TEXT,
    progress             INTEGER NOT NULL DEFAULT 0 CHECK(progress BETWEEN 0 AND 100),
    row_version          INTEGER NOT NULL,
    created_at           TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at           TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_print_jobs_project ON print_jobs(project_id);
CREATE INDEX IF NOT EXISTS idx_print_jobs_status_priority ON print_jobs(status, priority);

CREATE TABLE IF NOT EXISTS print_job_files (
    print_job_id TEXT NOT NULL REFERENCES print_jobs(id) ON DELETE CASCADE,
    file_id      TEXT NOT NULL REFERENCES files(id) ON DELETE CASCADE,
    PRIMARY KEY (print_job_id, file_id)
);

-- ============================================================
-- QUALITY CHECKS
-- ============================================================
CREATE TABLE IF NOT EXISTS quality_checks (
    id                 TEXT PRIMARY KEY,
    print_job_id       TEXT NOT NULL REFERENCES print_jobs(id) ON DELETE CASCADE,
    position           INTEGER NOT NULL,
    inspector_id       TEXT NOT NULL,
    check_type         TEXT NOT NULL
                       CHECK(check_type IN ('pre-production','mid-production','final','random')),
    sample_size        INTEGER NOT NULL CHECK(sample_size >= 1),
    overall_status     TEXT NOT NULL
                       CHECK(overall_status IN ('approved','rejected','conditional')),
    defect_count       INTEGER NOT NULL DEFAULT 0 CHECK(defect_count >= 0),
    pass_rate          REAL CHECK(pass_rate IS NULL OR pass_rate BETWEEN 0 AND 100),
    notes              TEXT,
    recommendations    TEXT,
    follow_up_required INTEGER NOT NULL DEFAULT 0,
    follow_up_date     TEXT,
    created_at         TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_quality_checks_job ON quality_checks(print_job_id);
CREATE INDEX IF NOT EXISTS idx_quality_checks_status ON quality_checks(overall_status);

CREATE TABLE IF NOT EXISTS quality_criteria (
    id               TEXT PRIMARY KEY,
    quality_check_id TEXT NOT NULL REFERENCES quality_checks(id) ON DELETE CASCADE,
    position         INTEGER NOT NULL,
    parameter        TEXT NOT NULL
                     CHECK(parameter IN ('color-accuracy','alignment','cutting','finishing',
                                         'text-clarity','image-quality','overall')),
    status           TEXT NOT NULL CHECK(status IN ('pass','fail','warning')),
    notes            TEXT,
    evidence         TEXT
);

-- ============================================================
-- INVOICES
-- ============================================================
CREATE TABLE IF NOT EXISTS invoices (
    id                  TEXT PRIMARY KEY,
    invoice_number      TEXT NOT NULL UNIQUE,
    project_id          TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    client_id           TEXT NOT NULL,
    status              TEXT NOT NULL DEFAULT 'draft'
                        CHECK(status IN ('draft','sent','viewed','paid','overdue','cancelled')),
    invoice_type        TEXT NOT NULL DEFAULT 'final'
                        CHECK(invoice_type IN ('proforma','final','deposit','partial')),
    subtotal            REAL NOT NULL DEFAULT 0 CHECK(subtotal >= 0),
    discount_amount     REAL NOT NULL DEFAULT 0 CHECK(discount_amount >= 0),
    tax_amount          REAL NOT NULL DEFAULT 0 CHECK(tax_amount >= 0),
    total               REAL NOT NULL DEFAULT 0 CHECK(total >= 0),
    currency            TEXT NOT NULL DEFAULT 'AED',
    issued_at           TEXT NOT NULL,
    due_date            TEXT NOT NULL,
    sent_at             TEXT,
    viewed_at           TEXT,
    paid_at             TEXT,
    overdue_notified_at TEXT,
    payment_terms       TEXT NOT NULL DEFAULT 'Net 30',
    notes               TEXT,
    row_version         INTEGER NOT NULL,
    created_at          TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at          TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_invoices_client_status ON invoices(client_id, status);
CREATE INDEX IF NOT EXISTS idx_invoices_project ON invoices(project_id);
CREATE INDEX IF NOT EXISTS idx_invoices_due ON invoices(due_date);

CREATE TABLE IF NOT EXISTS invoice_items (
    id          TEXT PRIMARY KEY,
    invoice_id  TEXT NOT NULL REFERENCES invoices(id) ON DELETE CASCADE,
    position    INTEGER NOT NULL,
    description TEXT NOT NULL,
    quantity    REAL NOT NULL CHECK(quantity > 0),
    unit_price  REAL NOT NULL CHECK(unit_price >= 0),
    discount    REAL NOT NULL DEFAULT 0 CHECK(discount BETWEEN 0 AND 100),
    tax         REAL NOT NULL DEFAULT 0 CHECK(tax >= 0),
    total       REAL NOT NULL CHECK(total >= 0)
);

CREATE TABLE IF NOT EXISTS payments (
    id          TEXT PRIMARY KEY,
    invoice_id  TEXT NOT NULL REFERENCES invoices(id) ON DELETE CASCADE,
    amount      REAL NOT NULL CHECK(amount > 0),
    paid_on     TEXT NOT NULL,
    method      TEXT NOT NULL
                CHECK(method IN ('bank-transfer','cash','card','cheque','online')),
    reference   TEXT,
    notes       TEXT,
    recorded_by TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_payments_invoice ON payments(invoice_id);

-- ============================================================
-- DOCUMENT NUMBER COUNTERS
-- ============================================================
CREATE TABLE IF NOT EXISTS sequence_counters (
    kind  TEXT NOT NULL,
    year  INTEGER NOT NULL,
    value INTEGER NOT NULL,
    PRIMARY KEY (kind, year)
);

-- ============================================================
-- WORKFLOW EVENT OUTBOX
-- ============================================================
CREATE TABLE IF NOT EXISTS workflow_events (
    id            TEXT PRIMARY KEY,
    event_type    TEXT NOT NULL
                  CHECK(event_type IN ('TaskCompleted','PrintJobStatusChanged','InvoicePaid',
                                       'InvoiceOverdue','FileApprovalChanged')),
    entity_type   TEXT NOT NULL,
    entity_id     TEXT NOT NULL,
    payload       TEXT NOT NULL,
    occurred_at   TEXT NOT NULL,
    dispatched_at TEXT,
    attempts      INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_workflow_events_pending ON workflow_events(dispatched_at);
CREATE INDEX IF NOT EXISTS idx_workflow_events_entity ON workflow_events(entity_type, entity_id);
"""


MIGRATIONS = [
    # v0.2: overdue notification bookkeeping
    "ALTER TABLE invoices ADD COLUMN overdue_notified_at TEXT",
    # v0.3: outbox delivery attempts
    "ALTER TABLE workflow_events ADD COLUMN attempts INTEGER NOT NULL DEFAULT 0",
]


def init_db(db_path: Path | None = None):
    path = db_path or settings.db_path
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.executescript(SCHEMA_SQL)
    # Run migrations idempotently (ALTER TABLE fails if column exists)
    for migration in MIGRATIONS:
        try:
            conn.execute(migration)
            conn.commit()
        except sqlite3.OperationalError:
            pass  # column already exists
    conn.close()


def check_integrity(db_path: Path | None = None) -> bool:
    path = db_path or settings.db_path
    conn = sqlite3.connect(str(path))
    try:
        result = conn.execute("PRAGMA integrity_check").fetchone()
    finally:
        conn.close()
    if result and result[0] == "ok":
        logger.info("Database integrity check passed.")
        return True
    logger.error("DATABASE INTEGRITY CHECK FAILED: %s", result)
    return False
