"""
Workflow events for the notification collaborator.

Events are appended to the ``workflow_events`` outbox inside the transaction
that changed the entity and handed to subscribers only after that transaction
commits. A subscriber failure never touches ledger or workflow state; the event
stays undispatched and ``redeliver_pending`` can retry it later.
"""
import logging
import uuid
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from printshop.database import session_scope
from printshop.models.event import WorkflowEvent
from printshop.utils.timestamps import to_iso, utc_now

logger = logging.getLogger("printshop.events")

TASK_COMPLETED = "TaskCompleted"
PRINT_JOB_STATUS_CHANGED = "PrintJobStatusChanged"
INVOICE_PAID = "InvoicePaid"
INVOICE_OVERDUE = "InvoiceOverdue"
FILE_APPROVAL_CHANGED = "FileApprovalChanged"

EVENT_TYPES = (
    TASK_COMPLETED,
    PRINT_JOB_STATUS_CHANGED,
    INVOICE_PAID,
    INVOICE_OVERDUE,
    FILE_APPROVAL_CHANGED,
)


class Event(BaseModel):
    id: str
    event_type: str
    entity_type: str
    entity_id: str
    payload: dict
    occurred_at: str


Handler = Callable[[Event], None]


def _to_event(row: WorkflowEvent) -> Event:
    return Event(
        id=row.id,
        event_type=row.event_type,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        payload=row.payload,
        occurred_at=row.occurred_at,
    )


class EventEmitter:
    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: Handler):
        if event_type != "*" and event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type '{event_type}'")
        self._handlers[event_type].append(handler)

    def record(
        self,
        db: Session,
        event_type: str,
        entity_type: str,
        entity_id: str,
        payload: dict,
        now: datetime,
    ) -> Event:
        """Stage an event in the outbox of the caller's transaction."""
        row = WorkflowEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload,
            occurred_at=to_iso(now),
            attempts=0,
        )
        db.add(row)
        return _to_event(row)

    def _deliver(self, event: Event) -> bool:
        delivered = True
        for handler in self._handlers.get(event.event_type, []) + self._handlers.get("*", []):
            handler_name = getattr(handler, "__qualname__", repr(handler))
            try:
                handler(event)
            except Exception:
                delivered = False
                logger.exception(
                    "Subscriber %s failed for %s (event %s)",
                    handler_name, event.event_type, event.id,
                )
        return delivered

    def dispatch(self, session_factory: sessionmaker, events: list[Event]) -> int:
        """Deliver committed events. Returns how many were fully delivered."""
        if not events:
            return 0
        delivered_ids = []
        for event in events:
            if self._deliver(event):
                delivered_ids.append(event.id)
        try:
            self._mark(session_factory, [e.id for e in events], delivered_ids)
        except SQLAlchemyError:
            # The state change is already committed; unmarked events stay pending.
            logger.exception("Could not mark %d workflow events as dispatched", len(events))
        return len(delivered_ids)

    def _mark(self, session_factory: sessionmaker, attempted: list[str], delivered: list[str]):
        stamp = to_iso(utc_now())
        with session_scope(session_factory) as db:
            rows = db.query(WorkflowEvent).filter(WorkflowEvent.id.in_(attempted)).all()
            for row in rows:
                row.attempts += 1
                if row.id in delivered:
                    row.dispatched_at = stamp

    def pending(self, db: Session) -> list[Event]:
        rows = (
            db.query(WorkflowEvent)
            .filter(WorkflowEvent.dispatched_at.is_(None))
            .order_by(WorkflowEvent.occurred_at)
            .all()
        )
        return [_to_event(r) for r in rows]

    def redeliver_pending(self, session_factory: sessionmaker) -> int:
        db = session_factory()
        try:
            events = self.pending(db)
        finally:
            db.close()
        if events:
            logger.info("Redelivering %d pending workflow events", len(events))
        return self.dispatch(session_factory, events)
