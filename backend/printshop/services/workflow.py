"""
Host-facing capability surface of the workflow core.

Every mutating call runs as one read-modify-write: open a session, load the
entities, apply the pure computation from the component modules, commit.
A stale ``row_version`` makes SQLAlchemy raise ``StaleDataError``; the whole
computation is then re-run against fresh state, and after
``settings.max_conflict_retries`` failed attempts the caller gets
``ConcurrencyConflict``. Workflow events are dispatched only after commit.

Authorization is the caller's job: the acting user's id is passed in and only
recorded.
"""
import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

import pydantic
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from printshop.config import settings
from printshop.database import make_session_factory
from printshop.errors import ConcurrencyConflict, IllegalTransition, NotFound, ValidationError
from printshop.models.file import File
from printshop.models.invoice import Invoice
from printshop.models.print_job import PrintJob
from printshop.models.project import Project
from printshop.models.quality_check import QualityCheck, QualityCriterion
from printshop.models.task import Subtask, Task
from printshop.schemas.common import TaskStatus
from printshop.schemas.file import ApprovalDecision, FileResponse, FileUpload
from printshop.schemas.invoice import (
    GatewayPayment,
    InvoiceCreate,
    InvoiceItemCreate,
    InvoiceItemResponse,
    InvoiceResponse,
    PaymentCreate,
    PaymentResponse,
)
from printshop.schemas.print_job import (
    Cost,
    CostUpdate,
    PrintJobCreate,
    PrintJobResponse,
    ProductionCounts,
    Quantity,
    TransitionRequest,
)
from printshop.schemas.project import Money, ProjectCreate, ProjectResponse, ProjectStatusUpdate
from printshop.schemas.quality import QualityCheckCreate, QualityCheckResponse
from printshop.schemas.task import SubtaskResponse, TaskCreate, TaskResponse
from printshop.services import identifiers, ledger, print_jobs, progress, quality, versions
from printshop.services.events import (
    FILE_APPROVAL_CHANGED,
    INVOICE_OVERDUE,
    INVOICE_PAID,
    PRINT_JOB_STATUS_CHANGED,
    TASK_COMPLETED,
    Event,
    EventEmitter,
)
from printshop.utils.timestamps import DATE_FORMAT, to_date_string, to_iso, utc_now

logger = logging.getLogger("printshop.workflow")

SchemaT = TypeVar("SchemaT", bound=pydantic.BaseModel)
ResultT = TypeVar("ResultT")

TASK_STATUSES = TaskStatus.__args__


def _coerce(schema: type[SchemaT], data) -> SchemaT:
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(str(exc)) from exc


def _get(db: Session, model, entity_id: str):
    obj = db.get(model, entity_id)
    if obj is None:
        raise NotFound(model.__name__, entity_id)
    return obj


def _touch(entity, now: datetime):
    """Stamp ``updated_at`` and force an UPDATE, so the row_version check runs
    even when no other column of ``entity`` changed."""
    entity.updated_at = to_iso(now)
    flag_modified(entity, "updated_at")


# ----------------------------------------------------------------------
# Response builders
# ----------------------------------------------------------------------


def _project_to_response(project: Project, now: datetime) -> ProjectResponse:
    budget = None
    if project.budget_amount is not None:
        budget = Money(amount=project.budget_amount, currency=project.budget_currency)
    return ProjectResponse(
        id=project.id,
        name=project.name,
        status=project.status,
        priority=project.priority,
        category=project.category,
        client_id=project.client_id,
        deadline=project.deadline,
        progress=project.progress,
        budget=budget,
        actual_cost=Money(amount=project.actual_cost_amount, currency=project.actual_cost_currency),
        is_overdue=progress.project_is_overdue(project, now),
        days_remaining=progress.project_days_remaining(project, now),
        completed_date=project.completed_date,
        task_count=len(project.tasks),
        completed_task_count=sum(1 for t in project.tasks if t.status == "completed"),
    )


def _task_to_response(task: Task, now: datetime, project_progress: int | None = None) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        project_id=task.project_id,
        title=task.title,
        status=task.status,
        progress=task.progress,
        completed_date=task.completed_date,
        due_date=task.due_date,
        is_overdue=progress.task_is_overdue(task, now),
        subtasks=[SubtaskResponse.model_validate(st) for st in task.subtasks],
        project_progress=project_progress,
    )


def _job_to_response(job: PrintJob) -> PrintJobResponse:
    verdict = quality.aggregate(job.quality_checks)
    return PrintJobResponse(
        id=job.id,
        job_number=job.job_number,
        project_id=job.project_id,
        title=job.title,
        status=job.status,
        machine=job.machine,
        progress=job.progress,
        quantity=Quantity(
            ordered=job.quantity_ordered,
            printed=job.quantity_printed,
            approved=job.quantity_approved,
            rejected=job.quantity_rejected,
        ),
        cost=Cost(
            materials=job.cost_materials,
            labor=job.cost_labor,
            overhead=job.cost_overhead,
            total=job.cost_total,
            currency=job.cost_currency,
        ),
        actual_start=job.actual_start,
        actual_completion=job.actual_completion,
        quality_verdict=verdict.status if verdict else None,
        pass_rate=verdict.pass_rate if verdict else None,
    )


def _invoice_to_response(invoice: Invoice, now: datetime) -> InvoiceResponse:
    return InvoiceResponse(
        id=invoice.id,
        invoice_number=invoice.invoice_number,
        status=invoice.status,
        effective_status=ledger.effective_status(invoice, now),
        currency=invoice.currency,
        items=[InvoiceItemResponse.model_validate(i) for i in invoice.items],
        payments=[PaymentResponse.model_validate(p) for p in invoice.payments],
        subtotal=invoice.subtotal,
        discount_amount=invoice.discount_amount,
        tax_amount=invoice.tax_amount,
        total=invoice.total,
        paid_amount=ledger.paid_amount(invoice),
        balance=ledger.balance(invoice),
        is_overdue=ledger.is_overdue(invoice, now),
        due_date=invoice.due_date,
        sent_at=invoice.sent_at,
        viewed_at=invoice.viewed_at,
        paid_at=invoice.paid_at,
    )


def _file_to_response(file: File) -> FileResponse:
    return FileResponse.model_validate(file)


# ----------------------------------------------------------------------
# Facade
# ----------------------------------------------------------------------


class Workflow:
    def __init__(
        self,
        engine: Engine,
        session_factory: sessionmaker | None = None,
        emitter: EventEmitter | None = None,
        clock: Callable[[], datetime] = utc_now,
        max_retries: int | None = None,
    ):
        self.engine = engine
        self.session_factory = session_factory or make_session_factory(engine)
        self.emitter = emitter or EventEmitter()
        self.clock = clock
        self.max_retries = settings.max_conflict_retries if max_retries is None else max_retries

    # -- plumbing --------------------------------------------------------

    def _run(self, name: str, operation: Callable[[Session, list[Event], datetime], ResultT]) -> ResultT:
        attempt = 0
        while True:
            attempt += 1
            events: list[Event] = []
            db = self.session_factory()
            try:
                result = operation(db, events, self.clock())
                db.commit()
            except StaleDataError as exc:
                db.rollback()
                if attempt > self.max_retries:
                    logger.error("%s gave up after %d conflicting attempts", name, attempt)
                    raise ConcurrencyConflict(
                        f"{name} conflicted with a concurrent update; resubmit"
                    ) from exc
                logger.warning("%s hit a concurrent update, retrying (attempt %d)", name, attempt)
                continue
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
            self.emitter.dispatch(self.session_factory, events)
            return result

    def _emit(self, db, events, now, event_type, entity_type, entity_id, payload):
        events.append(self.emitter.record(db, event_type, entity_type, entity_id, payload, now))

    def _read(self, reader: Callable[[Session, datetime], ResultT]) -> ResultT:
        db = self.session_factory()
        try:
            return reader(db, self.clock())
        finally:
            db.close()

    # -- identifiers -----------------------------------------------------

    def allocate_identifier(self, kind: str, year: int) -> str:
        return identifiers.allocate_identifier(self.engine, kind, year)

    # -- projects & tasks ------------------------------------------------

    def create_project(self, data: ProjectCreate | dict) -> ProjectResponse:
        req = _coerce(ProjectCreate, data)

        def op(db: Session, events, now):
            stamp = to_iso(now)
            project = Project(
                id=str(uuid.uuid4()),
                name=req.name,
                description=req.description,
                client_id=req.client_id,
                assigned_to=list(req.assigned_to),
                status=req.status,
                priority=req.priority,
                category=req.category,
                deadline=to_date_string(req.deadline) if req.deadline else None,
                start_date=stamp,
                budget_amount=req.budget.amount if req.budget else None,
                budget_currency=req.budget.currency if req.budget else settings.default_currency,
                actual_cost_amount=0.0,
                actual_cost_currency=req.budget.currency if req.budget else settings.default_currency,
                progress=0,
                created_at=stamp,
                updated_at=stamp,
            )
            db.add(project)
            db.flush()
            return _project_to_response(project, now)

        return self._run("create_project", op)

    def get_project(self, project_id: str) -> ProjectResponse:
        return self._read(lambda db, now: _project_to_response(_get(db, Project, project_id), now))

    def create_task(self, data: TaskCreate | dict) -> TaskResponse:
        req = _coerce(TaskCreate, data)

        def op(db: Session, events, now):
            project = _get(db, Project, req.project_id)
            stamp = to_iso(now)
            task = Task(
                id=str(uuid.uuid4()),
                project_id=project.id,
                title=req.title,
                description=req.description,
                assigned_to=req.assigned_to,
                created_by=req.created_by,
                status=req.status,
                priority=req.priority,
                category=req.category,
                due_date=to_date_string(req.due_date) if req.due_date else None,
                estimated_hours=req.estimated_hours,
                actual_hours=0.0,
                completed_date=stamp if req.status == "completed" else None,
                progress=0,
                created_at=stamp,
                updated_at=stamp,
            )
            for st in req.subtasks:
                task.subtasks.append(Subtask(id=str(uuid.uuid4()), title=st.title, completed=False))
            for dep_id in req.dependencies:
                dependency = _get(db, Task, dep_id)
                if dependency.project_id != project.id:
                    raise ValidationError(f"Dependency {dep_id} belongs to another project")
                task.dependencies.append(dependency)
            progress.recompute_task(task, now)
            project.tasks.append(task)
            progress.recompute_project(project, project.tasks)
            _touch(project, now)
            db.flush()
            return _task_to_response(task, now, project.progress)

        return self._run("create_task", op)

    def get_task(self, task_id: str) -> TaskResponse:
        return self._read(lambda db, now: _task_to_response(_get(db, Task, task_id), now))

    def apply_subtask_change(self, task_id: str, subtask_id: str, completed: bool, by: str) -> TaskResponse:
        def op(db: Session, events, now):
            task = _get(db, Task, task_id)
            subtask = next((st for st in task.subtasks if st.id == subtask_id), None)
            if subtask is None:
                raise NotFound("Subtask", subtask_id)
            was_completed = task.status == "completed"

            subtask.completed = completed
            subtask.completed_at = to_iso(now) if completed else None
            subtask.completed_by = by if completed else None
            progress.recompute_task(task, now)
            _touch(task, now)

            project = task.project
            progress.recompute_project(project, project.tasks)
            _touch(project, now)

            if task.status == "completed" and not was_completed:
                logger.info("Task %s completed by subtask progress", task.id)
                self._emit(db, events, now, TASK_COMPLETED, "task", task.id, {
                    "status": task.status,
                    "progress": task.progress,
                    "completedDate": task.completed_date,
                    "projectId": project.id,
                    "projectProgress": project.progress,
                })
            db.flush()
            return _task_to_response(task, now, project.progress)

        return self._run("apply_subtask_change", op)

    def apply_task_change(self, project_id: str, task_id: str, status: str) -> ProjectResponse:
        if status not in TASK_STATUSES:
            raise ValidationError(f"Unknown task status '{status}'")

        def op(db: Session, events, now):
            project = _get(db, Project, project_id)
            task = _get(db, Task, task_id)
            if task.project_id != project.id:
                raise ValidationError(f"Task {task_id} does not belong to project {project_id}")
            previous = task.status
            task.status = status
            if status == "completed" and previous != "completed":
                task.completed_date = to_iso(now)
            elif status != "completed":
                task.completed_date = None
            if not task.subtasks:
                progress.recompute_task(task, now)
            _touch(task, now)

            progress.recompute_project(project, project.tasks)
            _touch(project, now)

            if status == "completed" and previous != "completed":
                self._emit(db, events, now, TASK_COMPLETED, "task", task.id, {
                    "status": task.status,
                    "progress": task.progress,
                    "completedDate": task.completed_date,
                    "projectId": project.id,
                    "projectProgress": project.progress,
                })
            db.flush()
            return _project_to_response(project, now)

        return self._run("apply_task_change", op)

    def set_project_status(self, project_id: str, status: str) -> ProjectResponse:
        req = _coerce(ProjectStatusUpdate, {"status": status})

        def op(db: Session, events, now):
            project = _get(db, Project, project_id)
            previous = progress.change_project_status(project, req.status, project.tasks, now)
            _touch(project, now)
            db.flush()
            if previous != project.status:
                logger.info("Project %s: %s -> %s", project.id, previous, project.status)
            return _project_to_response(project, now)

        return self._run("set_project_status", op)

    # -- print jobs ------------------------------------------------------

    def create_print_job(self, data: PrintJobCreate | dict) -> PrintJobResponse:
        req = _coerce(PrintJobCreate, data)
        # Allocated outside the job transaction; a failed insert burns the number.
        job_number = self.allocate_identifier("PJ", self.clock().year)

        def op(db: Session, events, now):
            project = _get(db, Project, req.project_id)
            stamp = to_iso(now)
            job = PrintJob(
                id=str(uuid.uuid4()),
                job_number=job_number,
                project_id=project.id,
                title=req.title,
                description=req.description,
                status="pending",
                priority=req.priority,
                machine=req.machine,
                operator_id=req.operator_id,
                quantity_ordered=req.quantity_ordered,
                quantity_printed=0,
                quantity_approved=0,
                quantity_rejected=0,
                cost_currency=req.currency,
                scheduled_start=to_iso(req.scheduled_start) if req.scheduled_start else None,
                estimated_completion=(
                    to_iso(req.estimated_completion) if req.estimated_completion else None
                ),
                progress=0,
                created_at=stamp,
                updated_at=stamp,
            )
            print_jobs.update_costs(job, req.cost.materials, req.cost.labor, req.cost.overhead)
            for file_id in req.file_ids:
                job.files.append(_get(db, File, file_id))
            project.print_jobs.append(job)
            print_jobs.rollup_project_cost(project, project.print_jobs)
            _touch(project, now)
            db.flush()
            logger.info("Created print job %s for project %s", job_number, project.id)
            return _job_to_response(job)

        return self._run("create_print_job", op)

    def get_print_job(self, job_id: str) -> PrintJobResponse:
        return self._read(lambda db, now: _job_to_response(_get(db, PrintJob, job_id)))

    def update_print_job_costs(self, job_id: str, data: CostUpdate | dict) -> PrintJobResponse:
        req = _coerce(CostUpdate, data)

        def op(db: Session, events, now):
            job = _get(db, PrintJob, job_id)
            print_jobs.update_costs(job, req.materials, req.labor, req.overhead)
            _touch(job, now)
            project = job.project
            print_jobs.rollup_project_cost(project, project.print_jobs)
            _touch(project, now)
            db.flush()
            return _job_to_response(job)

        return self._run("update_print_job_costs", op)

    def record_production(self, job_id: str, data: ProductionCounts | dict) -> PrintJobResponse:
        req = _coerce(ProductionCounts, data)

        def op(db: Session, events, now):
            job = _get(db, PrintJob, job_id)
            print_jobs.record_production(job, req.printed, req.approved, req.rejected)
            _touch(job, now)
            db.flush()
            return _job_to_response(job)

        return self._run("record_production", op)

    def submit_quality_check(self, job_id: str, data: QualityCheckCreate | dict) -> QualityCheckResponse:
        req = _coerce(QualityCheckCreate, data)

        def op(db: Session, events, now):
            job = _get(db, PrintJob, job_id)
            if job.status in print_jobs.TERMINAL_STATUSES:
                raise IllegalTransition("PrintJob", job.status, job.status, "job is closed")
            check = QualityCheck(
                id=str(uuid.uuid4()),
                inspector_id=req.inspector_id,
                check_type=req.check_type,
                sample_size=req.sample_size,
                overall_status=req.overall_status,
                defect_count=req.defect_count,
                pass_rate=req.pass_rate,
                notes=req.notes,
                recommendations=req.recommendations,
                follow_up_required=req.follow_up_required,
                follow_up_date=req.follow_up_date.strftime(DATE_FORMAT) if req.follow_up_date else None,
                created_at=to_iso(now),
            )
            for criterion in req.criteria:
                check.criteria.append(QualityCriterion(
                    id=str(uuid.uuid4()),
                    parameter=criterion.parameter,
                    status=criterion.status,
                    notes=criterion.notes,
                    evidence=list(criterion.evidence),
                ))
            job.quality_checks.append(check)
            _touch(job, now)
            db.flush()
            logger.info("Quality check %s on %s: %s", check.id, job.job_number, check.overall_status)
            return QualityCheckResponse(
                id=check.id,
                print_job_id=job.id,
                check_type=check.check_type,
                overall_status=check.overall_status,
                pass_rate=check.pass_rate,
                defect_count=check.defect_count,
                created_at=check.created_at,
            )

        return self._run("submit_quality_check", op)

    def transition_print_job(self, job_id: str, target: str, override: bool = False) -> PrintJobResponse:
        req = _coerce(TransitionRequest, {"target": target, "override": override})

        def op(db: Session, events, now):
            job = _get(db, PrintJob, job_id)
            verdict = quality.aggregate(job.quality_checks)
            previous = print_jobs.transition(job, req.target, verdict, now, override=req.override)
            _touch(job, now)
            self._emit(db, events, now, PRINT_JOB_STATUS_CHANGED, "print_job", job.id, {
                "jobNumber": job.job_number,
                "from": previous,
                "status": job.status,
                "costTotal": job.cost_total,
                "qualityVerdict": verdict.status if verdict else None,
                "override": req.override,
            })
            db.flush()
            return _job_to_response(job)

        return self._run("transition_print_job", op)

    # -- invoices --------------------------------------------------------

    def create_invoice(self, data: InvoiceCreate | dict) -> InvoiceResponse:
        req = _coerce(InvoiceCreate, data)
        invoice_number = self.allocate_identifier("INV", self.clock().year)

        def op(db: Session, events, now):
            project = _get(db, Project, req.project_id)
            stamp = to_iso(now)
            invoice = Invoice(
                id=str(uuid.uuid4()),
                invoice_number=invoice_number,
                project_id=project.id,
                client_id=req.client_id,
                status="draft",
                invoice_type=req.invoice_type,
                currency=req.currency,
                issued_at=stamp,
                due_date=to_date_string(req.due_date),
                payment_terms=req.payment_terms,
                notes=req.notes,
                created_at=stamp,
                updated_at=stamp,
            )
            for item in req.items:
                ledger.add_item(
                    invoice, item.description, item.quantity, item.unit_price, item.discount, item.tax
                )
            ledger.recompute_totals(invoice)
            project.invoices.append(invoice)
            db.flush()
            logger.info("Created invoice %s (%s %.2f)", invoice_number, invoice.currency, invoice.total)
            return _invoice_to_response(invoice, now)

        return self._run("create_invoice", op)

    def get_invoice(self, invoice_id: str) -> InvoiceResponse:
        return self._read(lambda db, now: _invoice_to_response(_get(db, Invoice, invoice_id), now))

    def post_invoice_item(self, invoice_id: str, data: InvoiceItemCreate | dict) -> InvoiceResponse:
        req = _coerce(InvoiceItemCreate, data)

        def op(db: Session, events, now):
            invoice = _get(db, Invoice, invoice_id)
            ledger.add_item(invoice, req.description, req.quantity, req.unit_price, req.discount, req.tax)
            _touch(invoice, now)
            db.flush()
            return _invoice_to_response(invoice, now)

        return self._run("post_invoice_item", op)

    def remove_invoice_item(self, invoice_id: str, item_id: str) -> InvoiceResponse:
        def op(db: Session, events, now):
            invoice = _get(db, Invoice, invoice_id)
            ledger.remove_item(invoice, item_id)
            _touch(invoice, now)
            db.flush()
            return _invoice_to_response(invoice, now)

        return self._run("remove_invoice_item", op)

    def record_payment(self, invoice_id: str, data: PaymentCreate | dict) -> InvoiceResponse:
        req = _coerce(PaymentCreate, data)

        def op(db: Session, events, now):
            invoice = _get(db, Invoice, invoice_id)
            settled = ledger.record_payment(
                invoice,
                amount=req.amount,
                method=req.method,
                paid_on=to_date_string(req.paid_on),
                recorded_by=req.recorded_by,
                now=now,
                currency=req.currency,
                reference=req.reference,
                notes=req.notes,
            )
            _touch(invoice, now)
            if settled:
                self._emit(db, events, now, INVOICE_PAID, "invoice", invoice.id, {
                    "invoiceNumber": invoice.invoice_number,
                    "status": invoice.status,
                    "total": invoice.total,
                    "currency": invoice.currency,
                    "paidAt": invoice.paid_at,
                })
            db.flush()
            return _invoice_to_response(invoice, now)

        return self._run("record_payment", op)

    def record_gateway_payment(
        self, invoice_id: str, data: GatewayPayment | dict, recorded_by: str
    ) -> InvoiceResponse:
        req = _coerce(GatewayPayment, data)
        payment = PaymentCreate(
            amount=req.amount,
            currency=req.currency,
            method="online",
            paid_on=self.clock().date(),
            reference=req.external_reference,
            recorded_by=recorded_by,
        )
        return self.record_payment(invoice_id, payment)

    def _invoice_status_change(self, name: str, invoice_id: str, change) -> InvoiceResponse:
        def op(db: Session, events, now):
            invoice = _get(db, Invoice, invoice_id)
            change(invoice, now)
            _touch(invoice, now)
            db.flush()
            logger.info("Invoice %s is now %s", invoice.invoice_number, invoice.status)
            return _invoice_to_response(invoice, now)

        return self._run(name, op)

    def mark_invoice_sent(self, invoice_id: str) -> InvoiceResponse:
        return self._invoice_status_change("mark_invoice_sent", invoice_id, ledger.mark_sent)

    def mark_invoice_viewed(self, invoice_id: str) -> InvoiceResponse:
        return self._invoice_status_change("mark_invoice_viewed", invoice_id, ledger.mark_viewed)

    def cancel_invoice(self, invoice_id: str) -> InvoiceResponse:
        return self._invoice_status_change(
            "cancel_invoice", invoice_id, lambda invoice, now: ledger.cancel(invoice)
        )

    def scan_overdue_invoices(self) -> list[str]:
        """Emit InvoiceOverdue once for every unpaid invoice past its due date."""

        def op(db: Session, events, now):
            candidates = (
                db.query(Invoice)
                .filter(Invoice.status.notin_(ledger.CLOSED_STATUSES))
                .filter(Invoice.overdue_notified_at.is_(None))
                .all()
            )
            flagged = []
            for invoice in candidates:
                if not ledger.is_overdue(invoice, now):
                    continue
                invoice.overdue_notified_at = to_iso(now)
                flagged.append(invoice.invoice_number)
                self._emit(db, events, now, INVOICE_OVERDUE, "invoice", invoice.id, {
                    "invoiceNumber": invoice.invoice_number,
                    "status": ledger.effective_status(invoice, now),
                    "dueDate": invoice.due_date,
                    "balance": ledger.balance(invoice),
                    "currency": invoice.currency,
                })
            db.flush()
            if flagged:
                logger.info("Flagged %d overdue invoices", len(flagged))
            return flagged

        return self._run("scan_overdue_invoices", op)

    # -- files -----------------------------------------------------------

    def upload_file(self, data: FileUpload | dict) -> FileResponse:
        req = _coerce(FileUpload, data)

        def op(db: Session, events, now):
            if req.project_id:
                _get(db, Project, req.project_id)
            if req.task_id:
                _get(db, Task, req.task_id)
            file = versions.new_file(req, now)
            db.add(file)
            db.flush()
            return _file_to_response(file)

        return self._run("upload_file", op)

    def create_file_version(self, parent_id: str, data: FileUpload | dict) -> FileResponse:
        req = _coerce(FileUpload, data)

        def op(db: Session, events, now):
            parent = _get(db, File, parent_id)
            child = versions.create_version(parent, req, now)
            # Demote the parent first: its row_version check fails here if another
            # version was created concurrently, before the child is inserted.
            db.flush()
            db.add(child)
            db.flush()
            logger.info("File %s: version %d supersedes %s", child.root_file_id, child.version, parent.id)
            return _file_to_response(child)

        return self._run("create_file_version", op)

    def set_file_approval(self, file_id: str, data: ApprovalDecision | dict) -> FileResponse:
        req = _coerce(ApprovalDecision, data)

        def op(db: Session, events, now):
            file = _get(db, File, file_id)
            previous = versions.set_approval(file, req.status, req.approver, now, req.comments)
            self._emit(db, events, now, FILE_APPROVAL_CHANGED, "file", file.id, {
                "from": previous,
                "status": file.approval_status,
                "approvedBy": file.approved_by,
                "version": file.version,
                "comments": file.approval_comments,
            })
            db.flush()
            return _file_to_response(file)

        return self._run("set_file_approval", op)

    def get_file_chain(self, file_id: str) -> list[FileResponse]:
        def reader(db: Session, now):
            file = _get(db, File, file_id)
            chain = (
                db.query(File)
                .filter(File.root_file_id == file.root_file_id)
                .order_by(File.version)
                .all()
            )
            return [_file_to_response(f) for f in chain]

        return self._read(reader)

    def get_latest_file(self, file_id: str) -> FileResponse:
        def reader(db: Session, now):
            file = _get(db, File, file_id)
            chain = db.query(File).filter(File.root_file_id == file.root_file_id).all()
            latest = versions.latest_in_chain(chain)
            if latest is None:
                raise NotFound("File", f"latest version of {file.root_file_id}")
            return _file_to_response(latest)

        return self._read(reader)

    # -- events ----------------------------------------------------------

    def redeliver_pending(self) -> int:
        return self.emitter.redeliver_pending(self.session_factory)
