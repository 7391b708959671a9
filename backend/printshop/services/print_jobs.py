"""
PrintJob production state machine and cost rollup.

    pending -> in-queue -> printing -> quality-check -> completed
                  |           |            |
                  +-----------+------------+--> failed

A rejected quality verdict sends the job back from quality-check to printing
for a retry, or on to failed. completed and failed are terminal.
"""
import logging
from datetime import datetime

from printshop.errors import IllegalTransition, QualityGateBlocked, ValidationError
from printshop.models.print_job import PrintJob
from printshop.schemas.quality import QualityVerdict
from printshop.utils.money import ensure_finite, round_money, round_percent
from printshop.utils.timestamps import to_iso

logger = logging.getLogger("printshop.print_jobs")

TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"in-queue"}),
    "in-queue": frozenset({"printing", "failed"}),
    "printing": frozenset({"quality-check", "failed"}),
    "quality-check": frozenset({"completed", "printing", "failed"}),
    "completed": frozenset(),
    "failed": frozenset(),
}

TERMINAL_STATUSES = ("completed", "failed")


def recompute_cost(job: PrintJob) -> float:
    job.cost_total = round_money(
        (job.cost_materials or 0) + (job.cost_labor or 0) + (job.cost_overhead or 0)
    )
    return job.cost_total


def update_costs(
    job: PrintJob,
    materials: float | None = None,
    labor: float | None = None,
    overhead: float | None = None,
) -> float:
    for name, value in (("materials", materials), ("labor", labor), ("overhead", overhead)):
        if value is not None and ensure_finite(f"cost.{name}", value) < 0:
            raise ValidationError(f"cost.{name} must be >= 0")
    if materials is not None:
        job.cost_materials = round_money(materials)
    if labor is not None:
        job.cost_labor = round_money(labor)
    if overhead is not None:
        job.cost_overhead = round_money(overhead)
    return recompute_cost(job)


def recompute_progress(job: PrintJob) -> int:
    if job.status == "completed":
        job.progress = 100
    else:
        job.progress = min(100, round_percent(job.quantity_printed or 0, job.quantity_ordered))
    return job.progress


def record_production(job: PrintJob, printed: int, approved: int = 0, rejected: int = 0) -> int:
    if job.status in TERMINAL_STATUSES:
        raise IllegalTransition("PrintJob", job.status, job.status, "job is closed")
    if min(printed, approved, rejected) < 0:
        raise ValidationError("quantities must be >= 0")
    if approved + rejected > printed:
        raise ValidationError("approved + rejected cannot exceed printed")
    job.quantity_printed = printed
    job.quantity_approved = approved
    job.quantity_rejected = rejected
    return recompute_progress(job)


def check_transition(
    job: PrintJob,
    target: str,
    verdict: QualityVerdict | None,
    override: bool = False,
):
    """Raise unless ``job`` may move to ``target`` given the quality verdict."""
    current = job.status
    if target not in TRANSITIONS:
        raise ValidationError(f"Unknown print job status '{target}'")
    if target not in TRANSITIONS[current]:
        raise IllegalTransition("PrintJob", current, target)

    verdict_status = verdict.status if verdict else None
    if target == "completed":
        if verdict_status == "approved":
            return
        if verdict_status == "conditional" and override:
            return
        raise QualityGateBlocked(job.job_number, verdict_status)
    if current == "quality-check" and target == "printing" and verdict_status != "rejected":
        raise IllegalTransition(
            "PrintJob", current, target, "a reprint needs a rejected quality verdict"
        )


def transition(
    job: PrintJob,
    target: str,
    verdict: QualityVerdict | None,
    now: datetime,
    override: bool = False,
) -> str:
    check_transition(job, target, verdict, override)
    previous = job.status
    job.status = target
    if target == "printing" and not job.actual_start:
        job.actual_start = to_iso(now)
    if target == "completed":
        job.actual_completion = to_iso(now)
    recompute_progress(job)
    recompute_cost(job)
    logger.info("Print job %s: %s -> %s", job.job_number, previous, target)
    return previous


def rollup_project_cost(project, jobs: list[PrintJob]) -> float:
    """Sum job totals into ``project.actual_cost_amount``.

    Only jobs billed in the project's cost currency are counted; amounts in
    other currencies are never mixed in.
    """
    total = 0.0
    for job in jobs:
        if job.cost_currency != project.actual_cost_currency:
            logger.warning(
                "Skipping %s in cost rollup: %s differs from project currency %s",
                job.job_number, job.cost_currency, project.actual_cost_currency,
            )
            continue
        total += job.cost_total or 0
    project.actual_cost_amount = round_money(total)
    return project.actual_cost_amount
