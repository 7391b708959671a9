"""
Bottom-up progress: Subtask -> Task -> Project.

These functions are pure over the entities they are handed and the explicit
``now``; the caller persists the result in the same transaction as the child
change that triggered it.
"""
from datetime import datetime
from math import ceil

from printshop.errors import IllegalTransition, ValidationError
from printshop.models.project import Project
from printshop.models.task import Task
from printshop.schemas.common import ProjectStatus
from printshop.utils.money import round_percent
from printshop.utils.timestamps import parse_timestamp, to_iso

PROJECT_STATUSES = ProjectStatus.__args__
FROZEN_PROJECT_STATUSES = ("completed", "cancelled")


def subtask_progress(task: Task) -> int:
    if not task.subtasks:
        return 0
    done = sum(1 for st in task.subtasks if st.completed)
    return round_percent(done, len(task.subtasks))


def recompute_task(task: Task, now: datetime) -> tuple[int, str]:
    """Refresh ``task.progress`` and apply the completion ratchet.

    Without subtasks the status decides: completed means 100, anything else
    means 0. With subtasks, progress is the rounded share
    of completed subtasks, and reaching 100 completes the task once. Dropping
    below 100 later never reopens it.
    """
    if not task.subtasks:
        task.progress = 100 if task.status == "completed" else 0
    else:
        task.progress = subtask_progress(task)
        if task.progress == 100 and task.status != "completed":
            task.status = "completed"
            task.completed_date = to_iso(now)
    return task.progress, task.status


def recompute_project(project: Project, tasks: list[Task]) -> int:
    if project.status in FROZEN_PROJECT_STATUSES and project.progress is not None:
        return project.progress
    if not tasks:
        project.progress = 0
    else:
        done = sum(1 for t in tasks if t.status == "completed")
        project.progress = round_percent(done, len(tasks))
    return project.progress


def change_project_status(project: Project, target: str, tasks: list[Task], now: datetime) -> str:
    """Move ``project`` to ``target`` and return the previous status.

    Progress is recomputed before a closing status freezes it. Completed and
    cancelled projects cannot be reopened.
    """
    if target not in PROJECT_STATUSES:
        raise ValidationError(f"Unknown project status '{target}'")
    current = project.status
    if target == current:
        return current
    if current in FROZEN_PROJECT_STATUSES:
        raise IllegalTransition("Project", current, target, "project is closed")
    recompute_project(project, tasks)
    project.status = target
    if target == "completed":
        project.completed_date = to_iso(now)
    return current


def task_is_overdue(task: Task, now: datetime) -> bool:
    if not task.due_date or task.status == "completed":
        return False
    return now > parse_timestamp(task.due_date)


def project_is_overdue(project: Project, now: datetime) -> bool:
    if not project.deadline or project.status == "completed":
        return False
    return now > parse_timestamp(project.deadline)


def project_days_remaining(project: Project, now: datetime) -> int | None:
    if not project.deadline:
        return None
    delta = parse_timestamp(project.deadline) - now
    return ceil(delta.total_seconds() / 86400)
