from datetime import datetime, timezone

import pytest

from printshop.errors import IllegalTransition, ValidationError
from printshop.models.project import Project
from printshop.models.task import Subtask, Task
from printshop.services import progress

NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def _task(status="todo", done=(), due_date=None):
    task = Task(id="t", status=status, progress=0, due_date=due_date, completed_date=None)
    for i, completed in enumerate(done):
        task.subtasks.append(Subtask(id=f"s{i}", title=f"Step {i}", completed=completed))
    return task


def _project(status="active", progress_value=0, deadline=None):
    return Project(id="p", status=status, progress=progress_value, deadline=deadline)


class TestTaskProgress:
    def test_two_of_three_subtasks_is_67(self):
        task = _task(done=(True, True, False))
        assert progress.recompute_task(task, NOW) == (67, "todo")

    def test_all_subtasks_done_completes_task(self):
        task = _task(status="in-progress", done=(True, True))
        result = progress.recompute_task(task, NOW)
        assert result == (100, "completed")
        assert task.completed_date == "2025-03-10T09:00:00Z"

    def test_ratchet_does_not_reopen(self):
        task = _task(status="in-progress", done=(True, True))
        progress.recompute_task(task, NOW)
        task.subtasks[1].completed = False
        assert progress.recompute_task(task, NOW) == (50, "completed")
        assert task.completed_date == "2025-03-10T09:00:00Z"

    def test_completed_date_stamped_once(self):
        task = _task(status="in-progress", done=(True,))
        progress.recompute_task(task, NOW)
        later = datetime(2025, 3, 12, tzinfo=timezone.utc)
        progress.recompute_task(task, later)
        assert task.completed_date == "2025-03-10T09:00:00Z"

    def test_no_subtasks_follows_status(self):
        assert progress.recompute_task(_task(status="in-progress"), NOW) == (0, "in-progress")
        assert progress.recompute_task(_task(status="completed"), NOW) == (100, "completed")

    def test_overdue_task(self):
        assert progress.task_is_overdue(_task(due_date="2025-03-01"), NOW)
        assert not progress.task_is_overdue(_task(due_date="2025-03-20"), NOW)
        assert not progress.task_is_overdue(_task(status="completed", due_date="2025-03-01"), NOW)
        assert not progress.task_is_overdue(_task(), NOW)


class TestProjectProgress:
    def test_one_of_three_tasks_is_33(self):
        project = _project()
        tasks = [_task(status="completed"), _task(status="in-progress"), _task()]
        assert progress.recompute_project(project, tasks) == 33
        assert project.progress == 33

    def test_no_tasks_is_zero(self):
        project = _project(progress_value=40)
        assert progress.recompute_project(project, []) == 0

    def test_cancelled_project_is_frozen(self):
        project = _project(status="cancelled", progress_value=50)
        tasks = [_task(status="completed"), _task(status="completed")]
        assert progress.recompute_project(project, tasks) == 50

    def test_completed_project_is_frozen(self):
        project = _project(status="completed", progress_value=100)
        assert progress.recompute_project(project, [_task()]) == 100

    def test_overdue_and_days_remaining(self):
        project = _project(deadline="2025-03-15")
        assert not progress.project_is_overdue(project, NOW)
        assert progress.project_days_remaining(project, NOW) == 5

        late = _project(deadline="2025-03-01")
        assert progress.project_is_overdue(late, NOW)

    def test_no_deadline(self):
        project = _project()
        assert not progress.project_is_overdue(project, NOW)
        assert progress.project_days_remaining(project, NOW) is None


class TestProjectStatus:
    def test_completion_recomputes_then_freezes(self):
        project = _project(progress_value=0)
        tasks = [_task(status="completed"), _task(status="completed"), _task()]
        assert progress.change_project_status(project, "completed", tasks, NOW) == "active"
        assert project.progress == 67
        assert project.completed_date == "2025-03-10T09:00:00Z"

        tasks[2].status = "completed"
        assert progress.recompute_project(project, tasks) == 67

    @pytest.mark.parametrize("closed", ["completed", "cancelled"])
    def test_closed_project_cannot_reopen(self, closed):
        project = _project(status=closed, progress_value=40)
        with pytest.raises(IllegalTransition):
            progress.change_project_status(project, "active", [], NOW)
        assert project.status == closed

    def test_same_status_is_noop(self):
        project = _project(status="cancelled", progress_value=40)
        assert progress.change_project_status(project, "cancelled", [], NOW) == "cancelled"

    def test_on_hold_keeps_tracking(self):
        project = _project()
        progress.change_project_status(project, "on-hold", [_task(status="completed")], NOW)
        assert project.status == "on-hold"
        assert project.completed_date is None
        assert progress.recompute_project(project, [_task(status="completed"), _task()]) == 50

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            progress.change_project_status(_project(), "archived", [], NOW)
