from datetime import date

from pydantic import BaseModel, Field

from printshop.schemas.common import Priority, TaskCategory, TaskStatus


class SubtaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)


class TaskCreate(BaseModel):
    project_id: str
    title: str = Field(min_length=2, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    category: TaskCategory
    created_by: str
    assigned_to: str | None = None
    priority: Priority = "medium"
    status: TaskStatus = "todo"
    due_date: date | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    subtasks: list[SubtaskCreate] = []
    dependencies: list[str] = []

    model_config = {"allow_inf_nan": False}


class SubtaskResponse(BaseModel):
    id: str
    title: str
    completed: bool
    completed_at: str | None
    completed_by: str | None

    model_config = {"from_attributes": True}


class TaskResponse(BaseModel):
    id: str
    project_id: str
    title: str
    status: str
    progress: int
    completed_date: str | None
    due_date: str | None
    is_overdue: bool
    subtasks: list[SubtaskResponse] = []
    project_progress: int | None = None
