from datetime import date

from pydantic import BaseModel, Field

from printshop.schemas.common import Currency, Priority, ProjectCategory, ProjectStatus


class Money(BaseModel):
    amount: float = Field(ge=0)
    currency: Currency = "AED"

    model_config = {"allow_inf_nan": False}


class ProjectCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    client_id: str
    assigned_to: list[str] = []
    category: ProjectCategory
    priority: Priority = "medium"
    status: ProjectStatus = "draft"
    deadline: date | None = None
    budget: Money | None = None


class ProjectResponse(BaseModel):
    id: str
    name: str
    status: str
    priority: str
    category: str
    client_id: str
    deadline: str | None
    progress: int
    budget: Money | None
    actual_cost: Money
    is_overdue: bool
    days_remaining: int | None
    completed_date: str | None = None
    task_count: int = 0
    completed_task_count: int = 0


class ProjectStatusUpdate(BaseModel):
    status: ProjectStatus
