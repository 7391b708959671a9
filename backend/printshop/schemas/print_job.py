from datetime import datetime

from pydantic import BaseModel, Field

from printshop.schemas.common import Currency, Machine, Priority, PrintJobStatus


class CostInput(BaseModel):
    materials: float = Field(default=0, ge=0)
    labor: float = Field(default=0, ge=0)
    overhead: float = Field(default=0, ge=0)

    model_config = {"allow_inf_nan": False}


class CostUpdate(BaseModel):
    materials: float | None = Field(default=None, ge=0)
    labor: float | None = Field(default=None, ge=0)
    overhead: float | None = Field(default=None, ge=0)

    model_config = {"allow_inf_nan": False}


class PrintJobCreate(BaseModel):
    project_id: str
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    machine: Machine
    priority: Priority = "medium"
    operator_id: str | None = None
    quantity_ordered: int = Field(ge=1)
    file_ids: list[str] = []
    cost: CostInput = CostInput()
    currency: Currency = "AED"
    scheduled_start: datetime | None = None
    estimated_completion: datetime | None = None


class ProductionCounts(BaseModel):
    printed: int = Field(ge=0)
    approved: int = Field(default=0, ge=0)
    rejected: int = Field(default=0, ge=0)


class TransitionRequest(BaseModel):
    target: PrintJobStatus
    override: bool = False


class Cost(BaseModel):
    materials: float
    labor: float
    overhead: float
    total: float
    currency: str


class Quantity(BaseModel):
    ordered: int
    printed: int
    approved: int
    rejected: int


class PrintJobResponse(BaseModel):
    id: str
    job_number: str
    project_id: str
    title: str
    status: str
    machine: str
    progress: int
    quantity: Quantity
    cost: Cost
    actual_start: str | None
    actual_completion: str | None
    quality_verdict: str | None = None
    pass_rate: float | None = None
