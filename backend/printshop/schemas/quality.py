from datetime import date

from pydantic import BaseModel, Field

from printshop.schemas.common import (
    CheckType,
    CriterionParameter,
    CriterionStatus,
    QualityVerdictStatus,
)


class CriterionInput(BaseModel):
    parameter: CriterionParameter
    status: CriterionStatus
    notes: str | None = None
    evidence: list[str] = []


class QualityCheckCreate(BaseModel):
    inspector_id: str
    check_type: CheckType
    sample_size: int = Field(ge=1)
    criteria: list[CriterionInput] = []
    overall_status: QualityVerdictStatus
    defect_count: int = Field(default=0, ge=0)
    # Supplied by the inspector; only the range is checked.
    pass_rate: float | None = Field(default=None, ge=0, le=100)
    notes: str | None = None
    recommendations: str | None = None
    follow_up_required: bool = False
    follow_up_date: date | None = None

    model_config = {"allow_inf_nan": False}


class QualityCheckResponse(BaseModel):
    id: str
    print_job_id: str
    check_type: str
    overall_status: str
    pass_rate: float | None
    defect_count: int
    created_at: str

    model_config = {"from_attributes": True}


class QualityVerdict(BaseModel):
    status: QualityVerdictStatus
    # Advisory only; completion is gated on status.
    pass_rate: float | None = None
    check_id: str | None = None
