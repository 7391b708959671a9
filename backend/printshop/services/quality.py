from printshop.models.quality_check import QualityCheck
from printshop.schemas.quality import QualityVerdict


def latest_check(checks: list[QualityCheck]) -> QualityCheck | None:
    """Most recent check by ``created_at``; ties go to the later one in the list."""
    if not checks:
        return None
    indexed = list(enumerate(checks))
    return max(indexed, key=lambda pair: (pair[1].created_at or "", pair[0]))[1]


def aggregate(checks: list[QualityCheck]) -> QualityVerdict | None:
    latest = latest_check(checks)
    if latest is None:
        return None
    if latest.overall_status in ("approved", "rejected"):
        status = latest.overall_status
    else:
        status = "conditional"
    return QualityVerdict(status=status, pass_rate=latest.pass_rate, check_id=latest.id)
