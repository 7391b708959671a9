"""
Error taxonomy for the workflow core.

Every error is raised before the offending mutation is applied, so an entity
that was handed to a failing operation keeps its previous state.
"""


class WorkflowError(Exception):
    """Base class for all workflow-core rejections."""


class ValidationError(WorkflowError, ValueError):
    """Malformed input, e.g. a negative quantity or an unknown enum value."""


class NotFound(WorkflowError, LookupError):
    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class IllegalTransition(WorkflowError):
    def __init__(self, entity: str, current: str, target: str, reason: str | None = None):
        message = f"{entity} cannot move from '{current}' to '{target}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.current = current
        self.target = target


class QualityGateBlocked(WorkflowError):
    def __init__(self, job_number: str, verdict: str | None):
        super().__init__(
            f"Print job {job_number} cannot complete with quality verdict '{verdict or 'none'}'"
        )
        self.verdict = verdict


class OverPayment(WorkflowError):
    def __init__(
        self, invoice_number: str, amount: float, balance: float, message: str | None = None
    ):
        super().__init__(
            message
            or f"Payment of {amount:.2f} exceeds the outstanding balance {balance:.2f} "
            f"on invoice {invoice_number}"
        )
        self.amount = amount
        self.balance = balance


class InvalidCurrency(WorkflowError):
    pass


class ConcurrencyConflict(WorkflowError):
    pass


class SequenceExhausted(WorkflowError):
    def __init__(self, kind: str, year: int):
        super().__init__(f"No {kind} numbers left for {year}")
        self.kind = kind
        self.year = year
