from printshop.models.project import Project
from printshop.models.task import Task, Subtask, task_dependencies
from printshop.models.file import File
from printshop.models.print_job import PrintJob, print_job_files
from printshop.models.quality_check import QualityCheck, QualityCriterion
from printshop.models.invoice import Invoice, InvoiceItem, Payment
from printshop.models.sequence import SequenceCounter
from printshop.models.event import WorkflowEvent

__all__ = [
    "Project", "Task", "Subtask", "task_dependencies", "File", "PrintJob",
    "print_job_files", "QualityCheck", "QualityCriterion", "Invoice",
    "InvoiceItem", "Payment", "SequenceCounter", "WorkflowEvent",
]
