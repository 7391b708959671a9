from typing import Literal

Currency = Literal["SDG", "AED", "SAR", "EGP", "USD"]
Priority = Literal["low", "medium", "high", "urgent"]

ProjectStatus = Literal["draft", "active", "on-hold", "completed", "cancelled"]
ProjectCategory = Literal[
    "brochure", "business-card", "banner", "poster", "book", "packaging", "other"
]
TaskStatus = Literal["todo", "in-progress", "review", "completed", "cancelled"]
TaskCategory = Literal["design", "review", "printing", "quality-check", "delivery", "other"]

PrintJobStatus = Literal["pending", "in-queue", "printing", "quality-check", "completed", "failed"]
Machine = Literal[
    "offset-press", "digital-press", "large-format", "cutting-machine", "binding-machine"
]

CheckType = Literal["pre-production", "mid-production", "final", "random"]
CriterionParameter = Literal[
    "color-accuracy", "alignment", "cutting", "finishing", "text-clarity", "image-quality", "overall"
]
CriterionStatus = Literal["pass", "fail", "warning"]
QualityVerdictStatus = Literal["approved", "rejected", "conditional"]

InvoiceStatus = Literal["draft", "sent", "viewed", "paid", "overdue", "cancelled"]
InvoiceType = Literal["proforma", "final", "deposit", "partial"]
PaymentMethod = Literal["bank-transfer", "cash", "card", "cheque", "online"]

FileCategory = Literal["design", "proof", "final", "reference", "invoice", "contract", "other"]
ApprovalStatus = Literal["pending", "approved", "rejected", "needs-revision"]
AccessLevel = Literal["public", "client", "internal", "private"]

IdentifierKind = Literal["INV", "PJ"]
