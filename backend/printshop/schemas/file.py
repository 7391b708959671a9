from pydantic import BaseModel, Field

from printshop.schemas.common import AccessLevel, ApprovalStatus, FileCategory


class StorageObject(BaseModel):
    """Upload descriptor handed over by the storage collaborator."""

    url: str
    object_id: str = Field(alias="objectId")
    mime_type: str = Field(alias="mimeType")
    size_bytes: int = Field(alias="sizeBytes", ge=0)

    model_config = {"populate_by_name": True}


class FileUpload(BaseModel):
    original_name: str = Field(min_length=1, max_length=255)
    storage: StorageObject
    uploaded_by: str
    category: FileCategory = "other"
    project_id: str | None = None
    task_id: str | None = None
    access_level: AccessLevel = "client"


class ApprovalDecision(BaseModel):
    status: ApprovalStatus
    approver: str
    comments: str | None = Field(default=None, max_length=1000)


class FileResponse(BaseModel):
    id: str
    original_name: str
    version: int
    parent_file_id: str | None
    root_file_id: str
    is_latest_version: bool
    approval_status: str
    approved_by: str | None
    approved_at: str | None
    approval_comments: str | None
    storage_url: str
    mime_type: str
    size_bytes: int
    formatted_size: str
    is_image: bool

    model_config = {"from_attributes": True}
