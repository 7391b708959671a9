"""
File version chain and approval sub-state.

Every chain has exactly one record with ``is_latest_version`` set and it holds
the highest version number. Approval is tracked per record and is not carried
over to new versions.
"""
import uuid
from datetime import datetime

from printshop.errors import IllegalTransition, ValidationError
from printshop.models.file import File
from printshop.schemas.file import FileUpload
from printshop.utils.timestamps import to_iso

APPROVAL_STATUSES = ("pending", "approved", "rejected", "needs-revision")


def new_file(upload: FileUpload, now: datetime) -> File:
    file_id = str(uuid.uuid4())
    stamp = to_iso(now)
    return File(
        id=file_id,
        original_name=upload.original_name,
        storage_url=upload.storage.url,
        storage_object_id=upload.storage.object_id,
        mime_type=upload.storage.mime_type,
        size_bytes=upload.storage.size_bytes,
        category=upload.category,
        project_id=upload.project_id,
        task_id=upload.task_id,
        uploaded_by=upload.uploaded_by,
        version=1,
        parent_file_id=None,
        root_file_id=file_id,
        is_latest_version=True,
        approval_status="pending",
        access_level=upload.access_level,
        created_at=stamp,
        updated_at=stamp,
    )


def create_version(parent: File, upload: FileUpload, now: datetime) -> File:
    """Build the successor of ``parent`` and demote ``parent`` in place.

    The caller must persist both records in one transaction; the parent's
    ``row_version`` guards against a concurrent successor.
    """
    if not parent.is_latest_version:
        raise IllegalTransition(
            "File", f"v{parent.version}", f"v{parent.version + 1}",
            "only the latest version can be superseded",
        )
    child = new_file(upload, now)
    child.version = parent.version + 1
    child.parent_file_id = parent.id
    child.root_file_id = parent.root_file_id or parent.id
    # Lineage attributes follow the chain, not the upload.
    child.project_id = parent.project_id
    child.task_id = parent.task_id
    child.category = parent.category
    child.access_level = parent.access_level

    parent.is_latest_version = False
    parent.updated_at = to_iso(now)
    return child


def set_approval(
    file: File,
    status: str,
    approver: str,
    now: datetime,
    comments: str | None = None,
) -> str:
    """Update only the approval fields. Returns the previous approval status."""
    if status not in APPROVAL_STATUSES:
        raise ValidationError(f"Unknown approval status '{status}'")
    previous = file.approval_status
    file.approval_status = status
    file.approved_by = approver
    file.approved_at = to_iso(now)
    file.approval_comments = comments
    file.updated_at = to_iso(now)
    return previous


def latest_in_chain(files: list[File]) -> File | None:
    latest = [f for f in files if f.is_latest_version]
    if len(latest) != 1:
        return None
    return latest[0]
