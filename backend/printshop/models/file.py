import math

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from printshop.database import Base

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "bmp", "webp", "svg"}


class File(Base):
    __tablename__ = "files"

    id = Column(Text, primary_key=True)
    original_name = Column(Text, nullable=False)
    # Opaque reference owned by the storage collaborator, stored verbatim.
    storage_url = Column(Text, nullable=False)
    storage_object_id = Column(Text, nullable=False)
    mime_type = Column(Text, nullable=False)
    size_bytes = Column(Integer, nullable=False)
    category = Column(Text, nullable=False, default="other")
    project_id = Column(Text, ForeignKey("projects.id", ondelete="SET NULL"))
    task_id = Column(Text, ForeignKey("tasks.id", ondelete="SET NULL"))
    uploaded_by = Column(Text, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    parent_file_id = Column(Text, ForeignKey("files.id"))
    root_file_id = Column(Text, nullable=False)
    is_latest_version = Column(Boolean, nullable=False, default=True)
    approval_status = Column(Text, nullable=False, default="pending")
    approved_by = Column(Text)
    approved_at = Column(Text)
    approval_comments = Column(Text)
    access_level = Column(Text, nullable=False, default="client")
    row_version = Column(Integer, nullable=False)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    project = relationship("Project", back_populates="files")
    parent = relationship("File", remote_side=[id])

    __mapper_args__ = {"version_id_col": row_version}

    @property
    def extension(self) -> str:
        return self.original_name.rsplit(".", 1)[-1].lower()

    @property
    def is_image(self) -> bool:
        return self.extension in IMAGE_EXTENSIONS

    @property
    def formatted_size(self) -> str:
        if not self.size_bytes:
            return "0 Bytes"
        units = ["Bytes", "KB", "MB", "GB"]
        i = min(int(math.floor(math.log(self.size_bytes, 1024))), len(units) - 1)
        value = round(self.size_bytes / 1024 ** i, 2)
        return f"{value:g} {units[i]}"
