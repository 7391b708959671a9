from sqlalchemy import Column, Float, ForeignKey, Integer, Table, Text
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from printshop.database import Base

print_job_files = Table(
    "print_job_files",
    Base.metadata,
    Column("print_job_id", Text, ForeignKey("print_jobs.id", ondelete="CASCADE"), primary_key=True),
    Column("file_id", Text, ForeignKey("files.id", ondelete="CASCADE"), primary_key=True),
)


class PrintJob(Base):
    __tablename__ = "print_jobs"

    id = Column(Text, primary_key=True)
    job_number = Column(Text, nullable=False, unique=True)
    project_id = Column(Text, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text)
    status = Column(Text, nullable=False, default="pending")
    priority = Column(Text, nullable=False, default="medium")
    machine = Column(Text, nullable=False)
    operator_id = Column(Text)
    quantity_ordered = Column(Integer, nullable=False)
    quantity_printed = Column(Integer, nullable=False, default=0)
    quantity_approved = Column(Integer, nullable=False, default=0)
    quantity_rejected = Column(Integer, nullable=False, default=0)
    cost_materials = Column(Float, nullable=False, default=0.0)
    cost_labor = Column(Float, nullable=False, default=0.0)
    cost_overhead = Column(Float, nullable=False, default=0.0)
    cost_total = Column(Float, nullable=False, default=0.0)
    cost_currency = Column(Text, nullable=False, default="AED")
    scheduled_start = Column(Text)
    actual_start = Column(Text)
    estimated_completion = Column(Text)
    actual_completion = Column(Text)
    progress = Column(Integer, nullable=False, default=0)
    row_version = Column(Integer, nullable=False)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    project = relationship("Project", back_populates="print_jobs")
    files = relationship("File", secondary=print_job_files)
    quality_checks = relationship(
        "QualityCheck",
        back_populates="print_job",
        order_by="QualityCheck.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": row_version}
