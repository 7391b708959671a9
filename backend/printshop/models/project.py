from sqlalchemy import JSON, Column, Float, Integer, Text
from sqlalchemy.orm import relationship
from printshop.database import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    description = Column(Text)
    client_id = Column(Text, nullable=False)
    assigned_to = Column(JSON, default=list)
    status = Column(Text, nullable=False, default="draft")
    priority = Column(Text, nullable=False, default="medium")
    category = Column(Text, nullable=False)
    deadline = Column(Text)
    start_date = Column(Text)
    completed_date = Column(Text)
    budget_amount = Column(Float)
    budget_currency = Column(Text, nullable=False, default="AED")
    actual_cost_amount = Column(Float, nullable=False, default=0.0)
    actual_cost_currency = Column(Text, nullable=False, default="AED")
    progress = Column(Integer, nullable=False, default=0)
    row_version = Column(Integer, nullable=False)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan")
    files = relationship("File", back_populates="project")
    print_jobs = relationship("PrintJob", back_populates="project", cascade="all, delete-orphan")
    invoices = relationship("Invoice", back_populates="project", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": row_version}
