from sqlalchemy import Boolean, Column, Float, ForeignKey, Integer, Table, Text
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from printshop.database import Base

task_dependencies = Table(
    "task_dependencies",
    Base.metadata,
    Column("task_id", Text, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("depends_on_id", Text, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Text, primary_key=True)
    project_id = Column(Text, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text)
    assigned_to = Column(Text)
    created_by = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="todo")
    priority = Column(Text, nullable=False, default="medium")
    category = Column(Text, nullable=False)
    due_date = Column(Text)
    start_date = Column(Text)
    completed_date = Column(Text)
    estimated_hours = Column(Float)
    actual_hours = Column(Float, nullable=False, default=0.0)
    progress = Column(Integer, nullable=False, default=0)
    row_version = Column(Integer, nullable=False)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    project = relationship("Project", back_populates="tasks")
    subtasks = relationship(
        "Subtask",
        back_populates="task",
        order_by="Subtask.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )
    dependencies = relationship(
        "Task",
        secondary=task_dependencies,
        primaryjoin=id == task_dependencies.c.task_id,
        secondaryjoin=id == task_dependencies.c.depends_on_id,
    )

    __mapper_args__ = {"version_id_col": row_version}


class Subtask(Base):
    __tablename__ = "subtasks"

    id = Column(Text, primary_key=True)
    task_id = Column(Text, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    title = Column(Text, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(Text)
    completed_by = Column(Text)

    task = relationship("Task", back_populates="subtasks")
