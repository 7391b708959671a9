from sqlalchemy import JSON, Boolean, Column, Float, ForeignKey, Integer, Text
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from printshop.database import Base


class QualityCheck(Base):
    __tablename__ = "quality_checks"

    id = Column(Text, primary_key=True)
    print_job_id = Column(Text, ForeignKey("print_jobs.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    inspector_id = Column(Text, nullable=False)
    check_type = Column(Text, nullable=False)
    sample_size = Column(Integer, nullable=False)
    overall_status = Column(Text, nullable=False)
    defect_count = Column(Integer, nullable=False, default=0)
    pass_rate = Column(Float)
    notes = Column(Text)
    recommendations = Column(Text)
    follow_up_required = Column(Boolean, nullable=False, default=False)
    follow_up_date = Column(Text)
    created_at = Column(Text, nullable=False)

    print_job = relationship("PrintJob", back_populates="quality_checks")
    criteria = relationship(
        "QualityCriterion",
        back_populates="quality_check",
        order_by="QualityCriterion.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )


class QualityCriterion(Base):
    __tablename__ = "quality_criteria"

    id = Column(Text, primary_key=True)
    quality_check_id = Column(
        Text, ForeignKey("quality_checks.id", ondelete="CASCADE"), nullable=False
    )
    position = Column(Integer, nullable=False)
    parameter = Column(Text, nullable=False)
    status = Column(Text, nullable=False)
    notes = Column(Text)
    evidence = Column(JSON, default=list)  # storage URLs

    quality_check = relationship("QualityCheck", back_populates="criteria")
