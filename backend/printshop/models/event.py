from sqlalchemy import JSON, Column, Integer, Text
from printshop.database import Base


class WorkflowEvent(Base):
    __tablename__ = "workflow_events"

    id = Column(Text, primary_key=True)
    event_type = Column(Text, nullable=False)
    entity_type = Column(Text, nullable=False)
    entity_id = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False)
    occurred_at = Column(Text, nullable=False)
    dispatched_at = Column(Text)
    attempts = Column(Integer, nullable=False, default=0)
