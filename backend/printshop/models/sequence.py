from sqlalchemy import Column, Integer, Text
from printshop.database import Base


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    kind = Column(Text, primary_key=True)
    year = Column(Integer, primary_key=True)
    value = Column(Integer, nullable=False)
