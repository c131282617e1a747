# app/models/event_sequence.py
from sqlalchemy import Column, String, BigInteger
from app.db.base_class import Base


class EventSequence(Base):
    """Per-partition counter for outbound event sequence numbers."""

    __tablename__ = "event_sequences"

    partition_key = Column(String(200), primary_key=True)
    # The value the next allocation will return. Starts at 1.
    next_sequence = Column(BigInteger, nullable=False, default=1)
