# app/models/processed_event.py
from sqlalchemy import Column, String, DateTime, Uuid
from app.db.base_class import Base


class ProcessedEvent(Base):
    """Idempotency marker: one row per inbound event id already acted upon."""

    __tablename__ = "processed_events"

    event_id = Column(Uuid, primary_key=True)
    event_name = Column(String, nullable=False)  # e.g., "OrderCompleted"
    processed_at = Column(DateTime(timezone=True), nullable=False)
