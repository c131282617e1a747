# app/crud/crud_processed_event.py
import uuid
from datetime import datetime

from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.processed_event import ProcessedEvent


class CRUDProcessedEvent(CRUDBase[ProcessedEvent]):
    """Idempotency ledger for inbound events."""

    def exists(self, db: Session, *, event_id: uuid.UUID) -> bool:
        return (
            db.query(self.model.event_id)
            .filter(self.model.event_id == event_id)
            .first()
            is not None
        )

    def mark_processed(
        self,
        db: Session,
        *,
        event_id: uuid.UUID,
        event_name: str,
        processed_at: datetime,
    ) -> ProcessedEvent:
        db_obj = self.model(
            event_id=event_id, event_name=event_name, processed_at=processed_at
        )
        db.add(db_obj)
        db.flush()
        return db_obj


processed_event = CRUDProcessedEvent(ProcessedEvent)
