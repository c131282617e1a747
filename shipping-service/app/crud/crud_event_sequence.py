# app/crud/crud_event_sequence.py
import logging

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from app.core.exceptions import SequenceAllocationError
from app.crud.base import CRUDBase
from app.models.event_sequence import EventSequence

logger = logging.getLogger(__name__)

# Dialects that support INSERT ... ON CONFLICT DO NOTHING
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CRUDEventSequence(CRUDBase[EventSequence]):
    def next(self, db: Session, *, partition_key: str) -> int:
        """
        Allocates the next sequence number for a partition key.

        The counter row is created on first use, then locked (SELECT ... FOR
        UPDATE) for the read-increment-write. The lock is held until the
        caller's transaction ends, so concurrent allocations for the same key
        are serialized across processes while other keys are not blocked.

        The increment only becomes durable when the caller commits; a rollback
        gives the number back.
        """
        if not partition_key:
            raise SequenceAllocationError(partition_key, "partition key is empty")

        dialect = db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise SequenceAllocationError(
                partition_key, f"unsupported database dialect '{dialect}'"
            )

        db.execute(
            insert(self.model)
            .values(partition_key=partition_key, next_sequence=1)
            .on_conflict_do_nothing(index_elements=[self.model.partition_key])
        )

        counter = (
            db.query(self.model)
            .filter(self.model.partition_key == partition_key)
            .with_for_update()
            .populate_existing()
            .one()
        )
        current = counter.next_sequence
        counter.next_sequence = current + 1
        db.flush()

        logger.debug(f"Allocated sequence {current} for partition '{partition_key}'")
        return current


event_sequence = CRUDEventSequence(EventSequence)
