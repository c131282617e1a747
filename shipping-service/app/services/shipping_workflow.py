# app/services/shipping_workflow.py
"""
Turns one OrderCompleted delivery into at most one shipment and one
ShippingCreated event.

Every durable write of a delivery (shipment, sequence counter, processed
marker) happens in a single session and commits together. The publish call
is made after all writes are flushed and immediately before the commit; it
is not covered by the database transaction.
"""

import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from app import crud
from app.core.config import settings
from app.core.exceptions import EventShapeMismatch
from app.db.session import SessionLocal
from app.messaging import codec
from app.messaging.publisher import ShippingEventPublisher, get_shipping_publisher
from app.schemas.events import (
    ORDER_COMPLETED,
    SHIPPING_CREATED,
    SHIPPING_CREATED_SCHEMA,
    Address,
    EventEnvelope,
    OrderCompletedPayload,
    ShippingCreatedPayload,
)

logger = logging.getLogger(__name__)

# Every shipment currently leaves from the same warehouse address.
DEFAULT_ADDRESS = Address(
    line1="123 Market St",
    city="Aarhus",
    state="DK",
    postalCode="8000",
    country="DK",
)


class WorkflowOutcome(str, enum.Enum):
    SHAPE_MISMATCH = "SHAPE_MISMATCH"
    DUPLICATE = "DUPLICATE"
    ALREADY_FULFILLED = "ALREADY_FULFILLED"
    CREATED = "CREATED"


@dataclass
class WorkflowResult:
    outcome: WorkflowOutcome
    event_id: Optional[uuid.UUID] = None
    shipping_id: Optional[uuid.UUID] = None
    sequence: Optional[int] = None


def _log_conflict(retry_state) -> None:
    # A concurrent worker committed the same shipment or marker first; a
    # fresh unit of work will see it and short-circuit.
    envelope = retry_state.args[0]
    logger.warning(
        f"Conflict while processing event {envelope.eventId} for order "
        f"{envelope.payload.orderId}, retrying (attempt {retry_state.attempt_number} failed)"
    )


def resolve_partition_key(envelope: EventEnvelope[OrderCompletedPayload]) -> str:
    if envelope.partitionKey and envelope.partitionKey.strip():
        return envelope.partitionKey
    return str(envelope.payload.orderId)


class ShippingWorkflow:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        publisher: Optional[ShippingEventPublisher] = None,
        conflict_retries: int = settings.UNIT_OF_WORK_CONFLICT_RETRIES,
    ):
        self.session_factory = session_factory
        self.publisher = publisher or get_shipping_publisher()
        self.conflict_retries = conflict_retries

    def handle(self, body: bytes) -> WorkflowResult:
        """
        Processes one inbound message body.

        Returns the outcome for skips and successes. Decode errors, storage
        errors and publish errors propagate to the caller after the unit of
        work has been rolled back.
        """
        event_name, event_version = ORDER_COMPLETED
        try:
            envelope = codec.decode(
                body, event_name=event_name, event_version=event_version
            )
        except EventShapeMismatch as e:
            logger.info(
                f"Ignoring message with unexpected shape {e.event_name} v{e.event_version}"
            )
            return WorkflowResult(outcome=WorkflowOutcome.SHAPE_MISMATCH)

        retrying = Retrying(
            stop=stop_after_attempt(self.conflict_retries + 1),
            retry=retry_if_exception_type(IntegrityError),
            before_sleep=_log_conflict,
            reraise=True,
        )
        return retrying(self._run_unit_of_work, envelope)

    def _run_unit_of_work(
        self, envelope: EventEnvelope[OrderCompletedPayload]
    ) -> WorkflowResult:
        db = self.session_factory()
        try:
            result = self._process(db, envelope)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(
            f"Event {result.event_id} for order {envelope.payload.orderId}: "
            f"{result.outcome.value}"
        )
        return result

    def _process(
        self, db: Session, envelope: EventEnvelope[OrderCompletedPayload]
    ) -> WorkflowResult:
        event_id = envelope.eventId
        order = envelope.payload

        if event_id is not None and crud.processed_event.exists(db, event_id=event_id):
            return WorkflowResult(outcome=WorkflowOutcome.DUPLICATE, event_id=event_id)

        existing = crud.shipment.get_first_by_order_id(db, order_id=order.orderId)
        if existing is not None:
            self._mark_processed(db, envelope)
            return WorkflowResult(
                outcome=WorkflowOutcome.ALREADY_FULFILLED,
                event_id=event_id,
                shipping_id=existing.shipping_id,
            )

        now = datetime.now(timezone.utc)
        shipment = crud.shipment.create_for_order(
            db,
            order_id=order.orderId,
            user_id=order.userId,
            address=DEFAULT_ADDRESS,
            shipping_method=settings.DEFAULT_SHIPPING_METHOD,
            carrier=settings.DEFAULT_CARRIER,
            created_at=now,
        )

        partition_key = resolve_partition_key(envelope)
        sequence = crud.event_sequence.next(db, partition_key=partition_key)

        outbound = self._build_shipping_created(
            envelope, shipment, partition_key, sequence, now
        )
        # Every write is flushed before anything leaves the process.
        self._mark_processed(db, envelope)
        self.publisher.publish(outbound)

        return WorkflowResult(
            outcome=WorkflowOutcome.CREATED,
            event_id=event_id,
            shipping_id=shipment.shipping_id,
            sequence=sequence,
        )

    @staticmethod
    def _mark_processed(db: Session, envelope: EventEnvelope) -> None:
        # Events without an id cannot be deduplicated by id; the
        # one-shipment-per-order check still protects them.
        if envelope.eventId is None:
            return
        crud.processed_event.mark_processed(
            db,
            event_id=envelope.eventId,
            event_name=envelope.eventName,
            processed_at=datetime.now(timezone.utc),
        )

    @staticmethod
    def _build_shipping_created(
        inbound: EventEnvelope[OrderCompletedPayload],
        shipment,
        partition_key: str,
        sequence: int,
        occurred_at: datetime,
    ) -> EventEnvelope[ShippingCreatedPayload]:
        event_name, event_version = SHIPPING_CREATED
        return EventEnvelope[ShippingCreatedPayload](
            eventName=event_name,
            eventVersion=event_version,
            eventId=uuid.uuid4(),
            correlationId=inbound.correlationId,
            causationId=inbound.eventId,
            producer=settings.SERVICE_NAME,
            partitionKey=partition_key,
            sequence=sequence,
            occurredAt=occurred_at,
            schemaRef=SHIPPING_CREATED_SCHEMA,
            payload=ShippingCreatedPayload(
                shippingId=shipment.shipping_id,
                orderId=shipment.order_id,
                userId=shipment.user_id,
                address=Address.model_validate(shipment.address),
                shippingMethod=shipment.shipping_method,
                carrier=shipment.carrier,
                createdAt=shipment.created_at,
            ),
        )
