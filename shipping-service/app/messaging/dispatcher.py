# app/messaging/dispatcher.py
"""
Maps workflow results onto Kafka delivery semantics.

Kafka has no per-message reject: "acknowledge" means the record's offset may
be committed, and "reject without requeue" means the record is copied to the
dead-letter topic first and then acknowledged.
"""

import enum
import logging
from typing import Optional

from app.messaging.publisher import DeadLetterPublisher, get_dead_letter_publisher
from app.services.shipping_workflow import ShippingWorkflow

logger = logging.getLogger(__name__)


class DispatchOutcome(str, enum.Enum):
    ACK = "ACK"
    DEAD_LETTER = "DEAD_LETTER"


def describe(record) -> str:
    return f"{record.topic}[{record.partition}]@{record.offset}"


class OrderCompletedDispatcher:
    def __init__(
        self,
        workflow: ShippingWorkflow,
        dead_letter_publisher: Optional[DeadLetterPublisher] = None,
    ):
        self.workflow = workflow
        self.dead_letter_publisher = dead_letter_publisher or get_dead_letter_publisher()

    def dispatch(self, record) -> DispatchOutcome:
        """
        Runs the workflow for one consumer record.

        Raises DeadLetterError when a failed record cannot be dead-lettered;
        its offset must then stay uncommitted.
        """
        try:
            result = self.workflow.handle(record.value)
        except Exception as e:
            logger.error(
                f"Processing failed for {describe(record)}, dead-lettering: {e}",
                exc_info=True,
            )
            self.dead_letter_publisher.dead_letter(
                record, reason=f"{type(e).__name__}: {e}"
            )
            logger.warning(
                f"Record {describe(record)} moved to {self.dead_letter_publisher.topic}"
            )
            return DispatchOutcome.DEAD_LETTER

        logger.debug(f"Record {describe(record)} acknowledged ({result.outcome.value})")
        return DispatchOutcome.ACK


class DeadLetterObserver:
    """
    Records dead-lettered messages for visibility. Performs no business
    logic and never raises on a malformed payload.
    """

    def observe(self, record) -> None:
        value = record.value or b""
        headers = {
            name: header_value.decode("utf-8", errors="replace")
            for name, header_value in (record.headers or [])
            if header_value is not None
        }
        logger.error(
            f"Dead-lettered message {describe(record)}: "
            f"size={len(value)} bytes, reason={headers.get('dlq_reason', 'unknown')}, "
            f"origin={headers.get('original_topic', 'unknown')}"
            f"[{headers.get('original_partition', '?')}]"
            f"@{headers.get('original_offset', '?')}, "
            f"payload={value.decode('utf-8', errors='replace')}"
        )
