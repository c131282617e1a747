# app/messaging/consumers.py
"""
Consumer loops for the inbound order topic and the dead-letter topic.

Offsets are committed manually, once per polled batch, after every record of
the batch has been acknowledged or dead-lettered. A record whose failure
could not be dead-lettered stops the loop before the commit, so the batch is
redelivered instead of lost.
"""

import logging
import threading
from typing import Dict, List

from kafka import KafkaConsumer

from app.core.config import settings
from app.core.worker_pool import WorkerPool
from app.messaging.dispatcher import DeadLetterObserver, DispatchOutcome, OrderCompletedDispatcher

logger = logging.getLogger(__name__)


def create_consumer(topic: str, group_id: str) -> KafkaConsumer:
    """Creates a Kafka consumer with auto-commit disabled."""
    return KafkaConsumer(
        topic,
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS.split(","),
        group_id=group_id,
        enable_auto_commit=False,
        auto_offset_reset="earliest",
        max_poll_records=settings.CONSUMER_MAX_POLL_RECORDS,
    )


def partition_key(record) -> str:
    return f"{record.topic}:{record.partition}"


class OrderCompletedConsumer:
    def __init__(
        self,
        consumer: KafkaConsumer,
        dispatcher: OrderCompletedDispatcher,
        pool: WorkerPool,
        poll_timeout_ms: int = settings.CONSUMER_POLL_TIMEOUT_MS,
    ):
        self.consumer = consumer
        self.dispatcher = dispatcher
        self.pool = pool
        self.poll_timeout_ms = poll_timeout_ms
        self._stop = threading.Event()

    def poll_once(self) -> Dict[DispatchOutcome, int]:
        """
        Polls one batch, dispatches every record on the pool and commits.

        Returns the number of records per outcome.
        """
        batches = self.consumer.poll(timeout_ms=self.poll_timeout_ms)
        records = [record for partition_records in batches.values() for record in partition_records]
        counts = {outcome: 0 for outcome in DispatchOutcome}
        if not records:
            return counts

        futures = [
            self.pool.submit(partition_key(record), self.dispatcher.dispatch, record)
            for record in records
        ]
        # Wait for the whole batch before raising so no handler is still
        # running when the loop stops.
        errors: List[Exception] = []
        for future in futures:
            try:
                counts[future.result()] += 1
            except Exception as e:
                errors.append(e)
        if errors:
            raise errors[0]

        self.consumer.commit()
        logger.info(
            f"Committed batch of {len(records)} record(s): "
            f"{counts[DispatchOutcome.ACK]} acknowledged, "
            f"{counts[DispatchOutcome.DEAD_LETTER]} dead-lettered"
        )
        return counts

    def run(self):
        logger.info(f"Listening for messages on topic(s): {self.consumer.subscription()}")
        try:
            while not self._stop.is_set():
                self.poll_once()
        finally:
            self.pool.stop()
            self.consumer.close()
            logger.info("Order completed consumer stopped")

    def stop(self):
        self._stop.set()


class DeadLetterConsumer:
    """Feeds the dead-letter topic to the observer and commits what it saw."""

    def __init__(
        self,
        consumer: KafkaConsumer,
        observer: DeadLetterObserver,
        poll_timeout_ms: int = settings.CONSUMER_POLL_TIMEOUT_MS,
    ):
        self.consumer = consumer
        self.observer = observer
        self.poll_timeout_ms = poll_timeout_ms
        self._stop = threading.Event()

    def poll_once(self) -> int:
        batches = self.consumer.poll(timeout_ms=self.poll_timeout_ms)
        seen = 0
        for partition_records in batches.values():
            for record in partition_records:
                self.observer.observe(record)
                seen += 1
        if seen:
            self.consumer.commit()
        return seen

    def run(self):
        logger.info(f"Observing dead-lettered messages on: {self.consumer.subscription()}")
        try:
            while not self._stop.is_set():
                self.poll_once()
        finally:
            self.consumer.close()
            logger.info("Dead-letter observer stopped")

    def stop(self):
        self._stop.set()
