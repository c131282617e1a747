# app/messaging/publisher.py
"""
Kafka publishers for outbound shipping events and dead-lettered messages.

Both wait for the broker acknowledgement before returning and never retry
internally: a failed send surfaces to the caller as an exception.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from kafka import KafkaProducer
from kafka.errors import KafkaError

from app.core.config import settings
from app.core.exceptions import DeadLetterError, EventPublishError
from app.messaging import codec
from app.schemas.events import EventEnvelope

logger = logging.getLogger(__name__)

Headers = List[Tuple[str, bytes]]


def create_producer() -> KafkaProducer:
    return KafkaProducer(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS.split(","),
        key_serializer=lambda k: k.encode("utf-8") if k else None,
        acks="all",  # Wait for all replicas
        retries=0,
        request_timeout_ms=settings.KAFKA_REQUEST_TIMEOUT_MS,
    )


class KafkaPublisher:
    """Shared lazy producer and blocking send."""

    def __init__(self, producer: Optional[KafkaProducer] = None):
        self._producer = producer

    def _get_producer(self) -> KafkaProducer:
        """Get or create Kafka producer with lazy initialization."""
        if self._producer is None:
            try:
                self._producer = create_producer()
                logger.info("Kafka producer connected")
            except KafkaError as e:
                logger.error(f"Failed to connect to Kafka: {e}")
                raise
        return self._producer

    def _send(
        self,
        topic: str,
        value: bytes,
        key: Optional[str] = None,
        headers: Optional[Headers] = None,
    ):
        """Send and block until the broker acknowledges. Raises KafkaError."""
        producer = self._get_producer()
        future = producer.send(topic, value=value, key=key, headers=headers or [])
        return future.get(timeout=settings.KAFKA_PUBLISH_TIMEOUT_SECONDS)

    def close(self) -> None:
        """Close Kafka producer."""
        if self._producer:
            self._producer.flush()
            self._producer.close()
            self._producer = None
            logger.info("Kafka producer closed")


class ShippingEventPublisher(KafkaPublisher):
    """
    Publishes envelopes to the events topic.

    The routing key travels as a `routing_key` header and the envelope's
    partition key is the Kafka message key, so every event of one partition
    lands on the same Kafka partition in order.
    """

    def __init__(
        self,
        producer: Optional[KafkaProducer] = None,
        topic: str = settings.EVENTS_TOPIC,
        routing_key: str = settings.SHIPPING_CREATED_ROUTING_KEY,
    ):
        super().__init__(producer)
        self.topic = topic
        self.routing_key = routing_key

    def publish(self, envelope: EventEnvelope) -> None:
        headers = [
            ("routing_key", self.routing_key.encode("utf-8")),
            ("event_name", envelope.eventName.encode("utf-8")),
            ("event_version", str(envelope.eventVersion).encode("utf-8")),
        ]
        try:
            self._send(
                self.topic,
                codec.encode(envelope),
                key=envelope.partitionKey or None,
                headers=headers,
            )
        except KafkaError as e:
            logger.error(
                f"Failed to publish {envelope.eventName} {envelope.eventId} to {self.topic}: {e}"
            )
            raise EventPublishError(self.topic, str(e)) from e

        logger.info(
            f"Published {envelope.eventName} {envelope.eventId} to {self.topic} "
            f"(partition key '{envelope.partitionKey}', sequence {envelope.sequence})"
        )


class DeadLetterPublisher(KafkaPublisher):
    """Writes rejected inbound messages verbatim to the dead-letter topic."""

    def __init__(
        self,
        producer: Optional[KafkaProducer] = None,
        topic: str = settings.DEAD_LETTER_TOPIC,
    ):
        super().__init__(producer)
        self.topic = topic

    def dead_letter(self, record, reason: str) -> None:
        headers = [
            ("dlq_reason", reason.encode("utf-8", errors="replace")),
            ("original_topic", record.topic.encode("utf-8")),
            ("original_partition", str(record.partition).encode("utf-8")),
            ("original_offset", str(record.offset).encode("utf-8")),
        ]
        headers.extend(_original_headers(record.headers))
        key = record.key.decode("utf-8", errors="replace") if record.key else None
        try:
            self._send(self.topic, record.value, key=key, headers=headers)
        except KafkaError as e:
            raise DeadLetterError(self.topic, str(e)) from e


def _original_headers(headers: Optional[Iterable[Tuple[str, bytes]]]) -> Headers:
    return [(name, value) for name, value in (headers or []) if not name.startswith("dlq_")]


# Singleton instances
_shipping_publisher: Optional[ShippingEventPublisher] = None
_dead_letter_publisher: Optional[DeadLetterPublisher] = None


def get_shipping_publisher() -> ShippingEventPublisher:
    """Get or create the shipping event publisher singleton."""
    global _shipping_publisher
    if _shipping_publisher is None:
        _shipping_publisher = ShippingEventPublisher()
    return _shipping_publisher


def get_dead_letter_publisher() -> DeadLetterPublisher:
    """Get or create the dead-letter publisher singleton."""
    global _dead_letter_publisher
    if _dead_letter_publisher is None:
        _dead_letter_publisher = DeadLetterPublisher()
    return _dead_letter_publisher
