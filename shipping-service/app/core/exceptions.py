# app/core/exceptions.py
"""
Custom exception hierarchy for the Shipping Service.
All exceptions inherit from ShippingServiceError for consistent handling.
"""

from typing import Optional


class ShippingServiceError(Exception):
    """Base exception for all shipping service errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "SHIPPING_ERROR",
        details: Optional[dict] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# ===========================================
# Codec Exceptions
# ===========================================


class EventCodecError(ShippingServiceError):
    """Base exception for envelope encoding/decoding errors."""

    def __init__(self, message: str, error_code: str = "CODEC_ERROR", **kwargs):
        super().__init__(message, error_code=error_code, **kwargs)


class EventDecodeError(EventCodecError):
    """The message body is not a well-formed envelope for the expected event."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, error_code="EVENT_DECODE_ERROR", details=details)


class EventShapeMismatch(EventCodecError):
    """
    The envelope names an event/version other than the one requested.

    Not a failure: consumers acknowledge and drop these messages.
    """

    def __init__(self, event_name: Optional[str], event_version: Optional[int]):
        self.event_name = event_name
        self.event_version = event_version
        super().__init__(
            message=f"Unexpected event shape {event_name} v{event_version}",
            error_code="EVENT_SHAPE_MISMATCH",
            details={"event_name": event_name, "event_version": event_version},
        )


# ===========================================
# Messaging Exceptions
# ===========================================


class EventPublishError(ShippingServiceError):
    """The broker did not acknowledge an outbound event."""

    def __init__(self, topic: str, reason: str):
        self.topic = topic
        super().__init__(
            message=f"Failed to publish to {topic}: {reason}",
            error_code="EVENT_PUBLISH_FAILED",
            details={"topic": topic},
        )


class DeadLetterError(ShippingServiceError):
    """A rejected message could not be written to the dead-letter topic."""

    def __init__(self, topic: str, reason: str):
        self.topic = topic
        super().__init__(
            message=f"Failed to dead-letter message to {topic}: {reason}",
            error_code="DEAD_LETTER_FAILED",
            details={"topic": topic},
        )


# ===========================================
# Storage Exceptions
# ===========================================


class SequenceAllocationError(ShippingServiceError):
    """A sequence number could not be allocated for a partition key."""

    def __init__(self, partition_key: str, reason: str):
        self.partition_key = partition_key
        super().__init__(
            message=f"Cannot allocate sequence for '{partition_key}': {reason}",
            error_code="SEQUENCE_ALLOCATION_FAILED",
            details={"partition_key": partition_key},
        )
