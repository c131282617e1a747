# app/messaging/codec.py
"""
Envelope codec for messages on the wire.

Decoding is driven by the (eventName, eventVersion) registry in
app.schemas.events: the header is read first, then the whole body is
validated against the registered payload model.
"""

from pydantic import ValidationError

from app.core.exceptions import EventDecodeError, EventShapeMismatch
from app.schemas.events import EVENT_PAYLOAD_TYPES, EnvelopeHeader, EventEnvelope


def decode(body: bytes, *, event_name: str, event_version: int) -> EventEnvelope:
    """
    Decode a message body into a typed envelope.

    Raises:
        EventShapeMismatch: the body names a different (or unregistered) event/version
        EventDecodeError: the body is not a valid envelope for the requested event
    """
    try:
        header = EnvelopeHeader.model_validate_json(body)
    except ValidationError as e:
        raise EventDecodeError(
            f"Malformed envelope: {e.error_count()} validation error(s)",
            details={"errors": e.errors(include_url=False, include_input=False)},
        ) from e

    requested = (event_name, event_version)
    if (header.eventName, header.eventVersion) != requested:
        raise EventShapeMismatch(header.eventName, header.eventVersion)

    payload_type = EVENT_PAYLOAD_TYPES.get(requested)
    if payload_type is None:
        raise EventShapeMismatch(header.eventName, header.eventVersion)

    try:
        return EventEnvelope[payload_type].model_validate_json(body)
    except ValidationError as e:
        raise EventDecodeError(
            f"Invalid {event_name} v{event_version} envelope: "
            f"{e.error_count()} validation error(s)",
            details={"errors": e.errors(include_url=False, include_input=False)},
        ) from e


def encode(envelope: EventEnvelope) -> bytes:
    return envelope.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
