#app/schemas/events.py
from datetime import datetime, timezone
from typing import Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

P = TypeVar("P")

UINT64_MAX = 2**64 - 1


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps on the wire are taken to be UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# --- Envelope ---


class EnvelopeHeader(BaseModel):
    """Just enough of an envelope to decide which payload type to expect."""

    eventName: str
    eventVersion: int


class EventEnvelope(BaseModel, Generic[P]):
    model_config = ConfigDict(populate_by_name=True)

    eventName: str
    eventVersion: int = Field(gt=0)
    eventId: Optional[UUID] = None

    correlationId: Optional[UUID] = None
    causationId: Optional[UUID] = None

    producer: str
    partitionKey: str = ""
    sequence: Optional[int] = Field(default=None, ge=0, le=UINT64_MAX)

    occurredAt: datetime
    schemaRef: str = Field(alias="schema")

    payload: P

    @field_validator("occurredAt")
    @classmethod
    def occurred_at_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


# --- Input Schemas ---


class OrderCompletedPayload(BaseModel):
    orderId: UUID
    userId: UUID
    timestamp: datetime


# --- Output Schemas ---


class Address(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line1: str
    line2: Optional[str] = None
    city: str
    state: str
    postalCode: str
    country: str


class ShippingCreatedPayload(BaseModel):
    shippingId: UUID
    orderId: UUID
    userId: UUID
    address: Address
    shippingMethod: str
    carrier: str
    createdAt: datetime

    @field_validator("createdAt")
    @classmethod
    def created_at_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


ORDER_COMPLETED = ("OrderCompleted", 1)
SHIPPING_CREATED = ("ShippingCreated", 1)

SHIPPING_CREATED_SCHEMA = "contracts/events/shipping/ShippingCreated.v1.payload.schema.json"

# (eventName, eventVersion) -> payload model
EVENT_PAYLOAD_TYPES = {
    ORDER_COMPLETED: OrderCompletedPayload,
    SHIPPING_CREATED: ShippingCreatedPayload,
}
