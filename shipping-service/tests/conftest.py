# tests/conftest.py

import json
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app import models  # noqa: F401
from app.db.base_class import Base


# --- Test Database Setup ---
# A file-backed SQLite database per test. Connections are shared across
# threads so the allocator can be exercised concurrently.
@pytest.fixture(scope="function")
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'shipping_test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


# --- Mock Dependencies Setup ---
@pytest.fixture
def publisher():
    """A shipping publisher that records what it was asked to send."""
    return MagicMock()


@pytest.fixture
def dead_letter_publisher():
    mock = MagicMock()
    mock.topic = "shipping-service.dlq"
    return mock


# --- Message Builders ---
@pytest.fixture
def order_completed_body():
    """Builds a serialized OrderCompleted envelope."""

    def build(
        event_id=None,
        order_id=None,
        user_id=None,
        partition_key="",
        event_name="OrderCompleted",
        event_version=1,
        correlation_id=None,
        omit_event_id=False,
    ) -> bytes:
        envelope = {
            "eventName": event_name,
            "eventVersion": event_version,
            "correlationId": str(correlation_id) if correlation_id else None,
            "producer": "order-service",
            "partitionKey": partition_key,
            "occurredAt": datetime.now(timezone.utc).isoformat(),
            "schema": "contracts/events/order/OrderCompleted.v1.payload.schema.json",
            "payload": {
                "orderId": str(order_id or uuid.uuid4()),
                "userId": str(user_id or uuid.uuid4()),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        }
        if not omit_event_id:
            envelope["eventId"] = str(event_id or uuid.uuid4())
        return json.dumps(envelope).encode("utf-8")

    return build


@pytest.fixture
def make_record():
    """Builds an object shaped like a kafka-python ConsumerRecord."""

    def build(value: bytes, topic="order.completed", partition=0, offset=0, key=None, headers=None):
        return SimpleNamespace(
            topic=topic,
            partition=partition,
            offset=offset,
            key=key,
            value=value,
            headers=headers or [],
        )

    return build
