import logging
import uuid
from unittest.mock import MagicMock

import pytest

from app.core.exceptions import DeadLetterError, EventPublishError
from app.messaging.dispatcher import DeadLetterObserver, DispatchOutcome, OrderCompletedDispatcher
from app.models.processed_event import ProcessedEvent
from app.models.shipment import Shipment
from app.services.shipping_workflow import ShippingWorkflow


@pytest.fixture
def dispatcher(session_factory, publisher, dead_letter_publisher):
    workflow = ShippingWorkflow(session_factory=session_factory, publisher=publisher)
    return OrderCompletedDispatcher(workflow, dead_letter_publisher)


def test_success_is_acknowledged(dispatcher, dead_letter_publisher, make_record, order_completed_body):
    outcome = dispatcher.dispatch(make_record(order_completed_body()))

    assert outcome == DispatchOutcome.ACK
    dead_letter_publisher.dead_letter.assert_not_called()


def test_unknown_shape_is_acknowledged_not_dead_lettered(
    dispatcher, publisher, dead_letter_publisher, db_session, make_record, order_completed_body
):
    outcome = dispatcher.dispatch(make_record(order_completed_body(event_version=2)))

    assert outcome == DispatchOutcome.ACK
    dead_letter_publisher.dead_letter.assert_not_called()
    publisher.publish.assert_not_called()
    assert db_session.query(Shipment).count() == 0
    assert db_session.query(ProcessedEvent).count() == 0


def test_duplicate_is_acknowledged(dispatcher, publisher, dead_letter_publisher, make_record, order_completed_body):
    body = order_completed_body(event_id=uuid.uuid4())

    assert dispatcher.dispatch(make_record(body, offset=1)) == DispatchOutcome.ACK
    assert dispatcher.dispatch(make_record(body, offset=2)) == DispatchOutcome.ACK

    assert publisher.publish.call_count == 1
    dead_letter_publisher.dead_letter.assert_not_called()


def test_malformed_message_is_dead_lettered(dispatcher, dead_letter_publisher, make_record):
    record = make_record(b"{not json", offset=9)

    outcome = dispatcher.dispatch(record)

    assert outcome == DispatchOutcome.DEAD_LETTER
    dead_letter_publisher.dead_letter.assert_called_once()
    args, kwargs = dead_letter_publisher.dead_letter.call_args
    assert args[0] is record
    assert kwargs["reason"].startswith("EventDecodeError")


def test_publish_failure_is_dead_lettered_with_nothing_persisted(
    dispatcher, publisher, dead_letter_publisher, db_session, make_record, order_completed_body
):
    publisher.publish.side_effect = EventPublishError("events", "broker unavailable")

    outcome = dispatcher.dispatch(make_record(order_completed_body()))

    assert outcome == DispatchOutcome.DEAD_LETTER
    dead_letter_publisher.dead_letter.assert_called_once()
    assert db_session.query(Shipment).count() == 0
    assert db_session.query(ProcessedEvent).count() == 0


def test_dead_letter_failure_propagates(dispatcher, dead_letter_publisher, make_record):
    dead_letter_publisher.dead_letter.side_effect = DeadLetterError(
        "shipping-service.dlq", "timed out"
    )

    with pytest.raises(DeadLetterError):
        dispatcher.dispatch(make_record(b"garbage"))


def test_observer_logs_size_reason_and_payload(make_record, caplog):
    record = make_record(
        b'{"eventName": "OrderCompleted"}',
        topic="shipping-service.dlq",
        offset=3,
        headers=[
            ("dlq_reason", b"EventDecodeError: bad"),
            ("original_topic", b"order.completed"),
            ("original_partition", b"1"),
            ("original_offset", b"42"),
        ],
    )

    with caplog.at_level(logging.ERROR, logger="app.messaging.dispatcher"):
        DeadLetterObserver().observe(record)

    message = caplog.records[-1].getMessage()
    assert "size=31 bytes" in message
    assert "reason=EventDecodeError: bad" in message
    assert "order.completed[1]@42" in message
    assert '{"eventName": "OrderCompleted"}' in message


@pytest.mark.parametrize("value", [b"\xff\xfe\x00binary", b"", None])
def test_observer_never_raises_on_malformed_payloads(make_record, caplog, value):
    record = MagicMock(topic="shipping-service.dlq", partition=0, offset=0, value=value, headers=None)

    with caplog.at_level(logging.ERROR, logger="app.messaging.dispatcher"):
        DeadLetterObserver().observe(record)

    assert "Dead-lettered message" in caplog.records[-1].getMessage()


@pytest.mark.parametrize(
    "body",
    [
        b'{"eventVersion": 1, "payload": {}}',
        b'{"eventName": "OrderCompleted", "payload": {}}',
        b'{"eventName": null, "eventVersion": null}',
    ],
)
def test_envelope_without_name_or_version_is_dead_lettered(
    dispatcher, publisher, dead_letter_publisher, make_record, body
):
    outcome = dispatcher.dispatch(make_record(body))

    assert outcome == DispatchOutcome.DEAD_LETTER
    dead_letter_publisher.dead_letter.assert_called_once()
    publisher.publish.assert_not_called()
