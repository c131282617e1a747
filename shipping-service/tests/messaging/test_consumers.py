from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.core.exceptions import DeadLetterError
from app.core.worker_pool import WorkerPool
from app.messaging.consumers import DeadLetterConsumer, OrderCompletedConsumer
from app.messaging.dispatcher import DispatchOutcome


def record(partition, offset, value=b"{}"):
    return SimpleNamespace(
        topic="order.completed", partition=partition, offset=offset, key=None, value=value, headers=[]
    )


@pytest.fixture
def pool():
    pool = WorkerPool(num_workers=2, queue_size=4, name="test")
    pool.start()
    yield pool
    pool.stop(timeout=5)


def test_batch_is_dispatched_then_committed(pool):
    kafka_consumer = MagicMock()
    kafka_consumer.poll.return_value = {
        "tp0": [record(0, 0), record(0, 1)],
        "tp1": [record(1, 0)],
    }
    dispatcher = MagicMock()
    dispatcher.dispatch.side_effect = [
        DispatchOutcome.ACK,
        DispatchOutcome.DEAD_LETTER,
        DispatchOutcome.ACK,
    ]

    counts = OrderCompletedConsumer(kafka_consumer, dispatcher, pool).poll_once()

    assert counts == {DispatchOutcome.ACK: 2, DispatchOutcome.DEAD_LETTER: 1}
    assert dispatcher.dispatch.call_count == 3
    kafka_consumer.commit.assert_called_once()


def test_records_of_one_partition_are_dispatched_in_order(pool):
    kafka_consumer = MagicMock()
    kafka_consumer.poll.return_value = {"tp0": [record(0, offset) for offset in range(10)]}
    seen = []
    dispatcher = MagicMock()
    dispatcher.dispatch.side_effect = lambda r: seen.append(r.offset) or DispatchOutcome.ACK

    OrderCompletedConsumer(kafka_consumer, dispatcher, pool).poll_once()

    assert seen == list(range(10))


def test_empty_poll_does_not_commit(pool):
    kafka_consumer = MagicMock()
    kafka_consumer.poll.return_value = {}

    OrderCompletedConsumer(kafka_consumer, MagicMock(), pool).poll_once()

    kafka_consumer.commit.assert_not_called()


def test_failed_dead_letter_leaves_offsets_uncommitted(pool):
    kafka_consumer = MagicMock()
    kafka_consumer.poll.return_value = {"tp0": [record(0, 0), record(0, 1)]}
    dispatcher = MagicMock()
    dispatcher.dispatch.side_effect = [
        DeadLetterError("shipping-service.dlq", "timed out"),
        DispatchOutcome.ACK,
    ]

    with pytest.raises(DeadLetterError):
        OrderCompletedConsumer(kafka_consumer, dispatcher, pool).poll_once()

    assert dispatcher.dispatch.call_count == 2
    kafka_consumer.commit.assert_not_called()


def test_run_stops_pool_and_closes_consumer_on_error():
    pool = MagicMock()
    kafka_consumer = MagicMock()
    kafka_consumer.poll.side_effect = RuntimeError("broker gone")

    with pytest.raises(RuntimeError):
        OrderCompletedConsumer(kafka_consumer, MagicMock(), pool).run()

    pool.stop.assert_called_once()
    kafka_consumer.close.assert_called_once()


def test_dead_letter_consumer_observes_and_commits():
    kafka_consumer = MagicMock()
    kafka_consumer.poll.return_value = {"tp0": [record(0, 0, b"\xff"), record(0, 1)]}
    observer = MagicMock()

    seen = DeadLetterConsumer(kafka_consumer, observer).poll_once()

    assert seen == 2
    assert observer.observe.call_count == 2
    kafka_consumer.commit.assert_called_once()
