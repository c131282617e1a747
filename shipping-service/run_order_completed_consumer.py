#!/usr/bin/env python3
"""
Order Completed Consumer Service

Listens for OrderCompleted events on Kafka, creates one shipment per order in
PostgreSQL, and publishes a ShippingCreated event for every new shipment.
Records that fail processing are copied to the dead-letter topic.
"""
import logging
import os
import sys

# Add the app directory to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app import models
from app.core.config import settings
from app.core.worker_pool import WorkerPool
from app.db.base_class import Base
from app.db.session import SessionLocal, engine
from app.messaging.consumers import OrderCompletedConsumer, create_consumer
from app.messaging.dispatcher import OrderCompletedDispatcher
from app.messaging.publisher import get_dead_letter_publisher, get_shipping_publisher
from app.services.shipping_workflow import ShippingWorkflow

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='[%(asctime)s] [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def run_consumer():
    """
    Main consumer loop for order completed events.
    """
    logger.info("Order Completed Consumer Service Starting...")
    logger.info(f"Kafka Bootstrap Servers: {settings.KAFKA_BOOTSTRAP_SERVERS}")
    logger.info(f"Topic: {settings.ORDER_COMPLETED_TOPIC} (group {settings.CONSUMER_GROUP_ID})")
    logger.info(f"Dead-letter topic: {settings.DEAD_LETTER_TOPIC}")

    Base.metadata.create_all(bind=engine)

    shipping_publisher = get_shipping_publisher()
    dead_letter_publisher = get_dead_letter_publisher()
    workflow = ShippingWorkflow(session_factory=SessionLocal, publisher=shipping_publisher)
    dispatcher = OrderCompletedDispatcher(workflow, dead_letter_publisher)

    pool = WorkerPool(
        num_workers=settings.WORKER_POOL_SIZE,
        queue_size=settings.WORKER_QUEUE_SIZE,
        name="order_completed",
    )
    pool.start()

    consumer = OrderCompletedConsumer(
        create_consumer(settings.ORDER_COMPLETED_TOPIC, settings.CONSUMER_GROUP_ID),
        dispatcher,
        pool,
    )

    try:
        consumer.run()
    except KeyboardInterrupt:
        logger.info("Shutting down order completed consumer...")
    except Exception as e:
        logger.error(f"Consumer error: {e}", exc_info=True)
        raise
    finally:
        shipping_publisher.close()
        dead_letter_publisher.close()


if __name__ == "__main__":
    run_consumer()
