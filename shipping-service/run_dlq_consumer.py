#!/usr/bin/env python3
"""
Dead-Letter Observer

Logs every message the shipping consumer dead-lettered, with its size,
rejection reason and payload. Performs no business logic.
"""
import logging
import os
import sys

# Add the app directory to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.core.config import settings
from app.messaging.consumers import DeadLetterConsumer, create_consumer
from app.messaging.dispatcher import DeadLetterObserver

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='[%(asctime)s] [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


if __name__ == "__main__":
    consumer = DeadLetterConsumer(
        create_consumer(settings.DEAD_LETTER_TOPIC, settings.DLQ_CONSUMER_GROUP_ID),
        DeadLetterObserver(),
    )
    try:
        consumer.run()
    except KeyboardInterrupt:
        logger.info("Shutting down dead-letter observer...")
