#!/usr/bin/env python3
"""
Kafka Topics Auto-Creation Script
Creates the topics the shipping service reads from and writes to.
Skips topics that already exist.

Usage:
    python create-kafka-topics.py [--partitions N] [--replication-factor N]
"""

import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "shipping-service"))

from kafka.admin import KafkaAdminClient
from kafka.errors import KafkaError

from app.core.config import settings
from app.messaging.topics import ensure_topics, service_topics

logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def create_topics(partitions: int, replication_factor: int):
    """Create all required Kafka topics, skipping ones that already exist."""
    logger.info(f"Connecting to Kafka at {settings.KAFKA_BOOTSTRAP_SERVERS}...")
    try:
        admin = KafkaAdminClient(
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS.split(","),
            client_id="shipping-service-admin",
            request_timeout_ms=settings.KAFKA_REQUEST_TIMEOUT_MS,
        )
    except KafkaError as e:
        logger.error(f"Failed to connect to Kafka: {e}")
        sys.exit(1)

    try:
        topics = service_topics(partitions, replication_factor)
        created = ensure_topics(admin, topics)
        logger.info(
            f"Topics defined: {len(topics)}, created: {len(created)}, "
            f"already present: {len(topics) - len(created)}"
        )
    finally:
        admin.close()


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Create the shipping service Kafka topics")
    parser.add_argument("--partitions", type=int, default=3)
    parser.add_argument("--replication-factor", type=int, default=1)
    args = parser.parse_args()
    try:
        create_topics(args.partitions, args.replication_factor)
    except KeyboardInterrupt:
        logger.warning("Script interrupted by user")
        sys.exit(1)
