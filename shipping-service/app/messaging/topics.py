# app/messaging/topics.py
import logging
from typing import Iterable, List

from kafka.admin import KafkaAdminClient, NewTopic
from kafka.errors import TopicAlreadyExistsError

from app.core.config import settings

logger = logging.getLogger(__name__)


def service_topics(num_partitions: int = 3, replication_factor: int = 1) -> List[NewTopic]:
    """Topics this service reads from or writes to."""
    return [
        NewTopic(
            name=name,
            num_partitions=num_partitions,
            replication_factor=replication_factor,
        )
        for name in (
            settings.ORDER_COMPLETED_TOPIC,
            settings.EVENTS_TOPIC,
            settings.DEAD_LETTER_TOPIC,
        )
    ]


def ensure_topics(admin: KafkaAdminClient, topics: Iterable[NewTopic]) -> List[str]:
    """
    Creates every topic that does not exist yet.

    Returns the names of the topics that were created.
    """
    existing = set(admin.list_topics())
    missing = []
    for topic in topics:
        if topic.name in existing:
            logger.info(f"Topic '{topic.name}' already exists")
        else:
            missing.append(topic)

    created = []
    for topic in missing:
        try:
            admin.create_topics(new_topics=[topic], validate_only=False)
            created.append(topic.name)
            logger.info(f"Topic '{topic.name}' created")
        except TopicAlreadyExistsError:
            # Created by another instance between list and create
            logger.info(f"Topic '{topic.name}' already exists")
    return created
