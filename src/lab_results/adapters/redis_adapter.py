"""Redis adapter for publishing lifecycle events following Cosmic Python pattern."""

import abc
import json
import logging
from dataclasses import asdict
from datetime import datetime
from uuid import UUID

import redis

from config import get_redis_host_and_port
from shared.domain.commands import Event

logger = logging.getLogger(__name__)

# Shared by every unit of work; redis-py pools connections per client
r = redis.Redis(**get_redis_host_and_port())


class AbstractEventPublisher(abc.ABC):

    @abc.abstractmethod
    def publish(self, channel: str, event: Event):
        raise NotImplementedError


class RedisEventPublisher(AbstractEventPublisher):

    def __init__(self, client: redis.Redis):
        self.client = client

    def publish(self, channel, event):
        """Publish event to Redis channel."""
        logger.info("publishing: channel=%s, event=%s", channel, event)
        message = serialize_event(event)
        self.client.publish(channel, message)


def serialize_event(event: Event) -> str:
    """Serialize event to JSON, handling datetime and UUID values."""
    event_dict = asdict(event)

    for key, value in event_dict.items():
        if isinstance(value, datetime):
            event_dict[key] = value.isoformat()
        elif isinstance(value, UUID):
            event_dict[key] = str(value)

    event_dict["event_type"] = type(event).__name__
    return json.dumps(event_dict)
