"""Cache adapters. Advisory only: no invariant depends on cached values."""

import abc
import logging
import time
from typing import Dict, Optional, Tuple

import redis

from lab_results.domain.exceptions import InfrastructureFailure

logger = logging.getLogger(__name__)


class AbstractCache(abc.ABC):

    @abc.abstractmethod
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    @abc.abstractmethod
    def set(self, key: str, value: str, ttl: Optional[int] = None):
        """Store value under key, expiring after ttl seconds."""
        raise NotImplementedError

    @abc.abstractmethod
    def remove(self, key: str):
        raise NotImplementedError


class RedisCache(AbstractCache):
    DEFAULT_TTL = 600

    def __init__(self, client: redis.Redis, default_ttl: int = DEFAULT_TTL):
        self.client = client
        self.default_ttl = default_ttl

    def get(self, key):
        try:
            value = self.client.get(key)
        except redis.RedisError as e:
            raise InfrastructureFailure(f"Cache read failed for {key}: {e}") from e
        if value is None:
            return None
        return value.decode("utf-8") if isinstance(value, bytes) else value

    def set(self, key, value, ttl=None):
        try:
            self.client.set(key, value, ex=ttl or self.default_ttl)
        except redis.RedisError as e:
            raise InfrastructureFailure(f"Cache write failed for {key}: {e}") from e

    def remove(self, key):
        try:
            self.client.delete(key)
        except redis.RedisError as e:
            raise InfrastructureFailure(f"Cache remove failed for {key}: {e}") from e


class InMemoryCache(AbstractCache):
    """Process-local cache with expiry, for tests and single-process runs."""

    def __init__(self, default_ttl: int = RedisCache.DEFAULT_TTL, clock=time.monotonic):
        self.default_ttl = default_ttl
        self.clock = clock
        self.entries = {}  # type: Dict[str, Tuple[str, float]]

    def get(self, key):
        entry = self.entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.clock() >= expires_at:
            del self.entries[key]
            return None
        return value

    def set(self, key, value, ttl=None):
        self.entries[key] = (value, self.clock() + (ttl or self.default_ttl))

    def remove(self, key):
        self.entries.pop(key, None)
