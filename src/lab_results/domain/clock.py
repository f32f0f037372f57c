"""Time and randomness sources injected into the domain model."""

import abc
import random
from datetime import datetime, timezone
from typing import Optional


class AbstractClock(abc.ABC):

    @abc.abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""
        raise NotImplementedError

    @abc.abstractmethod
    def randint(self, low: int, high: int) -> int:
        """Random integer N such that low <= N <= high."""
        raise NotImplementedError


class SystemClock(AbstractClock):
    """Wall clock and a non-cryptographic PRNG."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def randint(self, low: int, high: int) -> int:
        return self.rng.randint(low, high)
