"""Base command and event interfaces shared across services."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID, uuid4


@dataclass(frozen=True)
class Command:
    """Base class for all commands."""
    pass


@dataclass(frozen=True)
class Event:
    """Base class for all domain events."""
    event_id: UUID = field(default_factory=uuid4, kw_only=True)
    occurred_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), kw_only=True
    )
