"""Data types of the event store."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EventStoreError(Exception):
    """Error raised by event store operations.

    ``op`` names the failing operation, ``message`` describes the failure
    and ``key`` identifies the object involved.
    """

    def __init__(self, op: str, message: str, key: str = "") -> None:
        super().__init__(f"{op}: {message}")
        self.op = op
        self.message = message
        self.key = key

    def __str__(self) -> str:
        return f"{self.op}: {self.message}"


@dataclass
class Stream:
    """An ordered stream of events; ``position`` is the next free slot."""

    id: uuid.UUID
    created_at: datetime = field(default_factory=_now)
    position: int = 0


@dataclass
class StreamEvent:
    """Places an event at a position within a stream."""

    stream_id: uuid.UUID
    event_id: uuid.UUID
    position: int


@dataclass
class Event:
    """A recorded event with its payload and metadata."""

    event: str = ""
    data: bytes = b""
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_now)
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    request_id: Optional[uuid.UUID] = None


SubscriptionHandler = Callable[[Optional[Event]], Any]


@dataclass
class Subscription:
    """A named subscriber's interest in one stream."""

    name: str
    stream_id: uuid.UUID
    handler: SubscriptionHandler


def new_event(
    event: str, data: bytes, metadata: dict[str, Any], timestamp: datetime
) -> Event:
    """Create an event with a fresh id."""
    return Event(
        event=event,
        data=data,
        metadata=metadata,
        timestamp=timestamp,
        id=uuid.uuid4(),
    )


def new_subscription(
    name: str, stream_id: uuid.UUID, handler: SubscriptionHandler
) -> Subscription:
    """Create a subscription of ``name`` to a stream."""
    return Subscription(name=name, stream_id=stream_id, handler=handler)