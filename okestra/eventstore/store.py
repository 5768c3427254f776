"""In-memory event store holding streams, events and their subscribers."""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from okestra.env import EventStoreEnv
from okestra.eventstore.models import (
    Event,
    EventStoreError,
    Stream,
    StreamEvent,
    Subscription,
)
from okestra.eventstore.subscription import SubscriptionRegistry


class EventStoreManager:
    """Keeps events in memory, grouped into ordered streams.

    Appending to a stream publishes each event to the stream's subscribers.
    Streams older than ``delete_streams_ttl`` seconds can be expired by the
    background sweep started with :meth:`delete_streams`.
    """

    def __init__(self, env: Optional[EventStoreEnv] = None) -> None:
        settings = env if env is not None else EventStoreEnv.from_env()
        self._lock = threading.RLock()
        self._streams: list[Stream] = []
        self._stream_events: list[StreamEvent] = []
        self._events: list[Event] = []
        self._subscriptions = SubscriptionRegistry(
            self.get_stream,
            self._find_event,
            out_of_order_time=settings.out_of_order_time,
            lock=self._lock,
        )
        self.delete_streams_interval: float = settings.delete_streams_interval
        self.delete_streams_ttl: float = settings.delete_streams_ttl

    @property
    def out_of_order_time(self) -> float:
        """Seconds to hold out-of-order events before delivering them anyway."""
        return self._subscriptions.out_of_order_time

    @out_of_order_time.setter
    def out_of_order_time(self, value: float) -> None:
        self._subscriptions.out_of_order_time = value

    # events

    def append_event(self, event: Event) -> None:
        """Record an event outside any stream."""
        with self._lock:
            self._events.append(event)

    def add_event(self, event: Event) -> None:
        """Record an event outside any stream."""
        self.append_event(event)

    def get_events(self) -> list[Event]:
        """Return all recorded events."""
        with self._lock:
            return list(self._events)

    def get_event(self, event_id: uuid.UUID) -> Event:
        """Return the event with the given id."""
        with self._lock:
            return self._find_event(event_id)

    def delete_event(self, event_id: uuid.UUID) -> None:
        """Remove the event with the given id."""
        with self._lock:
            for index, event in enumerate(self._events):
                if event.id == event_id:
                    del self._events[index]
                    return
        raise EventStoreError("DeleteEvent", "event not found", str(event_id))

    def _find_event(self, event_id: uuid.UUID) -> Event:
        for event in self._events:
            if event.id == event_id:
                return event
        raise EventStoreError("GetEvent", "event not found", str(event_id))

    # streams

    def get_stream(self, stream_id: uuid.UUID) -> Stream:
        """Return the stream with the given id."""
        with self._lock:
            for stream in self._streams:
                if stream.id == stream_id:
                    return stream
        raise EventStoreError("GetStream", "stream not found", str(stream_id))

    def new_stream(self, stream_id: uuid.UUID) -> None:
        """Create an empty stream."""
        with self._lock:
            if any(stream.id == stream_id for stream in self._streams):
                raise EventStoreError(
                    "NewStream", "stream already exists", str(stream_id)
                )
            self._streams.append(Stream(id=stream_id))

    def append_to_stream(
        self, stream_id: uuid.UUID, start_position: int, events: list[Event]
    ) -> None:
        """Append events at ``start_position``, which must be the stream's end."""
        with self._lock:
            stream = self.get_stream(stream_id)
            if stream.position != start_position:
                raise EventStoreError(
                    "appendToStream", "invalid position", str(stream_id)
                )
            for offset, event in enumerate(events):
                self._events.append(event)
                stream_event = StreamEvent(
                    stream_id=stream_id,
                    event_id=event.id,
                    position=stream.position + offset,
                )
                self._stream_events.append(stream_event)
                self._subscriptions.publish(stream, stream_event, event)
            stream.position += len(events)

    def read_stream(
        self, stream_id: uuid.UUID, start_position: int, end_position: int
    ) -> list[Event]:
        """Return the stream's events at positions ``start <= p < end``."""
        with self._lock:
            self.get_stream(stream_id)
            return [
                event
                for se in self._stream_events
                if se.stream_id == stream_id
                and start_position <= se.position < end_position
                for event in self._events_with_id(se.event_id)
            ]

    def read_all_streams(self, stream_id: uuid.UUID) -> list[Event]:
        """Return every event of the stream."""
        with self._lock:
            self.get_stream(stream_id)
            return [
                event
                for se in self._stream_events
                if se.stream_id == stream_id
                for event in self._events_with_id(se.event_id)
            ]

    def _events_with_id(self, event_id: uuid.UUID) -> list[Event]:
        for event in self._events:
            if event.id == event_id:
                return [event]
        return []

    def get_stream_position(self, stream_id: uuid.UUID) -> int:
        """Return the next free position of the stream."""
        with self._lock:
            return self.get_stream(stream_id).position

    def delete_stream(self, stream_id: uuid.UUID) -> None:
        """Remove a stream, its events and its subscriptions."""
        with self._lock:
            self.get_stream(stream_id)
            event_ids = {
                se.event_id for se in self._stream_events if se.stream_id == stream_id
            }
            self._stream_events = [
                se for se in self._stream_events if se.stream_id != stream_id
            ]
            self._events = [e for e in self._events if e.id not in event_ids]
            self._streams = [s for s in self._streams if s.id != stream_id]
            self._subscriptions.remove_stream(stream_id)

    def delete_streams(self, stop: threading.Event) -> threading.Thread:
        """Start a background sweep deleting expired streams until ``stop`` is set."""
        started = threading.Event()

        def sweep() -> None:
            started.set()
            while not stop.wait(self.delete_streams_interval):
                now = datetime.now(timezone.utc)
                ttl = timedelta(seconds=self.delete_streams_ttl)
                with self._lock:
                    expired = [s.id for s in self._streams if s.created_at + ttl < now]
                for stream_id in expired:
                    try:
                        self.delete_stream(stream_id)
                    except EventStoreError:
                        continue

        thread = threading.Thread(target=sweep, daemon=True)
        thread.start()
        started.wait()
        return thread

    # subscriptions

    def subscribe(self, subscription: Subscription) -> None:
        """Subscribe a named subscriber to an existing stream."""
        self._subscriptions.subscribe(subscription)

    def unsubscribe(self, name: str) -> None:
        """Remove a subscriber that no longer follows any stream."""
        self._subscriptions.unsubscribe(name)

    def unsubscribe_stream(self, name: str, stream_id: uuid.UUID) -> None:
        """Stop a subscriber from following one stream."""
        self._subscriptions.unsubscribe_stream(name, stream_id)

    def publish(self, stream: Stream, stream_event: StreamEvent, event: Event) -> None:
        """Deliver a stream event to its subscribers."""
        with self._lock:
            self._subscriptions.publish(stream, stream_event, event)