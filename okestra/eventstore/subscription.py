"""Delivery of stream events to subscribers, in stream order."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from okestra.eventstore.models import (
    Event,
    EventStoreError,
    Stream,
    StreamEvent,
    Subscription,
    SubscriptionHandler,
)

log = logging.getLogger(__name__)


@dataclass
class EventOOP:
    """An event that arrived ahead of its position."""

    event_id: uuid.UUID
    position: int


@dataclass
class StreamSubscriber:
    """Delivery state of one subscriber on one stream."""

    handler: SubscriptionHandler
    current_position: int = 0
    timer: Optional[threading.Timer] = None
    oop: list[EventOOP] = field(default_factory=list)


@dataclass
class SubscriptionManager:
    """A named subscriber and the streams it follows."""

    name: str
    out_of_order_time: float = 0.0
    streams: dict[uuid.UUID, StreamSubscriber] = field(default_factory=dict)


class SubscriptionRegistry:
    """Keeps subscriptions and publishes stream events to them.

    Events arriving ahead of their position are held until the gap is
    filled, or until ``out_of_order_time`` seconds pass, after which the
    held events are delivered anyway.
    """

    def __init__(
        self,
        get_stream: Callable[[uuid.UUID], Stream],
        get_event: Callable[[uuid.UUID], Event],
        *,
        out_of_order_time: float = 10.0,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self._get_stream = get_stream
        self._get_event = get_event
        self.out_of_order_time = out_of_order_time
        self.lock = lock if lock is not None else threading.RLock()
        self.subscriptions: list[SubscriptionManager] = []

    def subscribe(self, subscription: Subscription) -> None:
        """Subscribe a named subscriber to an existing stream.

        A subscriber name seen for the first time is registered together
        with its stream, and the call then reports the stream as already
        subscribed.
        """
        with self.lock:
            self._get_stream(subscription.stream_id)
            manager = self._find_manager(subscription.name)
            if manager is None:
                manager = SubscriptionManager(
                    name=subscription.name,
                    out_of_order_time=self.out_of_order_time,
                    streams={
                        subscription.stream_id: StreamSubscriber(subscription.handler)
                    },
                )
                self.subscriptions.append(manager)
            if subscription.stream_id in manager.streams:
                raise EventStoreError(
                    "subscription", "stream already exists", str(subscription.stream_id)
                )
            manager.streams[subscription.stream_id] = StreamSubscriber(
                subscription.handler
            )

    def unsubscribe(self, name: str) -> None:
        """Remove a subscriber that no longer follows any stream."""
        with self.lock:
            manager = self._manager(name)
            if manager.streams:
                raise EventStoreError(
                    "unsubscribe", "subscription is still waiting for streams", name
                )
            self.subscriptions = [m for m in self.subscriptions if m.name != name]

    def unsubscribe_stream(self, name: str, stream_id: uuid.UUID) -> None:
        """Stop a subscriber from following one stream."""
        with self.lock:
            manager = self._manager(name)
            subscriber = manager.streams.pop(stream_id, None)
            if subscriber is None:
                raise EventStoreError(
                    "UnsubscribeStream",
                    "subscription manager not found",
                    str(stream_id),
                )
            self._cancel_timer(subscriber)

    def publish(self, stream: Stream, stream_event: StreamEvent, event: Event) -> None:
        """Deliver an event to the first subscriber following the stream."""
        manager = next((m for m in self.subscriptions if stream.id in m.streams), None)
        if manager is None:
            return
        subscriber = manager.streams[stream.id]
        position = stream_event.position

        if position == subscriber.current_position:
            subscriber.handler(event)
            subscriber.current_position += 1
            self._deliver_in_order(subscriber)
            self._maybe_stop_timer(subscriber)
        elif position < subscriber.current_position:
            # a duplicate, or a straggler arriving after its wait expired
            subscriber.handler(event)
        else:
            subscriber.oop.append(EventOOP(event_id=event.id, position=position))
            if subscriber.timer is None:
                timer = threading.Timer(
                    self.out_of_order_time,
                    self._flush_out_of_order,
                    args=(manager, stream.id),
                )
                timer.daemon = True
                subscriber.timer = timer
                timer.start()
            subscriber.oop.sort(key=lambda entry: entry.position)

    def remove_stream(self, stream_id: uuid.UUID) -> None:
        """Drop a stream from every subscriber."""
        with self.lock:
            for manager in self.subscriptions:
                subscriber = manager.streams.pop(stream_id, None)
                if subscriber is not None:
                    self._cancel_timer(subscriber)

    def _find_manager(self, name: str) -> Optional[SubscriptionManager]:
        return next((m for m in self.subscriptions if m.name == name), None)

    def _manager(self, name: str) -> SubscriptionManager:
        manager = self._find_manager(name)
        if manager is None:
            raise EventStoreError("getSubscriptionManager", "subscription not found", name)
        return manager

    def _deliver_in_order(self, subscriber: StreamSubscriber) -> None:
        if not subscriber.oop:
            return
        sent: set[uuid.UUID] = set()
        for entry in subscriber.oop:
            if entry.position != subscriber.current_position:
                continue
            try:
                event = self._get_event(entry.event_id)
            except EventStoreError as exc:
                log.warning("error getting event: %s", exc)
                continue
            subscriber.handler(event)
            sent.add(entry.event_id)
            subscriber.current_position += 1
        subscriber.oop = [e for e in subscriber.oop if e.event_id not in sent]

    @staticmethod
    def _cancel_timer(subscriber: StreamSubscriber) -> None:
        if subscriber.timer is not None:
            subscriber.timer.cancel()
            subscriber.timer = None

    def _maybe_stop_timer(self, subscriber: StreamSubscriber) -> None:
        if not subscriber.oop:
            self._cancel_timer(subscriber)

    def _flush_out_of_order(
        self, manager: SubscriptionManager, stream_id: uuid.UUID
    ) -> None:
        with self.lock:
            subscriber = manager.streams.get(stream_id)
            if subscriber is None:
                return
            if not subscriber.oop:
                subscriber.timer = None
                return
            highest = 0
            for entry in subscriber.oop:
                try:
                    event: Optional[Event] = self._get_event(entry.event_id)
                except EventStoreError:
                    event = None
                subscriber.handler(event)
                highest = max(highest, entry.position)
            if highest > subscriber.current_position:
                subscriber.current_position = highest
            subscriber.oop = []
            subscriber.timer = None