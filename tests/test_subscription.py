import time
import uuid
from datetime import datetime

import pytest

from okestra.eventstore.models import (
    Event,
    EventStoreError,
    Stream,
    StreamEvent,
    new_event,
    new_subscription,
)
from okestra.eventstore.subscription import SubscriptionRegistry

SUBSCRIBER = "testSubscriber"


class _Store:
    def __init__(self) -> None:
        self.streams: dict[uuid.UUID, Stream] = {}
        self.events: dict[uuid.UUID, Event] = {}

    def get_stream(self, stream_id):
        try:
            return self.streams[stream_id]
        except KeyError:
            raise EventStoreError("GetStream", "stream not found", str(stream_id)) from None

    def get_event(self, event_id):
        try:
            return self.events[event_id]
        except KeyError:
            raise EventStoreError("GetEvent", "event not found", str(event_id)) from None

    def new_stream(self) -> uuid.UUID:
        stream_id = uuid.uuid4()
        self.streams[stream_id] = Stream(id=stream_id)
        return stream_id


def _event() -> Event:
    return new_event("eventTested", b'{"key1": "value1"}', {}, datetime.now())


def _setup(out_of_order_time=5.0):
    store = _Store()
    registry = SubscriptionRegistry(
        store.get_stream, store.get_event, out_of_order_time=out_of_order_time
    )
    return store, registry


def _expect(call, *args, op, message=None, key=None):
    with pytest.raises(EventStoreError) as info:
        call(*args)
    assert info.value.op == op
    if message is not None:
        assert info.value.message == message
    if key is not None:
        assert info.value.key == key


def _subscribed(store, registry, received):
    stream_id = store.new_stream()
    try:
        registry.subscribe(new_subscription(SUBSCRIBER, stream_id, received.append))
    except EventStoreError:
        pass
    return stream_id


def _subscriber(registry, stream_id):
    return registry.subscriptions[0].streams[stream_id]


def _publish(store, registry, stream_id, position, keep=True):
    event = _event()
    if keep:
        store.events[event.id] = event
    registry.publish(
        store.streams[stream_id], StreamEvent(stream_id, event.id, position), event
    )
    return event


def test_subscribe_first_time_reports_existing_stream_then_new_stream_ok():
    store, registry = _setup()
    stream_id = store.new_stream()
    _expect(registry.subscribe, new_subscription(SUBSCRIBER, stream_id, print),
            op="subscription", message="stream already exists", key=str(stream_id))

    other = store.new_stream()
    registry.subscribe(new_subscription(SUBSCRIBER, other, print))
    assert set(registry.subscriptions[0].streams) == {stream_id, other}


def test_subscribe_unknown_stream_raises():
    store, registry = _setup()
    _expect(registry.subscribe, new_subscription(SUBSCRIBER, uuid.uuid4(), print),
            op="GetStream")
    assert registry.subscriptions == []


def test_unsubscribe_after_stream_removed():
    store, registry = _setup()
    stream_id = _subscribed(store, registry, [])
    registry.remove_stream(stream_id)
    registry.unsubscribe(SUBSCRIBER)
    assert registry.subscriptions == []


@pytest.mark.parametrize(
    "subscribe, op, message",
    [
        (False, "getSubscriptionManager", "subscription not found"),
        (True, "unsubscribe", "subscription is still waiting for streams"),
    ],
)
def test_unsubscribe_errors(subscribe, op, message):
    store, registry = _setup()
    if subscribe:
        _subscribed(store, registry, [])
    else:
        store.new_stream()
    _expect(registry.unsubscribe, SUBSCRIBER, op=op, message=message, key=SUBSCRIBER)


def test_unsubscribe_stream_ok():
    store, registry = _setup()
    first = store.new_stream()
    second = store.new_stream()
    for name, stream_id in ((SUBSCRIBER, first), ("testSubscriber2", second)):
        with pytest.raises(EventStoreError):
            registry.subscribe(new_subscription(name, stream_id, print))
    registry.unsubscribe_stream(SUBSCRIBER, first)
    assert first not in registry.subscriptions[0].streams
    assert second in registry.subscriptions[1].streams


def test_unsubscribe_stream_unknown_manager():
    store, registry = _setup()
    stream_id = store.new_stream()
    _expect(registry.unsubscribe_stream, SUBSCRIBER, stream_id,
            op="getSubscriptionManager", message="subscription not found", key=SUBSCRIBER)


def test_unsubscribe_stream_unknown_stream():
    store, registry = _setup()
    _subscribed(store, registry, [])
    unknown = uuid.uuid4()
    _expect(registry.unsubscribe_stream, SUBSCRIBER, unknown,
            op="UnsubscribeStream", message="subscription manager not found", key=str(unknown))


def test_publish_in_order_delivers():
    store, registry = _setup()
    received = []
    stream_id = _subscribed(store, registry, received)
    sent = [_publish(store, registry, stream_id, position) for position in (0, 1)]
    assert [e.id for e in received] == [e.id for e in sent]


@pytest.mark.parametrize("keep", [True, False])
def test_publish_out_of_order_then_right_order(keep):
    store, registry = _setup(out_of_order_time=5.0)
    received = []
    stream_id = _subscribed(store, registry, received)
    event = _publish(store, registry, stream_id, 0, keep)
    assert len(received) == 1
    event1 = _publish(store, registry, stream_id, 2, keep)
    assert len(received) == 1
    event2 = _publish(store, registry, stream_id, 1, keep)
    subscriber = _subscriber(registry, stream_id)
    if keep:
        assert [e.id for e in received] == [event.id, event2.id, event1.id]
        assert subscriber.timer is None
        assert subscriber.oop == []
    else:
        # the held event cannot be looked up, so it stays queued
        assert [e.id for e in received] == [event.id, event2.id]
        assert len(subscriber.oop) == 1
        registry.remove_stream(stream_id)


def test_publish_behind_position_redelivers():
    store, registry = _setup()
    received = []
    stream_id = _subscribed(store, registry, received)
    _publish(store, registry, stream_id, 0)
    late = _publish(store, registry, stream_id, 0)
    assert received[-1].id == late.id
    assert _subscriber(registry, stream_id).current_position == 1


def test_out_of_order_event_flushed_after_timeout():
    store, registry = _setup(out_of_order_time=0.1)
    received = []
    stream_id = _subscribed(store, registry, received)
    _publish(store, registry, stream_id, 0)
    held = _publish(store, registry, stream_id, 2)
    assert len(received) == 1

    deadline = time.monotonic() + 3
    while len(received) < 2 and time.monotonic() < deadline:
        time.sleep(0.02)
    assert [e.id for e in received][1] == held.id
    subscriber = _subscriber(registry, stream_id)
    assert subscriber.oop == []
    assert subscriber.timer is None
    assert subscriber.current_position == 2