"""Tests for the session event bus."""

from snaplens_core.events import EventBus, EventPayload, SessionEvent


def test_publish_reaches_every_listener():
    bus = EventBus()
    a, b = [], []
    bus.subscribe(a.append)
    bus.subscribe(b.append)
    bus.publish(SessionEvent.THREAD_CREATED, file_id="f.py", thread_id=1)
    expected = EventPayload(kind=SessionEvent.THREAD_CREATED, file_id="f.py", thread_id=1)
    assert a == [expected]
    assert b == [expected]


def test_unsubscribe_stops_delivery():
    bus = EventBus()
    received = []
    unsubscribe = bus.subscribe(received.append)
    unsubscribe()
    unsubscribe()  # idempotent
    bus.publish(SessionEvent.SESSION_CLEARED)
    assert received == []


def test_listener_error_does_not_stop_others(caplog):
    bus = EventBus()
    received = []

    def broken(_payload):
        raise RuntimeError("boom")

    bus.subscribe(broken)
    bus.subscribe(received.append)
    bus.publish(SessionEvent.STATUS_CHANGED, thread_id=3)
    assert len(received) == 1
    assert "boom" in caplog.text
