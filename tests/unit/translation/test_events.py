"""Unit tests for the session event bus."""

from ln_translator.core.translation.events import Event, EventBus, EventType


class TestEventBus:
    """Test EventBus functionality."""

    def test_subscribe_and_publish(self):
        """Subscribe to event and receive it when published."""
        bus = EventBus()
        received_events = []

        bus.subscribe(EventType.CONTENT_UPDATED, received_events.append)
        bus.publish(Event(type=EventType.CONTENT_UPDATED, data={"chunk": "Hello"}))

        assert len(received_events) == 1
        assert received_events[0].data["chunk"] == "Hello"

    def test_emit(self):
        bus = EventBus()
        received_events = []
        bus.subscribe(EventType.PAGE_COMPLETED, received_events.append)

        bus.emit(EventType.PAGE_COMPLETED, source="translation", page=2)

        assert received_events[0].source == "translation"
        assert received_events[0].data == {"page": 2}

    def test_subscribe_multiple(self):
        """Subscribe to multiple event types with same handler."""
        bus = EventBus()
        received_events = []

        bus.subscribe_multiple([EventType.PAGE_STARTED, EventType.PAGE_COMPLETED], received_events.append)
        bus.emit(EventType.PAGE_STARTED)
        bus.emit(EventType.PAGE_COMPLETED)
        bus.emit(EventType.SESSION_FINISHED)  # Not subscribed

        assert [event.type for event in received_events] == [EventType.PAGE_STARTED, EventType.PAGE_COMPLETED]

    def test_unsubscribe(self):
        bus = EventBus()
        received_count = [0]

        def handler(event):
            received_count[0] += 1

        bus.subscribe(EventType.SESSION_FINISHED, handler)
        bus.emit(EventType.SESSION_FINISHED)
        bus.unsubscribe(EventType.SESSION_FINISHED, handler)
        bus.emit(EventType.SESSION_FINISHED)

        assert received_count[0] == 1

    def test_listener_failure_does_not_propagate(self):
        """A failing listener is logged; the others still run."""
        bus = EventBus()
        received_events = []

        def broken(event):
            raise RuntimeError("listener bug")

        bus.subscribe(EventType.ERROR_REPORTED, broken)
        bus.subscribe(EventType.ERROR_REPORTED, received_events.append)
        bus.emit(EventType.ERROR_REPORTED, error="x")

        assert len(received_events) == 1

    def test_event_history(self):
        """History is off by default and can be filtered by type."""
        bus = EventBus()
        bus.emit(EventType.PAGE_STARTED)
        assert bus.get_history() == []

        bus.enable_history()
        bus.emit(EventType.PAGE_STARTED)
        bus.emit(EventType.CONTENT_UPDATED)
        assert len(bus.get_history()) == 2
        assert len(bus.get_events_by_type(EventType.CONTENT_UPDATED)) == 1

        bus.clear_history()
        bus.disable_history()
        bus.emit(EventType.PAGE_STARTED)
        assert bus.get_history() == []
