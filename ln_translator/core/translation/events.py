"""
Event system for observing translation sessions.

A UI subscribes to these events to render partial translations live and to
react to the end of a run (save prompt) or to reported errors.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List
import time

from ln_translator.utils.unified_logger import error as log_error


class EventType(Enum):
    """Session event types."""

    # Page-level events
    PAGE_STARTED = "page_started"
    CONTENT_UPDATED = "content_updated"
    PAGE_COMPLETED = "page_completed"
    UNIT_RETRY = "unit_retry"

    # Session-level events
    SESSION_FINISHED = "session_finished"
    SESSION_ABORTED = "session_aborted"
    ERROR_REPORTED = "error_reported"

    # Image text extraction
    EXTRACTION_UPDATED = "extraction_updated"
    EXTRACTION_COMPLETED = "extraction_completed"


@dataclass
class Event:
    """Session event.

    Attributes:
        type: Event type
        data: Event-specific data dictionary
        timestamp: Unix timestamp when event occurred
        source: Optional source identifier (e.g., "translation")
    """
    type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    source: str = "unknown"


class EventBus:
    """Publish/subscribe hub owned by one session."""

    def __init__(self):
        self._listeners: Dict[EventType, List[Callable]] = {}
        self._history: List[Event] = []
        self._record_history = False

    def subscribe(self, event_type: EventType, callback: Callable[[Event], None]) -> None:
        """Subscribe to an event type.

        Args:
            event_type: Type of event to listen for
            callback: Function to call when event occurs (receives Event object)
        """
        self._listeners.setdefault(event_type, []).append(callback)

    def subscribe_multiple(self, event_types: List[EventType], callback: Callable[[Event], None]) -> None:
        for event_type in event_types:
            self.subscribe(event_type, callback)

    def unsubscribe(self, event_type: EventType, callback: Callable) -> None:
        listeners = self._listeners.get(event_type, [])
        if callback in listeners:
            listeners.remove(callback)

    def publish(self, event: Event) -> None:
        """Publish an event to all subscribers.

        Listener failures are logged and never reach the publisher.
        """
        if self._record_history:
            self._history.append(event)

        for listener in list(self._listeners.get(event.type, [])):
            try:
                listener(event)
            except Exception as e:
                log_error(f"Event listener failed for {event.type.value}: {e}")

    def emit(self, event_type: EventType, source: str = "unknown", **data) -> None:
        """Shortcut for publish(Event(event_type, data, source=source))."""
        self.publish(Event(type=event_type, data=data, source=source))

    def enable_history(self) -> None:
        self._record_history = True

    def disable_history(self) -> None:
        self._record_history = False

    def get_history(self) -> List[Event]:
        """Recorded events in chronological order."""
        return self._history.copy()

    def clear_history(self) -> None:
        self._history.clear()

    def get_events_by_type(self, event_type: EventType) -> List[Event]:
        return [event for event in self._history if event.type == event_type]
