"""
Lifecycle event bus for the stream manager.

Connection lifecycle transitions (open, close, reconnect scheduled, reconnect
abandoned) are published here so that callers can observe them without
polling get_connection_state(). Delivery is synchronous on the event loop
thread; subscribers must not block.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from loguru import logger


class EventType(Enum):
    """
    Lifecycle events emitted by the connection layer.

    Examples:
        >>> EventType.RECONNECT_ABANDONED.value
        'reconnect_abandoned'
    """

    CONNECTION_OPENED = "connection_opened"
    """Socket handshake completed. Payload: symbol, market_type, url."""

    CONNECTION_CLOSED = "connection_closed"
    """Socket closed or failed to open. Payload: symbol, reason."""

    RECONNECT_SCHEDULED = "reconnect_scheduled"
    """Reconnect timer armed. Payload: symbol, attempt, delay."""

    RECONNECT_ABANDONED = "reconnect_abandoned"
    """
    Reconnect attempts exhausted; the symbol stays down until re-subscribed.
    Payload: symbol, attempts.
    """

    def __str__(self) -> str:
        return self.name


@dataclass
class Event:
    """
    Event emitted on the bus.

    Attributes:
        event_type (EventType): Kind of lifecycle transition
        data (Dict[str, Any]): Event payload
        source (str): Emitting component
        timestamp (datetime): Creation time, UTC
    """

    event_type: EventType
    data: Dict[str, Any]
    source: str
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.event_type, EventType):
            raise TypeError(
                f"event_type must be EventType enum, got {type(self.event_type).__name__}"
            )

        if not isinstance(self.data, dict):
            raise TypeError(
                f"data must be dict, got {type(self.data).__name__}"
            )

        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        return f"Event({self.event_type.name} from {self.source} at {self.timestamp})"


class EventBus:
    """
    Publish-subscribe bus for lifecycle events.

    Subscribers are called in subscription order. A subscriber that raises is
    logged and skipped; remaining subscribers still receive the event.

    Thread Safety:
        Not thread-safe. Emit and subscribe from the event loop thread only.

    Examples:
        >>> bus = EventBus()
        >>> bus.subscribe(EventType.RECONNECT_ABANDONED, lambda e: print(e.data["symbol"]))
        >>> bus.emit(Event(EventType.RECONNECT_ABANDONED, {"symbol": "BTCUSDT"}, "test"))
        BTCUSDT
    """

    def __init__(self):
        self._subscribers: Dict[EventType, List[Callable[[Event], None]]] = {
            event_type: [] for event_type in EventType
        }

    def subscribe(self, event_type: EventType, callback: Callable[[Event], None]) -> None:
        """
        Subscribe a callback to an event type. Duplicate subscriptions are ignored.

        Raises:
            TypeError: If event_type is not an EventType enum member
        """
        if not isinstance(event_type, EventType):
            raise TypeError(f"event_type must be EventType enum, got {type(event_type)}")

        if callback not in self._subscribers[event_type]:
            self._subscribers[event_type].append(callback)

    def unsubscribe(self, event_type: EventType, callback: Callable[[Event], None]) -> None:
        if callback in self._subscribers[event_type]:
            self._subscribers[event_type].remove(callback)

    def emit(self, event: Event) -> None:
        """
        Deliver an event to all subscribers of its type.

        Raises:
            TypeError: If event is not an Event instance
        """
        if not isinstance(event, Event):
            raise TypeError(f"event must be Event instance, got {type(event)}")

        for callback in list(self._subscribers[event.event_type]):
            try:
                callback(event)
            except Exception as e:
                logger.error(
                    f"Error in event subscriber {getattr(callback, '__name__', callback)} "
                    f"for {event.event_type.value}: {e}"
                )

    def subscriber_count(self, event_type: EventType) -> int:
        return len(self._subscribers[event_type])

    def clear_subscribers(self, event_type: Optional[EventType] = None) -> None:
        """Clear subscribers of one event type, or of all types when None."""
        if event_type is None:
            for each in EventType:
                self._subscribers[each].clear()
        else:
            self._subscribers[event_type].clear()
