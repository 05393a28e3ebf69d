"""
Core module for configuration and shared types.

This module provides:
- StreamSettings: Validated settings loaded from config.yaml
- Error taxonomy and the Result type returned by the public API
- Subscription and connection state models
- EventBus: Lifecycle event publish-subscribe
"""

from .config import StreamSettings, load_settings
from .errors import Result
from .event_bus import Event, EventBus, EventType
from .models import ConnectionState, StreamKind, Subscription

__all__ = [
    "StreamSettings",
    "load_settings",
    "Result",
    "Event",
    "EventBus",
    "EventType",
    "ConnectionState",
    "StreamKind",
    "Subscription",
]
