"""
Owned state for the stream manager.

HandlerRegistry maps symbol -> stream kind -> ordered callbacks. It is
independent of connection lifecycle: registrations survive reconnects and are
removed only when the owning symbol is unsubscribed or the manager closes.

StreamRegistry bundles the three per-manager maps (subscriptions,
connections, handlers). One instance is created per SubscriptionManager and
passed explicitly to every component that needs it; all mutation happens on
the event loop thread.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, DefaultDict, Dict, List

from market_stream.core.models import Subscription

if TYPE_CHECKING:
    from .connection import Connection

StreamHandler = Callable[[Any], Any]


class HandlerRegistry:
    """
    Ordered stream handlers per (symbol, kind).

    Symbols are keyed by their lower-case wire form and kinds by their wire
    token, so lookups from inbound stream names need no translation.
    """

    def __init__(self):
        self._handlers: Dict[str, DefaultDict[str, List[StreamHandler]]] = {}

    def ensure_symbol(self, symbol: str) -> None:
        """Create an empty handler slot for a symbol if it has none."""
        self._handlers.setdefault(symbol.lower(), defaultdict(list))

    def has_symbol(self, symbol: str) -> bool:
        return symbol.lower() in self._handlers

    def register(self, symbol: str, kind: str, handler: StreamHandler) -> None:
        """Append a handler. The symbol slot must exist."""
        self._handlers[symbol.lower()][str(kind)].append(handler)

    def get(self, symbol: str, kind: str) -> List[StreamHandler]:
        """Return a snapshot of the handlers for (symbol, kind), possibly empty."""
        by_kind = self._handlers.get(symbol.lower())
        if by_kind is None:
            return []
        return list(by_kind.get(str(kind), ()))

    def count(self, symbol: str, kind: str) -> int:
        """Number of handlers registered for (symbol, kind)."""
        return len(self.get(symbol, kind))

    def remove_symbol(self, symbol: str) -> None:
        """Drop a symbol's slot and every handler in it. No-op if absent."""
        self._handlers.pop(symbol.lower(), None)

    def clear(self) -> None:
        self._handlers.clear()

    def __len__(self) -> int:
        """Number of symbols with a handler slot, including empty slots."""
        return len(self._handlers)


@dataclass
class StreamRegistry:
    """
    Per-manager state shared by the stream components.

    Attributes:
        subscriptions: wire symbol -> Subscription
        connections: wire symbol -> live Connection (at most one per symbol)
        handlers: Stream handler registrations
    """

    subscriptions: Dict[str, Subscription] = field(default_factory=dict)
    connections: Dict[str, "Connection"] = field(default_factory=dict)
    handlers: HandlerRegistry = field(default_factory=HandlerRegistry)

    def is_current(self, subscription: Subscription) -> bool:
        """True if subscription is still the active one for its symbol."""
        return self.subscriptions.get(subscription.wire_symbol) is subscription
