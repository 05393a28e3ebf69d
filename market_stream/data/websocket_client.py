"""
Binance Streaming Subscription Manager

This module provides the public façade over the streaming core. It accepts
subscribe/unsubscribe requests, tracks per-symbol subscription state and
wires together stream name construction, handler registration, message
routing, reconnection with bounded exponential backoff and keepalive.

Architecture:
    - One StreamRegistry per manager, passed explicitly to every component
    - One WebSocket connection per symbol, carrying all of its stream kinds
      as a combined stream
    - Single asyncio event loop: every socket event and timer mutates state
      on the loop thread, never concurrently
    - Optional EventBus for observing lifecycle transitions

Error Handling:
    - Caller input errors are returned as a Result, not raised
    - Transport and parse errors are logged and never reach subscribers
    - A failing handler never affects sibling handlers or the connection

Graceful Shutdown:
    - unsubscribe() and close() invalidate timers, keepalive and the live
      connection before their first suspension point
    - close() is terminal and idempotent
    - Async context manager (__aenter__/__aexit__) for automatic cleanup
"""

from typing import Iterable, List, Optional, Union

from loguru import logger

from market_stream.core.config import StreamSettings, load_settings
from market_stream.core.errors import InvalidStreamKind, Result, UnknownSubscription, UnsupportedStreamKind
from market_stream.core.event_bus import EventBus
from market_stream.core.models import MARKET_TYPES, ConnectionState, StreamKind, Subscription
from .connection import ConnectionLifecycle, Connector
from .reconnect import ReconnectScheduler
from .registry import StreamHandler, StreamRegistry
from .router import MessageRouter
from .stream_names import parse_stream_kind


class SubscriptionManager:
    """
    Streaming subscription manager for Binance market data.

    Manages one combined-stream WebSocket per subscribed symbol and
    demultiplexes inbound frames to registered handlers. Connections that
    drop are reopened with exponential backoff until the configured number of
    attempts is exhausted, after which the symbol reports ABANDONED.

    Symbols are case-insensitive and surrounding whitespace is ignored. Must
    be used from within a running event loop; none of the methods are
    thread-safe.

    Attributes:
        settings (StreamSettings): Endpoint, backoff and keepalive settings
        event_bus (EventBus): Optional lifecycle event sink

    Examples:
        >>> async with SubscriptionManager() as manager:
        ...     await manager.subscribe("BTCUSDT", "spot", ["trade", "ticker"])
        ...     manager.on_stream_data("BTCUSDT", "trade", print)
        ...     await asyncio.sleep(60)
    """

    def __init__(
        self,
        settings: Optional[StreamSettings] = None,
        event_bus: Optional[EventBus] = None,
        connect: Optional[Connector] = None
    ):
        """
        Initialize the subscription manager.

        Args:
            settings (StreamSettings, optional): Defaults to mainnet with
                default backoff and keepalive settings
            event_bus (EventBus, optional): Receives lifecycle events
            connect (callable, optional): WebSocket connector. Defaults to
                websockets.connect

        Raises:
            TypeError: If event_bus is not an EventBus instance
        """
        if event_bus is not None and not isinstance(event_bus, EventBus):
            raise TypeError(
                f"event_bus must be EventBus instance, got {type(event_bus).__name__}"
            )

        self.settings = settings if settings is not None else StreamSettings(use_testnet=False)
        self.event_bus = event_bus

        self._registry = StreamRegistry()
        self._router = MessageRouter(self._registry.handlers)
        self._scheduler = ReconnectScheduler(
            base_delay=self.settings.reconnect_delay,
            max_attempts=self.settings.max_reconnect_attempts
        )
        self._lifecycle = ConnectionLifecycle(
            self._registry,
            self._router,
            self._scheduler,
            self.settings,
            connect=connect,
            event_bus=event_bus
        )
        self._closed = False

        env = "testnet" if self.settings.use_testnet else "mainnet"
        logger.info(f"SubscriptionManager initialized ({env})")

    @classmethod
    def from_config(cls, config_path=None, event_bus: Optional[EventBus] = None) -> "SubscriptionManager":
        """Create a manager with settings loaded from config.yaml."""
        return cls(settings=load_settings(config_path), event_bus=event_bus)

    async def subscribe(
        self,
        symbol: str,
        market_type: str,
        streams: Iterable[Union[str, StreamKind]]
    ) -> Result:
        """
        Subscribe a symbol to a set of stream kinds.

        Idempotent per symbol: any existing subscription and connection for
        the symbol are replaced, which also resets the reconnect counter.
        Handlers already registered for the symbol are kept.

        Args:
            symbol (str): Trading pair, any case (e.g., 'BTCUSDT')
            market_type (str): 'spot' or 'futures'
            streams: Stream kinds to multiplex on the connection

        Returns:
            Result: Failure carrying InvalidStreamKind if any kind is unknown

        Raises:
            ValueError: If symbol, market_type or the stream list is malformed
            RuntimeError: If the manager has been closed
        """
        if self._closed:
            raise RuntimeError("SubscriptionManager is closed")
        if not isinstance(symbol, str) or not symbol.strip():
            raise ValueError("symbol must be non-empty string")
        if market_type not in MARKET_TYPES:
            raise ValueError(f"market_type must be 'spot' or 'futures', got {market_type!r}")
        if isinstance(streams, (str, StreamKind)):
            streams = [streams]
        requested = list(streams)
        if not requested:
            raise ValueError("streams must contain at least one stream kind")

        kinds: List[StreamKind] = []
        for stream in requested:
            try:
                kind = parse_stream_kind(stream)
            except UnsupportedStreamKind:
                logger.error(f"Cannot subscribe {symbol.upper()}: unsupported stream kind {stream!r}")
                return Result.failure(InvalidStreamKind(stream))
            if kind not in kinds:
                kinds.append(kind)

        subscription = Subscription(symbol=symbol, market_type=market_type, streams=kinds)
        wire_symbol = subscription.wire_symbol

        previous = self._lifecycle.detach(wire_symbol)
        self._registry.subscriptions[wire_symbol] = subscription
        self._registry.handlers.ensure_symbol(wire_symbol)

        await self._lifecycle.wait_closed(previous)

        # Replaced, unsubscribed or closed while the previous socket was closing
        if self._closed or not self._registry.is_current(subscription):
            return Result.success()

        self._lifecycle.open_for(subscription)
        return Result.success()

    async def unsubscribe(self, symbol: str) -> None:
        """
        Remove a symbol's subscription, connection and handlers.

        No-op for unknown symbols. Timers, keepalive and running coroutine
        handlers are cancelled before the first suspension point, so no event
        arriving afterwards can reopen the symbol or reach its handlers.
        """
        wire_symbol = self._normalize_symbol(symbol)

        task = self._lifecycle.detach(wire_symbol)
        subscription = self._registry.subscriptions.pop(wire_symbol, None)
        self._registry.handlers.remove_symbol(wire_symbol)

        if subscription is None and task is None:
            return

        logger.info(f"Unsubscribed {wire_symbol.upper()}")
        await self._lifecycle.wait_closed(task)

    def on_stream_data(self, symbol: str, kind: Union[str, StreamKind], handler: StreamHandler) -> Result:
        """
        Register a handler for a subscribed symbol's stream kind.

        Handlers receive the 'data' payload of each matching frame and are
        called in registration order. Coroutine functions are scheduled as
        tasks.

        Returns:
            Result: Failure carrying UnknownSubscription if the symbol is not
            subscribed, or InvalidStreamKind if the kind is unknown

        Raises:
            TypeError: If handler is not callable
        """
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {type(handler).__name__}")

        wire_symbol = self._normalize_symbol(symbol)
        if wire_symbol not in self._registry.subscriptions:
            logger.error(f"No subscription registered for symbol {symbol.upper()}")
            return Result.failure(UnknownSubscription(symbol))

        try:
            stream_kind = parse_stream_kind(kind)
        except UnsupportedStreamKind:
            logger.error(f"Cannot register handler for {symbol.upper()}: unsupported stream kind {kind!r}")
            return Result.failure(InvalidStreamKind(kind))

        self._registry.handlers.register(wire_symbol, stream_kind.value, handler)
        return Result.success()

    def get_connection_state(self, symbol: str) -> ConnectionState:
        """
        Return the connection state of a symbol.

        Returns:
            ConnectionState: ABSENT if not subscribed, ABANDONED after
            reconnect exhaustion, RECONNECT_PENDING while waiting to
            reconnect, otherwise the live connection's state
        """
        wire_symbol = self._normalize_symbol(symbol)

        connection = self._registry.connections.get(wire_symbol)
        if connection is not None:
            return connection.state

        subscription = self._registry.subscriptions.get(wire_symbol)
        if subscription is None:
            return ConnectionState.ABSENT
        if subscription.has_pending_reconnect:
            return ConnectionState.RECONNECT_PENDING
        if subscription.abandoned:
            return ConnectionState.ABANDONED
        return ConnectionState.IDLE

    def is_subscribed(self, symbol: str, kind: Union[str, StreamKind]) -> bool:
        """True if the symbol's active subscription lists the kind."""
        subscription = self._registry.subscriptions.get(self._normalize_symbol(symbol))
        if subscription is None:
            return False
        try:
            return parse_stream_kind(kind) in subscription.streams
        except UnsupportedStreamKind:
            return False

    def get_subscription(self, symbol: str) -> Optional[Subscription]:
        """
        Return the active subscription of a symbol.

        Args:
            symbol (str): Trading pair, any case

        Returns:
            Subscription or None if the symbol is not subscribed

        Examples:
            >>> manager.get_subscription("btcusdt").streams
            [<StreamKind.TRADE: 'trade'>]
        """
        return self._registry.subscriptions.get(self._normalize_symbol(symbol))

    @staticmethod
    def _normalize_symbol(symbol: str) -> str:
        """Registry key for a caller-supplied symbol, matching Subscription.wire_symbol."""
        return symbol.strip().lower()

    @property
    def symbols(self) -> List[str]:
        """Display symbols of all active subscriptions."""
        return sorted(sub.symbol for sub in self._registry.subscriptions.values())

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """
        Tear down every symbol. Terminal and idempotent.

        Safe to call multiple times and with no active subscriptions. After
        it returns no reconnect timer can fire and every symbol reports
        ABSENT.
        """
        if self._closed and not self._registry.subscriptions and not self._registry.connections:
            return

        self._closed = True
        symbols = set(self._registry.subscriptions) | set(self._registry.connections)
        tasks = [self._lifecycle.detach(symbol) for symbol in symbols]

        self._registry.subscriptions.clear()
        self._registry.handlers.clear()

        for task in tasks:
            await self._lifecycle.wait_closed(task)

        logger.info(f"SubscriptionManager closed ({len(symbols)} symbol(s) torn down)")

    async def __aenter__(self):
        return self

    async def __aexit__(self, _exc_type, _exc_val, _exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        status = "closed" if self._closed else f"{len(self._registry.subscriptions)} symbol(s)"
        return f"SubscriptionManager({status})"
