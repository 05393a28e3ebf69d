"""
Per-symbol WebSocket connection lifecycle.

Each subscribed symbol owns at most one Connection. A Connection is driven by
a single reader task that connects, routes inbound frames and, when the
socket closes or fails, funnels into one close path that decides whether to
reconnect. All state changes happen on the event loop thread, so events for
one symbol are processed strictly in sequence.

State flow:
    CONNECTING -> OPEN -> CLOSING -> (record dropped) -> RECONNECT_PENDING
    CONNECTING -> (connect failed) -> (record dropped) -> RECONNECT_PENDING

Suspension points are the connect handshake, waiting for the next frame and
closing the socket. Routing and state mutation never await.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed

from market_stream.core.config import StreamSettings
from market_stream.core.errors import TransportError
from market_stream.core.event_bus import Event, EventBus, EventType
from market_stream.core.models import ConnectionState, Subscription
from .keepalive import KeepAliveMonitor
from .reconnect import ReconnectScheduler
from .registry import StreamRegistry
from .router import MessageRouter
from .stream_names import build_stream_url

Connector = Callable[..., Awaitable[Any]]


@dataclass
class Connection:
    """
    One live transport handle for a symbol.

    Owned exclusively by ConnectionLifecycle and never shared across symbols.
    """

    subscription: Subscription
    url: str
    state: ConnectionState = ConnectionState.CONNECTING
    websocket: Any = None
    task: Optional[asyncio.Task] = None
    keepalive: Optional[KeepAliveMonitor] = None

    @property
    def symbol(self) -> str:
        return self.subscription.wire_symbol


class ConnectionLifecycle:
    """
    Opens, monitors and closes stream connections.

    Transport errors (failed handshakes, abnormal closes, read failures) are
    logged and never reach subscribers. The close path is the single
    reconnection trigger, so an error followed by a close schedules exactly
    one reconnect.

    Args:
        registry: Shared manager state
        router: Router for inbound frames
        scheduler: Reconnect timer scheduler
        settings: Endpoint, timeout and keepalive settings
        connect: WebSocket connector, websockets.connect by default
        event_bus: Optional bus for lifecycle events
    """

    def __init__(
        self,
        registry: StreamRegistry,
        router: MessageRouter,
        scheduler: ReconnectScheduler,
        settings: StreamSettings,
        connect: Optional[Connector] = None,
        event_bus: Optional[EventBus] = None
    ):
        self._registry = registry
        self._router = router
        self._scheduler = scheduler
        self._settings = settings
        self._connect = connect if connect is not None else websockets.connect
        self._event_bus = event_bus

    def open_for(self, subscription: Subscription) -> Connection:
        """
        Start connecting a subscription's streams.

        Clears any pending reconnect timer, registers a CONNECTING record and
        spawns the reader task.

        Raises:
            RuntimeError: If the symbol already has a live connection
        """
        symbol = subscription.wire_symbol
        existing = self._registry.connections.get(symbol)
        if existing is not None:
            raise RuntimeError(
                f"{subscription.symbol} already has a connection in state {existing.state}"
            )

        self._scheduler.cancel(subscription)

        url = build_stream_url(
            self._settings.ws_base_url(subscription.market_type),
            subscription.symbol,
            subscription.market_type,
            subscription.streams
        )
        connection = Connection(subscription=subscription, url=url)
        self._registry.connections[symbol] = connection
        connection.task = asyncio.create_task(
            self._run(connection), name=f"stream-{symbol}"
        )

        logger.info(f"Connecting {subscription.symbol} ({subscription.market_type}) to {url}")
        return connection

    def detach(self, symbol: str) -> Optional[asyncio.Task]:
        """
        Synchronously tear down a symbol's timer, keepalive, running coroutine
        handlers and connection.

        After this returns, nothing that was pending for the symbol can open
        a socket, route a frame or keep running a handler. The socket itself
        is closed by the reader task as it unwinds.

        Returns:
            The cancelled reader task to await, or None
        """
        symbol = symbol.lower()

        subscription = self._registry.subscriptions.get(symbol)
        if subscription is not None:
            self._scheduler.cancel(subscription)
        self._router.cancel_pending(symbol)

        connection = self._registry.connections.pop(symbol, None)
        if connection is None:
            return None

        self._scheduler.cancel(connection.subscription)
        connection.state = ConnectionState.CLOSING
        if connection.keepalive is not None:
            connection.keepalive.stop()

        task = connection.task
        if task is None or task.done():
            return None
        task.cancel()
        return task

    async def wait_closed(self, task: Optional[asyncio.Task]) -> None:
        """Wait for a detached reader task to finish closing its socket."""
        if task is None:
            return
        await asyncio.gather(task, return_exceptions=True)

    async def shutdown(self, symbol: str) -> None:
        """Detach a symbol and wait until its socket is closed."""
        await self.wait_closed(self.detach(symbol))

    def _is_live(self, connection: Connection) -> bool:
        return self._registry.connections.get(connection.symbol) is connection

    async def _run(self, connection: Connection) -> None:
        subscription = connection.subscription

        try:
            websocket = await self._connect(
                connection.url,
                ping_interval=None,
                ping_timeout=None,
                open_timeout=self._settings.connect_timeout
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = TransportError(connection.symbol, f"connect failed: {e}")
            logger.error(str(error))
            self._on_closed(connection, str(error))
            return

        connection.websocket = websocket
        connection.state = ConnectionState.OPEN
        subscription.reconnect_attempts = 0
        subscription.abandoned = False

        connection.keepalive = KeepAliveMonitor(
            connection.symbol, websocket, self._settings.keepalive_interval
        )
        connection.keepalive.start()

        logger.info(
            f"WebSocket connected for {subscription.symbol} "
            f"{', '.join(kind.value for kind in subscription.streams)}"
        )
        self._emit(EventType.CONNECTION_OPENED, {
            'symbol': subscription.symbol,
            'market_type': subscription.market_type,
            'url': connection.url,
        })

        reason = "closed by remote"
        try:
            async for frame in websocket:
                if not self._is_live(connection):
                    break
                self._router.route(connection.symbol, frame)
        except ConnectionClosed as e:
            reason = f"closed abnormally: {e}"
            logger.warning(f"WebSocket for {subscription.symbol} {reason}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = TransportError(connection.symbol, str(e))
            reason = str(error)
            logger.error(reason)
        finally:
            connection.state = ConnectionState.CLOSING
            connection.keepalive.stop()
            await self._close_socket(connection)

        self._on_closed(connection, reason)

    async def _close_socket(self, connection: Connection) -> None:
        try:
            await connection.websocket.close()
        except Exception as e:
            logger.debug(f"Error closing WebSocket for {connection.symbol.upper()}: {e}")

    def _on_closed(self, connection: Connection, reason: str) -> None:
        """Single close path: cleanup, then reconnect unless the subscription is gone."""
        if not self._is_live(connection):
            # Detached by unsubscribe/close/re-subscribe; they own cleanup
            return

        subscription = connection.subscription
        del self._registry.connections[connection.symbol]
        connection.state = ConnectionState.IDLE
        if connection.keepalive is not None:
            connection.keepalive.stop()
        self._scheduler.cancel(subscription)

        logger.info(f"WebSocket closed for {subscription.symbol}: {reason}")
        self._emit(EventType.CONNECTION_CLOSED, {
            'symbol': subscription.symbol,
            'reason': reason,
        })

        if not self._registry.is_current(subscription):
            return

        delay = self._scheduler.schedule(subscription, lambda: self._reopen(subscription))
        if delay is None:
            self._emit(EventType.RECONNECT_ABANDONED, {
                'symbol': subscription.symbol,
                'attempts': subscription.reconnect_attempts,
            })
        else:
            self._emit(EventType.RECONNECT_SCHEDULED, {
                'symbol': subscription.symbol,
                'attempt': subscription.reconnect_attempts,
                'delay': delay,
            })

    def _reopen(self, subscription: Subscription) -> None:
        if not self._registry.is_current(subscription):
            return
        if subscription.wire_symbol in self._registry.connections:
            return
        self.open_for(subscription)

    def _emit(self, event_type: EventType, data: Dict[str, Any]) -> None:
        if self._event_bus is None:
            return
        self._event_bus.emit(Event(event_type=event_type, data=data, source='ConnectionLifecycle'))
