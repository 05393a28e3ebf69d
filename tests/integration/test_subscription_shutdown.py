"""
Integration tests for subscription teardown and cleanup.

This module tests that unsubscribe() and close() leave nothing behind,
including:
- Sockets closed and reader tasks finished
- Keepalive monitors stopped
- No reconnect after teardown, even with a timer armed
- Shutdown while frames are still streaming
"""

import asyncio

import pytest

from market_stream.core.event_bus import EventBus, EventType
from market_stream.core.models import ConnectionState
from market_stream.data.websocket_client import SubscriptionManager


@pytest.fixture
def event_bus():
    """Create EventBus instance for testing."""
    return EventBus()


@pytest.fixture
def manager(fast_settings, connector, event_bus):
    """Create SubscriptionManager instance for testing."""
    return SubscriptionManager(settings=fast_settings, event_bus=event_bus, connect=connector)


class TestGracefulShutdown:
    """Test graceful shutdown functionality."""

    @pytest.mark.asyncio
    async def test_close_without_subscriptions(self, manager):
        """
        Test that close() works on an unused manager.

        Verifies:
        - close() can be called without any connection
        - Method is idempotent
        """
        await manager.close()
        await manager.close()

        assert manager.is_closed

    @pytest.mark.asyncio
    async def test_close_stops_reader_tasks_and_keepalive(self, manager, settle):
        """
        Test that close() finishes every reader task and keepalive monitor.

        Verifies:
        - No reader task is left pending
        - Keepalive tasks are cancelled
        """
        await manager.subscribe("BTCUSDT", "spot", ["trade"])
        await manager.subscribe("ETHUSDT", "futures", ["markPrice", "forceOrder"])
        await settle()

        connections = list(manager._registry.connections.values())
        assert len(connections) == 2

        await manager.close()

        for connection in connections:
            assert connection.task.done()
            assert not connection.keepalive.is_running
            assert connection.websocket.closed

    @pytest.mark.asyncio
    async def test_no_stray_tasks_after_close(self, manager, settle):
        """Test that close() leaves no stream or keepalive task running."""
        await manager.subscribe("BTCUSDT", "spot", ["trade"])
        await settle()

        await manager.close()
        await settle()

        names = [
            task.get_name() for task in asyncio.all_tasks()
            if not task.done()
        ]
        assert not any(name.startswith(("stream-", "keepalive-")) for name in names)

    @pytest.mark.asyncio
    async def test_close_during_active_streaming(self, manager, connector, trade_frame, settle):
        """
        Test shutdown while frames are arriving.

        Verifies:
        - Frames already routed were delivered
        - Frames queued at close time are not
        """
        received = []
        await manager.subscribe("BTCUSDT", "spot", ["trade"])
        manager.on_stream_data("BTCUSDT", "trade", received.append)
        await settle()

        connector.latest.feed(trade_frame)
        await settle()
        connector.latest.feed(trade_frame)
        connector.latest.feed(trade_frame)
        await manager.close()

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_close_with_armed_reconnect_timer(self, manager, connector, event_bus, settle):
        """
        Test that a reconnect timer armed before close() never fires.

        Verifies:
        - State is ABSENT after close
        - No further connection attempt is made
        """
        opened = []
        event_bus.subscribe(EventType.CONNECTION_OPENED, opened.append)

        await manager.subscribe("BTCUSDT", "spot", ["trade"])
        await settle()
        connector.latest.drop()
        await settle()
        assert manager.get_connection_state("BTCUSDT") == ConnectionState.RECONNECT_PENDING

        await manager.close()
        await asyncio.sleep(0.1)

        assert connector.calls == 1
        assert len(opened) == 1
        assert manager.get_connection_state("BTCUSDT") == ConnectionState.ABSENT


class TestContextManager:
    """Test async context manager cleanup."""

    @pytest.mark.asyncio
    async def test_context_manager_cleanup_on_exception(self, fast_settings, connector, settle):
        """Test that sockets are closed even when the body raises."""
        with pytest.raises(RuntimeError, match="boom"):
            async with SubscriptionManager(settings=fast_settings, connect=connector) as manager:
                await manager.subscribe("BTCUSDT", "spot", ["trade"])
                await settle()
                raise RuntimeError("boom")

        assert manager.is_closed
        assert connector.latest.closed
        assert manager.get_connection_state("BTCUSDT") == ConnectionState.ABSENT
