"""
Pytest configuration and shared fixtures for Market Stream tests.

This module provides:
- An in-memory WebSocket stand-in fed from a queue
- A connector fixture that records every connection attempt
- Fast stream settings so reconnect and keepalive tests run in milliseconds
- Sample stream frames
"""

import asyncio
import json

import pytest

from market_stream.core.config import StreamSettings


class FakeWebSocket:
    """In-memory WebSocket: frames are fed by the test, iteration ends on close."""

    def __init__(self, url: str):
        self.url = url
        self.closed = False
        self.pings = 0
        self.fail_pings = False
        self._frames: asyncio.Queue = asyncio.Queue()

    def __aiter__(self):
        return self

    async def __anext__(self):
        frame = await self._frames.get()
        if frame is None:
            raise StopAsyncIteration
        return frame

    def feed(self, message) -> None:
        """Queue an inbound frame; dicts are JSON-encoded."""
        if isinstance(message, dict):
            message = json.dumps(message)
        self._frames.put_nowait(message)

    def drop(self) -> None:
        """Simulate the remote end closing the connection."""
        self._frames.put_nowait(None)

    async def ping(self):
        if self.fail_pings:
            raise ConnectionError("ping failed")
        self.pings += 1

    async def close(self):
        if not self.closed:
            self.closed = True
            self._frames.put_nowait(None)


class FakeConnector:
    """Stand-in for websockets.connect recording URLs and sockets."""

    def __init__(self):
        self.urls = []
        self.sockets = []
        self.kwargs = []
        self.failures = 0  # negative: fail forever

    async def __call__(self, url, **kwargs):
        self.urls.append(url)
        self.kwargs.append(kwargs)
        if self.failures:
            if self.failures > 0:
                self.failures -= 1
            raise OSError("connection refused")
        websocket = FakeWebSocket(url)
        self.sockets.append(websocket)
        return websocket

    @property
    def calls(self) -> int:
        return len(self.urls)

    @property
    def latest(self) -> FakeWebSocket:
        return self.sockets[-1]


async def _settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settle():
    """Provide a coroutine that lets pending loop callbacks and tasks run."""
    return _settle


@pytest.fixture
def connector():
    """Provide a recording fake connector."""
    return FakeConnector()


@pytest.fixture
def fast_settings():
    """Settings with millisecond backoff and keepalive."""
    return StreamSettings(
        use_testnet=False,
        reconnect_delay=0.01,
        max_reconnect_attempts=5,
        keepalive_interval=0.01,
        connect_timeout=1.0
    )


@pytest.fixture
def trade_frame():
    """Provide a sample trade envelope for BTCUSDT."""
    return {
        'stream': 'btcusdt@trade',
        'data': {
            'e': 'trade',
            'E': 1700000000000,
            's': 'BTCUSDT',
            't': 12345,
            'p': '50000.00',
            'q': '1.0',
            'T': 1700000000000,
            'm': True
        }
    }


@pytest.fixture
def mark_price_frame():
    """Provide a sample futures mark price envelope for ETHUSDT."""
    return {
        'stream': 'ethusdt@markPrice@1s',
        'data': {
            'e': 'markPriceUpdate',
            'E': 1700000000000,
            's': 'ETHUSDT',
            'p': '2000.50',
            'i': '2000.10',
            'P': '2001.00',
            'r': '0.0001',
            'T': 1700003600000
        }
    }
