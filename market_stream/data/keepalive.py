"""
Keepalive pings for open stream connections.
"""

import asyncio
from typing import Any, Optional

from loguru import logger


class KeepAliveMonitor:
    """
    Sends a WebSocket ping on a fixed interval while a connection is open.

    Ping failures are logged and otherwise ignored. Connection health is
    decided by the transport's close signalling alone; pong round trips are
    not tracked, so a half-open socket that silently stops answering is not
    detected here.

    Examples:
        >>> monitor = KeepAliveMonitor("btcusdt", websocket, interval=180.0)
        >>> monitor.start()
        >>> # ... connection open ...
        >>> monitor.stop()
    """

    def __init__(self, symbol: str, websocket: Any, interval: float = 180.0):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")

        self.symbol = symbol
        self.interval = interval
        self._websocket = websocket
        self._task: Optional[asyncio.Task] = None
        self.probes_sent = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start pinging. No-op if already running."""
        if self.is_running:
            return
        self._task = asyncio.create_task(
            self._run(), name=f"keepalive-{self.symbol}"
        )

    def stop(self) -> None:
        """Cancel the ping loop. Safe to call multiple times."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self._websocket.ping()
                self.probes_sent += 1
                logger.debug(f"Sent keepalive ping for {self.symbol.upper()}")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Error sending ping for {self.symbol.upper()}: {e}")
