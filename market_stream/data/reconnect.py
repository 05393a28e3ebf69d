"""
Reconnect backoff scheduling.

Delay for the next attempt is base_delay * 2 ** attempts, where attempts is
the counter before incrementing: the first reconnect waits base_delay, the
second twice that, and so on. Once the counter reaches max_attempts no timer
is armed and the subscription is marked abandoned.
"""

import asyncio
from typing import Callable, Optional

from loguru import logger

from market_stream.core.models import Subscription


class ReconnectScheduler:
    """
    Arms and cancels the single pending reconnect timer of a subscription.

    Timers are event loop callbacks (loop.call_later), so cancel() takes
    effect synchronously: a cancelled timer never fires.

    Examples:
        >>> scheduler = ReconnectScheduler(base_delay=5.0, max_attempts=5)
        >>> [scheduler.compute_delay(a) for a in range(5)]
        [5.0, 10.0, 20.0, 40.0, 80.0]
    """

    def __init__(self, base_delay: float = 5.0, max_attempts: int = 5):
        if base_delay <= 0:
            raise ValueError(f"base_delay must be positive, got {base_delay}")
        if max_attempts < 0:
            raise ValueError(f"max_attempts must be non-negative, got {max_attempts}")

        self.base_delay = base_delay
        self.max_attempts = max_attempts

    def compute_delay(self, attempt: int) -> float:
        """Backoff delay in seconds for a counter value of `attempt`."""
        return self.base_delay * (2 ** attempt)

    def schedule(self, subscription: Subscription, callback: Callable[[], None]) -> Optional[float]:
        """
        Arm a reconnect timer for the subscription.

        Any previously pending timer is cancelled first.

        Args:
            subscription: Subscription to reconnect
            callback: Called on the event loop when the timer fires

        Returns:
            The delay in seconds, or None if attempts are exhausted
        """
        self.cancel(subscription)

        if subscription.reconnect_attempts >= self.max_attempts:
            subscription.abandoned = True
            logger.error(
                f"Max reconnection attempts ({self.max_attempts}) reached for "
                f"{subscription.symbol}, giving up until re-subscribed"
            )
            return None

        delay = self.compute_delay(subscription.reconnect_attempts)
        subscription.reconnect_attempts += 1

        loop = asyncio.get_running_loop()
        subscription.reconnect_handle = loop.call_later(delay, self._fire, subscription, callback)

        logger.info(
            f"Reconnecting {subscription.symbol} in {delay}s "
            f"(attempt {subscription.reconnect_attempts}/{self.max_attempts})"
        )
        return delay

    def cancel(self, subscription: Subscription) -> bool:
        """Cancel the pending timer, returning True if one was pending."""
        handle = subscription.reconnect_handle
        if handle is None:
            return False
        handle.cancel()
        subscription.reconnect_handle = None
        return True

    @staticmethod
    def _fire(subscription: Subscription, callback: Callable[[], None]) -> None:
        subscription.reconnect_handle = None
        callback()
