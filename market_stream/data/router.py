"""
Inbound frame routing.

Frames arrive as JSON envelopes of the form {"stream": "<wire-name>",
"data": {...}}. The router recovers the stream kind from the wire name and
hands the payload to every handler registered for (symbol, kind).
"""

import asyncio
import inspect
import json
from collections import defaultdict
from typing import Any, DefaultDict, Optional, Set, Union

from loguru import logger

from market_stream.core.errors import HandlerError, ParseError
from .registry import HandlerRegistry
from .stream_names import STREAM_DELIMITER


class MessageRouter:
    """
    Dispatches parsed stream payloads to registered handlers.

    Handler failures are isolated per handler: one failing consumer never
    prevents its siblings or later frames from being delivered. Frames for
    (symbol, kind) pairs without handlers are dropped silently, since a symbol
    may have open streams nobody has attached a listener to yet.

    Coroutine handlers are scheduled as tasks rather than awaited, so routing
    never suspends. Those tasks are tracked per symbol until they finish and
    are cancelled by cancel_pending() when the symbol is torn down.
    """

    def __init__(self, handlers: HandlerRegistry):
        self._handlers = handlers
        self._tasks: DefaultDict[str, Set[asyncio.Task]] = defaultdict(set)

    @staticmethod
    def parse(frame: Union[str, bytes]) -> dict:
        """
        Decode a raw frame into its envelope.

        Raises:
            ParseError: If the frame is not JSON or lacks 'stream'/'data'
        """
        try:
            envelope = json.loads(frame)
        except (TypeError, ValueError) as e:
            raise ParseError(f"Frame is not valid JSON: {e}") from e

        if not isinstance(envelope, dict):
            raise ParseError(f"Frame must be a JSON object, got {type(envelope).__name__}")
        if not isinstance(envelope.get("stream"), str):
            raise ParseError("Frame has no 'stream' name")
        if "data" not in envelope:
            raise ParseError(f"Frame for {envelope['stream']} has no 'data' payload")

        return envelope

    @staticmethod
    def resolve_kind(stream_name: str) -> Optional[str]:
        """
        Extract the stream kind token from a wire stream name.

        Examples:
            >>> MessageRouter.resolve_kind("btcusdt@trade")
            'trade'
            >>> MessageRouter.resolve_kind("ethusdt@markPrice@1s")
            'markPrice'
            >>> MessageRouter.resolve_kind("btcusdt") is None
            True
        """
        _, delimiter, remainder = stream_name.partition(STREAM_DELIMITER)
        if not delimiter or not remainder:
            return None
        return remainder.split(STREAM_DELIMITER, 1)[0]

    def route(self, symbol: str, frame: Union[str, bytes]) -> int:
        """
        Route one inbound frame for a symbol.

        Args:
            symbol: Owning symbol of the connection the frame arrived on
            frame: Raw frame text or bytes

        Returns:
            int: Number of handlers invoked
        """
        try:
            envelope = self.parse(frame)
        except ParseError as e:
            logger.warning(f"Dropping malformed frame for {symbol.upper()}: {e}")
            return 0

        kind = self.resolve_kind(envelope["stream"])
        if kind is None:
            logger.warning(
                f"Dropping frame for {symbol.upper()} with unrecognised stream name "
                f"{envelope['stream']!r}"
            )
            return 0

        handlers = self._handlers.get(symbol, kind)
        if not handlers:
            return 0

        payload = envelope["data"]
        for handler in handlers:
            self._invoke(handler, symbol, kind, payload)

        logger.debug(f"Routed {envelope['stream']} to {len(handlers)} handler(s)")
        return len(handlers)

    def _invoke(self, handler, symbol: str, kind: str, payload: Any) -> None:
        try:
            result = handler(payload)
        except (Exception, asyncio.CancelledError) as e:
            # Handlers run synchronously, so this CancelledError is the handler's own
            self._log_failure(HandlerError(symbol, kind, _handler_name(handler), e))
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks[symbol.lower()].add(task)
            task.add_done_callback(
                lambda done: self._on_task_done(done, symbol, kind, handler)
            )

    def _on_task_done(self, task: asyncio.Future, symbol: str, kind: str, handler) -> None:
        pending = self._tasks.get(symbol.lower())
        if pending is not None:
            pending.discard(task)
            if not pending:
                del self._tasks[symbol.lower()]

        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._log_failure(HandlerError(symbol, kind, _handler_name(handler), error))

    def pending_count(self, symbol: str) -> int:
        """
        Number of coroutine handler tasks still running for a symbol.

        Args:
            symbol: Symbol, any case

        Returns:
            int: Tasks started by route() that have not finished yet
        """
        return len(self._tasks.get(symbol.lower(), ()))

    def cancel_pending(self, symbol: str) -> int:
        """
        Cancel every running coroutine handler task of a symbol.

        Called when the symbol is torn down, so no handler keeps acting on
        its frames after unsubscribe or close.

        Returns:
            int: Number of tasks cancelled
        """
        tasks = self._tasks.pop(symbol.lower(), set())
        for task in tasks:
            task.cancel()
        return len(tasks)

    @staticmethod
    def _log_failure(error: HandlerError) -> None:
        logger.error(f"Error in message handler: {error}")


def _handler_name(handler) -> str:
    return getattr(handler, "__name__", type(handler).__name__)
