"""
Error taxonomy for the streaming subscription manager.

Transport and parse failures are handled inside the stream core and only
logged. Caller input errors (unknown stream kinds, handlers for symbols that
were never subscribed) are returned from the public API wrapped in a Result
instead of being raised across it.
"""

from dataclasses import dataclass
from typing import Optional


class MarketStreamError(Exception):
    """Base class for all market-stream errors."""
    pass


class ConfigError(MarketStreamError):
    """
    Raised when config.yaml or credential environment variables are
    missing or invalid.
    """
    pass


class TransportError(MarketStreamError):
    """
    Connect, send or receive failure on a stream socket.

    Never surfaced to subscribers; it feeds the close/reconnect path.
    """

    def __init__(self, symbol: str, message: str):
        super().__init__(f"Transport error for {symbol.upper()}: {message}")
        self.symbol = symbol


class ParseError(MarketStreamError):
    """Malformed inbound frame or payload. The frame is dropped."""
    pass


class HandlerError(MarketStreamError):
    """
    A consumer callback raised while handling a stream event.

    Isolated per callback: sibling handlers and the connection are unaffected.
    """

    def __init__(self, symbol: str, kind: str, handler_name: str, cause: BaseException):
        super().__init__(
            f"Handler {handler_name} failed for {symbol.upper()} {kind}: {cause}"
        )
        self.symbol = symbol
        self.kind = kind
        self.handler_name = handler_name
        self.cause = cause


class UnsupportedStreamKind(MarketStreamError, ValueError):
    """Stream kind outside the supported set was given to the name builder."""

    def __init__(self, kind: object):
        super().__init__(f"Unsupported stream kind: {kind!r}")
        self.kind = kind


class InvalidStreamKind(UnsupportedStreamKind):
    """A subscribe or handler registration request named an unknown stream kind."""
    pass


class UnknownSubscription(MarketStreamError, KeyError):
    """Handler registration for a symbol that has no active subscription."""

    def __init__(self, symbol: str):
        super().__init__(symbol)
        self.symbol = symbol

    def __str__(self) -> str:
        return f"No active subscription for {self.symbol.upper()}"


class UpstreamRequestError(MarketStreamError):
    """A REST request to the exchange failed."""
    pass


@dataclass(frozen=True)
class Result:
    """
    Outcome of a public manager operation.

    Truthy on success. On failure, `error` holds the typed error instance.

    Examples:
        >>> result = manager.on_stream_data("BTCUSDT", "trade", print)
        >>> if not result:
        ...     print(result.error)
    """

    error: Optional[MarketStreamError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls) -> "Result":
        return cls()

    @classmethod
    def failure(cls, error: MarketStreamError) -> "Result":
        return cls(error=error)
