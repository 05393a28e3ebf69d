"""
Core data model for stream subscriptions.

This module defines:
- StreamKind: Logical data feeds available on the exchange streams
- ConnectionState: Observable per-symbol connection states
- Subscription: Per-symbol subscription with reconnect bookkeeping
"""

import asyncio
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

MarketType = Literal["spot", "futures"]

MARKET_TYPES = ("spot", "futures")


class StreamKind(str, Enum):
    """
    Supported stream kinds.

    Values are the exact tokens used in wire stream names. The last three
    only make sense on the futures market, but are not rejected for spot.
    """

    TRADE = "trade"
    TICKER = "ticker"
    BOOK_TICKER = "bookTicker"
    KLINE = "kline"
    DEPTH = "depth"
    FORCE_ORDER = "forceOrder"
    MARK_PRICE = "markPrice"
    OPEN_INTEREST = "openInterest"

    def __str__(self) -> str:
        return self.value


class ConnectionState(str, Enum):
    """
    Connection state of a subscribed symbol as seen by callers.

    IDLE -> CONNECTING -> OPEN -> CLOSING -> IDLE, with RECONNECT_PENDING
    entered after an unexpected close and ABANDONED once reconnect attempts
    are exhausted. ABSENT means the symbol is not subscribed.
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    RECONNECT_PENDING = "reconnect_pending"
    ABANDONED = "abandoned"
    ABSENT = "absent"

    def __str__(self) -> str:
        return self.value


class Subscription(BaseModel):
    """
    Mutable per-symbol stream subscription.

    Exactly one Subscription exists per symbol. Re-subscribing replaces it,
    which resets the reconnect counter and the requested stream set.

    Attributes:
        symbol: Trading pair, normalized to upper case for display
        market_type: 'spot' or 'futures'
        streams: Requested stream kinds, in request order
        reconnect_attempts: Consecutive reconnects since the last successful open
        reconnect_handle: Pending reconnect timer, if any
        abandoned: True once reconnect attempts were exhausted

    Examples:
        >>> sub = Subscription(symbol="btcusdt", market_type="spot", streams=["trade"])
        >>> sub.symbol, sub.wire_symbol
        ('BTCUSDT', 'btcusdt')
    """

    # NOT frozen - reconnect bookkeeping mutates it in place
    model_config = {"arbitrary_types_allowed": True}

    symbol: str = Field(
        min_length=1,
        pattern=r"^[A-Z0-9]+$",
        description="Trading pair symbol"
    )
    market_type: MarketType = Field(
        description="Market the symbol trades on"
    )
    streams: List[StreamKind] = Field(
        min_length=1,
        description="Requested stream kinds"
    )
    reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Reconnect attempts since the last successful open"
    )
    reconnect_handle: Optional[asyncio.TimerHandle] = Field(
        default=None,
        description="Pending reconnect timer"
    )
    abandoned: bool = Field(
        default=False,
        description="Reconnect attempts exhausted"
    )

    @field_validator("symbol", mode="before")
    @classmethod
    def normalize_symbol(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @property
    def wire_symbol(self) -> str:
        """Lower-case symbol used in stream names and registry keys."""
        return self.symbol.lower()

    @property
    def has_pending_reconnect(self) -> bool:
        return self.reconnect_handle is not None

    def __repr__(self) -> str:
        streams = ",".join(stream.value for stream in self.streams)
        return (
            f"Subscription({self.symbol}, {self.market_type}, [{streams}], "
            f"attempts={self.reconnect_attempts})"
        )
