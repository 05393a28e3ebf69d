"""
Typed stream payloads.

Binance stream payloads use single-letter keys. These models map them to
readable field names and coerce the exchange's numeric strings to floats.
Handlers receive raw dicts; parse_payload() is an opt-in convenience.

Examples:
    >>> trade = parse_payload("trade", {"e": "trade", "E": 1, "s": "BTCUSDT",
    ...                                 "t": 7, "p": "50000.0", "q": "0.1",
    ...                                 "T": 1, "m": True})
    >>> trade.price
    50000.0
"""

from typing import Any, Dict, List, Literal, Optional, Tuple, Type, Union

from pydantic import BaseModel, Field, ValidationError

from market_stream.core.errors import ParseError
from market_stream.core.models import StreamKind
from .stream_names import parse_stream_kind


class StreamPayload(BaseModel):
    """Base for stream payloads; unknown keys are ignored."""

    model_config = {"frozen": True, "populate_by_name": True}

    event_time: Optional[int] = Field(default=None, alias="E", description="Event time (ms)")


class TradePayload(StreamPayload):
    event_type: Literal["trade"] = Field(alias="e")
    symbol: str = Field(alias="s")
    trade_id: int = Field(alias="t")
    price: float = Field(alias="p")
    quantity: float = Field(alias="q")
    trade_time: int = Field(alias="T")
    is_buyer_maker: bool = Field(alias="m")


class TickerPayload(StreamPayload):
    """24 hour rolling window ticker."""

    event_type: Literal["24hrTicker"] = Field(alias="e")
    symbol: str = Field(alias="s")
    price_change: float = Field(alias="p")
    price_change_percent: float = Field(alias="P")
    weighted_avg_price: float = Field(alias="w")
    last_price: float = Field(alias="c")
    last_quantity: float = Field(default=0.0, alias="Q")
    open_price: float = Field(alias="o")
    high_price: float = Field(alias="h")
    low_price: float = Field(alias="l")
    volume: float = Field(alias="v")
    quote_volume: float = Field(alias="q")


class BookTickerPayload(StreamPayload):
    update_id: int = Field(alias="u")
    symbol: str = Field(alias="s")
    bid_price: float = Field(alias="b")
    bid_quantity: float = Field(alias="B")
    ask_price: float = Field(alias="a")
    ask_quantity: float = Field(alias="A")


class Candle(BaseModel):
    model_config = {"frozen": True, "populate_by_name": True}

    start_time: int = Field(alias="t")
    close_time: int = Field(alias="T")
    interval: str = Field(alias="i")
    open: float = Field(alias="o")
    close: float = Field(alias="c")
    high: float = Field(alias="h")
    low: float = Field(alias="l")
    volume: float = Field(alias="v")
    trade_count: int = Field(default=0, alias="n")
    is_closed: bool = Field(alias="x")


class KlinePayload(StreamPayload):
    event_type: Literal["kline"] = Field(alias="e")
    symbol: str = Field(alias="s")
    candle: Candle = Field(alias="k")


class DepthPayload(StreamPayload):
    event_type: Literal["depthUpdate"] = Field(alias="e")
    symbol: str = Field(alias="s")
    first_update_id: int = Field(alias="U")
    final_update_id: int = Field(alias="u")
    bids: List[Tuple[float, float]] = Field(alias="b")
    asks: List[Tuple[float, float]] = Field(alias="a")


class LiquidationOrder(BaseModel):
    model_config = {"frozen": True, "populate_by_name": True}

    symbol: str = Field(alias="s")
    side: Literal["BUY", "SELL"] = Field(alias="S")
    order_type: str = Field(alias="o")
    time_in_force: str = Field(alias="f")
    quantity: float = Field(alias="q")
    price: float = Field(alias="p")
    average_price: float = Field(alias="ap")
    status: str = Field(alias="X")
    last_filled_quantity: float = Field(alias="l")
    filled_quantity: float = Field(alias="z")
    trade_time: int = Field(alias="T")


class ForceOrderPayload(StreamPayload):
    """Liquidation order."""

    event_type: Literal["forceOrder"] = Field(alias="e")
    order: LiquidationOrder = Field(alias="o")


class MarkPricePayload(StreamPayload):
    """Mark price and funding rate."""

    event_type: Literal["markPriceUpdate"] = Field(alias="e")
    symbol: str = Field(alias="s")
    mark_price: float = Field(alias="p")
    index_price: float = Field(alias="i")
    estimated_settle_price: float = Field(alias="P")
    funding_rate: float = Field(alias="r")
    next_funding_time: int = Field(alias="T")


class OpenInterestPayload(StreamPayload):
    event_type: Literal["openInterest"] = Field(alias="e")
    symbol: str = Field(alias="s")
    open_interest: float = Field(alias="o")
    transaction_time: int = Field(alias="T")


PAYLOAD_MODELS: Dict[StreamKind, Type[StreamPayload]] = {
    StreamKind.TRADE: TradePayload,
    StreamKind.TICKER: TickerPayload,
    StreamKind.BOOK_TICKER: BookTickerPayload,
    StreamKind.KLINE: KlinePayload,
    StreamKind.DEPTH: DepthPayload,
    StreamKind.FORCE_ORDER: ForceOrderPayload,
    StreamKind.MARK_PRICE: MarkPricePayload,
    StreamKind.OPEN_INTEREST: OpenInterestPayload,
}


def parse_payload(kind: Union[str, StreamKind], data: Dict[str, Any]) -> StreamPayload:
    """
    Validate a raw stream payload into its typed model.

    Raises:
        UnsupportedStreamKind: If kind is unknown
        ParseError: If the payload does not match the kind's schema
    """
    model = PAYLOAD_MODELS[parse_stream_kind(kind)]
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Invalid {model.__name__} payload: {e}") from e
