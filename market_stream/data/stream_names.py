"""
Wire stream name construction.

Maps (symbol, market type, stream kind) to the exchange's stream identifier
and joins a symbol's kinds into a combined-stream URL. Pure functions with no
I/O or state.

Examples:
    >>> build_stream_name("BTCUSDT", "spot", "trade")
    'btcusdt@trade'
    >>> build_stream_name("ETHUSDT", "futures", "markPrice")
    'ethusdt@markPrice@1s'
    >>> build_stream_path("BTCUSDT", "spot", ["trade", "ticker"])
    'btcusdt@trade/btcusdt@ticker'
"""

from typing import Iterable, Union

from market_stream.core.errors import UnsupportedStreamKind
from market_stream.core.models import StreamKind

STREAM_DELIMITER = "@"

# Futures-only update cadence suffixes
FUTURES_SUFFIXES = {
    StreamKind.MARK_PRICE: "@1s",
    StreamKind.OPEN_INTEREST: "@1s",
}


def parse_stream_kind(kind: Union[str, StreamKind]) -> StreamKind:
    """
    Convert a stream kind token to StreamKind.

    Raises:
        UnsupportedStreamKind: If the token is not a supported kind
    """
    if isinstance(kind, StreamKind):
        return kind
    try:
        return StreamKind(kind)
    except ValueError:
        raise UnsupportedStreamKind(kind) from None


def build_stream_name(symbol: str, market_type: str, kind: Union[str, StreamKind]) -> str:
    """
    Build the wire stream name for one kind.

    Args:
        symbol: Trading pair, any case
        market_type: 'spot' or 'futures'
        kind: Stream kind

    Returns:
        str: '<lower-symbol>@<kind>' plus the futures cadence suffix if any

    Raises:
        UnsupportedStreamKind: If kind is not a supported stream kind
    """
    stream_kind = parse_stream_kind(kind)
    name = f"{symbol.lower()}{STREAM_DELIMITER}{stream_kind.value}"
    if market_type == "futures":
        name += FUTURES_SUFFIXES.get(stream_kind, "")
    return name


def build_stream_path(symbol: str, market_type: str, kinds: Iterable[Union[str, StreamKind]]) -> str:
    """Join the stream names of all kinds into a combined-stream path."""
    return "/".join(build_stream_name(symbol, market_type, kind) for kind in kinds)


def build_stream_url(
    base_url: str,
    symbol: str,
    market_type: str,
    kinds: Iterable[Union[str, StreamKind]]
) -> str:
    """Return the full connection target for a symbol's requested kinds."""
    return f"{base_url.rstrip('/')}/{build_stream_path(symbol, market_type, kinds)}"
