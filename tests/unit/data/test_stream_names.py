"""
Unit tests for wire stream name construction.
"""

import pytest

from market_stream.core.errors import UnsupportedStreamKind
from market_stream.core.models import StreamKind
from market_stream.data.stream_names import (
    build_stream_name,
    build_stream_path,
    build_stream_url,
    parse_stream_kind,
)


class TestStreamName:
    """Test single stream names."""

    @pytest.mark.parametrize("kind", [kind.value for kind in StreamKind])
    def test_spot_names_are_unmodified(self, kind):
        assert build_stream_name("BTCUSDT", "spot", kind) == f"btcusdt@{kind}"

    def test_futures_mark_price_suffix(self):
        assert build_stream_name("ETHUSDT", "futures", "markPrice") == "ethusdt@markPrice@1s"

    def test_futures_open_interest_suffix(self):
        assert build_stream_name("ETHUSDT", "futures", "openInterest") == "ethusdt@openInterest@1s"

    def test_futures_force_order_has_no_suffix(self):
        assert build_stream_name("ETHUSDT", "futures", "forceOrder") == "ethusdt@forceOrder"

    def test_futures_regular_kinds_unmodified(self):
        assert build_stream_name("ETHUSDT", "futures", "trade") == "ethusdt@trade"
        assert build_stream_name("ETHUSDT", "futures", "depth") == "ethusdt@depth"

    def test_accepts_stream_kind_enum(self):
        assert build_stream_name("btcusdt", "spot", StreamKind.BOOK_TICKER) == "btcusdt@bookTicker"

    def test_unknown_kind_rejected(self):
        with pytest.raises(UnsupportedStreamKind, match="aggTrade"):
            build_stream_name("BTCUSDT", "spot", "aggTrade")

    def test_compound_name_is_not_a_kind(self):
        with pytest.raises(UnsupportedStreamKind):
            parse_stream_kind("markPrice@1s")


class TestCombinedStream:
    """Test combined-stream path and URL construction."""

    def test_spot_combined_path(self):
        path = build_stream_path("BTCUSDT", "spot", ["trade", "ticker"])

        assert path == "btcusdt@trade/btcusdt@ticker"

    def test_futures_combined_path(self):
        path = build_stream_path("ETHUSDT", "futures", ["openInterest"])

        assert path == "ethusdt@openInterest@1s"

    def test_url_joins_base_and_path(self):
        url = build_stream_url(
            "wss://stream.binance.com:9443/ws/", "BTCUSDT", "spot",
            ["trade", "ticker", "bookTicker"]
        )

        assert url == (
            "wss://stream.binance.com:9443/ws/"
            "btcusdt@trade/btcusdt@ticker/btcusdt@bookTicker"
        )
