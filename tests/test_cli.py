"""
Tests for the command-line front end.
"""

import json
import sys

import pytest
from loguru import logger
from unittest.mock import AsyncMock, patch

from market_stream.cli import build_parser, main, run_stream
from market_stream.core.config import StreamSettings


@pytest.fixture(autouse=True)
def restore_logging():
    """main() reconfigures the global logger; put the default sink back."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("use_testnet: false\nreconnect_delay: 0.01\nlog_level: DEBUG\n")
    return path


@pytest.fixture
def no_credentials(monkeypatch):
    for name in ('BINANCE_MAINNET_API_KEY', 'BINANCE_MAINNET_API_SECRET'):
        monkeypatch.delenv(name, raising=False)


class TestParser:

    def test_stream_command(self):
        args = build_parser().parse_args(
            ["stream", "ETHUSDT", "--market", "futures", "--streams", "markPrice", "forceOrder",
             "--duration", "30"]
        )

        assert args.command == "stream"
        assert args.symbol == "ETHUSDT"
        assert args.market == "futures"
        assert args.streams == ["markPrice", "forceOrder"]
        assert args.duration == 30.0

    def test_stream_defaults(self):
        args = build_parser().parse_args(["stream", "BTCUSDT"])

        assert args.market == "spot"
        assert args.streams == ["trade"]
        assert args.duration is None
        assert args.config is None

    def test_rejects_unknown_stream_kind(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["stream", "BTCUSDT", "--streams", "aggTrade"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:

    def test_missing_config_returns_1(self, tmp_path):
        with patch('market_stream.cli.load_dotenv'):
            code = main(["--config", str(tmp_path / "missing.yaml"), "snapshot", "BTCUSDT"])

        assert code == 1

    def test_snapshot_prints_json(self, config_file, no_credentials, capsys):
        mock_client = AsyncMock()
        mock_client.get_ticker.return_value = {'symbol': 'BTCUSDT', 'lastPrice': '50000.00'}

        with patch('market_stream.cli.load_dotenv'), patch(
            'market_stream.data.rest_client.AsyncClient.create',
            new_callable=AsyncMock,
            return_value=mock_client
        ):
            code = main(["--config", str(config_file), "snapshot", "btcusdt"])

        assert code == 0
        assert json.loads(capsys.readouterr().out) == {'symbol': 'BTCUSDT', 'lastPrice': '50000.00'}

    def test_upstream_failure_returns_1(self, config_file, no_credentials):
        with patch('market_stream.cli.load_dotenv'), patch(
            'market_stream.data.rest_client.AsyncClient.create',
            new_callable=AsyncMock,
            side_effect=ConnectionError("network down")
        ):
            code = main(["--config", str(config_file), "snapshot", "BTCUSDT"])

        assert code == 1


class TestRunStream:

    @pytest.mark.asyncio
    async def test_streams_for_duration(self, connector, trade_frame):
        settings = StreamSettings(use_testnet=False, reconnect_delay=0.01)

        with patch('websockets.connect', connector):
            code = await run_stream(settings, "BTCUSDT", "spot", ["trade"], duration=0.05)

        assert code == 0
        assert connector.urls == ["wss://stream.binance.com:9443/ws/btcusdt@trade"]
        assert connector.latest.closed

    @pytest.mark.asyncio
    async def test_invalid_stream_kind_returns_2(self, connector):
        settings = StreamSettings(use_testnet=False)

        with patch('websockets.connect', connector):
            code = await run_stream(settings, "BTCUSDT", "spot", ["aggTrade"], duration=0.01)

        assert code == 2
        assert connector.calls == 0
