"""
Command-line front end.

Usage:
    market-stream stream BTCUSDT --market spot --streams trade ticker
    market-stream stream ETHUSDT --market futures --streams markPrice forceOrder --duration 60
    market-stream snapshot BTCUSDT --market futures
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from market_stream.core.config import StreamSettings, load_credentials, load_settings
from market_stream.core.errors import ConfigError, MarketStreamError
from market_stream.core.event_bus import Event, EventBus, EventType
from market_stream.core.models import MARKET_TYPES, StreamKind
from market_stream.data.payloads import parse_payload
from market_stream.data.rest_client import BinanceRestClient
from market_stream.data.websocket_client import SubscriptionManager


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="market-stream",
        description="Stream Binance market data over multiplexed WebSockets"
    )
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")

    commands = parser.add_subparsers(dest="command", required=True)

    stream = commands.add_parser("stream", help="Subscribe to live streams and log payloads")
    stream.add_argument("symbol", help="Trading pair symbol (e.g., BTCUSDT)")
    stream.add_argument("--market", choices=MARKET_TYPES, default="spot")
    stream.add_argument(
        "--streams",
        nargs="+",
        default=[StreamKind.TRADE.value],
        choices=[kind.value for kind in StreamKind],
        help="Stream kinds to subscribe to"
    )
    stream.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Seconds to stream before exiting (default: until interrupted)"
    )

    snapshot = commands.add_parser("snapshot", help="Print a REST market snapshot as JSON")
    snapshot.add_argument("symbol", help="Trading pair symbol (e.g., BTCUSDT)")
    snapshot.add_argument("--market", choices=MARKET_TYPES, default="spot")

    return parser


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def _log_lifecycle(event: Event) -> None:
    if event.event_type == EventType.RECONNECT_ABANDONED:
        logger.error(f"{event.data['symbol']} abandoned after {event.data['attempts']} reconnect attempts")
    else:
        logger.info(f"{event.event_type.value}: {event.data}")


def _make_printer(kind: StreamKind):
    def print_payload(data):
        try:
            payload = parse_payload(kind, data)
        except MarketStreamError as e:
            logger.warning(f"Unparsed {kind.value} payload: {e}")
            payload = data
        logger.info(f"{kind.value}: {payload!r}")
    print_payload.__name__ = f"print_{kind.value}"
    return print_payload


async def run_stream(settings: StreamSettings, symbol: str, market: str,
                     streams: List[str], duration: Optional[float]) -> int:
    event_bus = EventBus()
    for event_type in EventType:
        event_bus.subscribe(event_type, _log_lifecycle)

    async with SubscriptionManager(settings=settings, event_bus=event_bus) as manager:
        result = await manager.subscribe(symbol, market, streams)
        if not result:
            logger.error(str(result.error))
            return 2

        for kind in dict.fromkeys(StreamKind(stream) for stream in streams):
            manager.on_stream_data(symbol, kind, _make_printer(kind))

        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)

    return 0


async def run_snapshot(settings: StreamSettings, symbol: str, market: str) -> int:
    api_key, api_secret = load_credentials(settings.use_testnet)
    async with BinanceRestClient(settings, api_key=api_key, api_secret=api_secret) as rest:
        snapshot = await rest.fetch_market_snapshot(symbol, market)
    print(json.dumps(snapshot, indent=2, default=str))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        configure_logging("ERROR")
        logger.error(str(e))
        return 1

    configure_logging(args.log_level or settings.log_level)

    try:
        if args.command == "stream":
            return asyncio.run(
                run_stream(settings, args.symbol, args.market, args.streams, args.duration)
            )
        return asyncio.run(run_snapshot(settings, args.symbol, args.market))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 130
    except MarketStreamError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
