"""
Binance REST data source.

Request/response collaborator of the streaming core, built on
python-binance's AsyncClient. Each fetch method performs a single request
and surfaces any failure as UpstreamRequestError; retry policy is left to
the caller.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from binance import AsyncClient
from binance.exceptions import BinanceAPIException, BinanceRequestException
from loguru import logger

from market_stream.core.config import StreamSettings
from market_stream.core.errors import UpstreamRequestError
from market_stream.core.models import MARKET_TYPES

LIQUIDATION_WINDOW_MS = 24 * 60 * 60 * 1000


class BinanceRestClient:
    """
    Async REST client for spot and USDT-margined futures market data.

    Examples:
        >>> async with BinanceRestClient() as rest:
        ...     ticker = await rest.fetch_ticker("BTCUSDT", "spot")
        ...     snapshot = await rest.fetch_market_snapshot("BTCUSDT", "futures")
    """

    def __init__(
        self,
        settings: Optional[StreamSettings] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None
    ):
        self.settings = settings if settings is not None else StreamSettings(use_testnet=False)
        self._api_key = api_key
        self._api_secret = api_secret
        self.client: Optional[AsyncClient] = None

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    async def connect(self) -> None:
        """
        Create the underlying AsyncClient.

        Raises:
            UpstreamRequestError: If the client cannot reach the exchange
        """
        if self.client is not None:
            return

        try:
            self.client = await AsyncClient.create(
                api_key=self._api_key,
                api_secret=self._api_secret,
                testnet=self.settings.use_testnet,
                requests_params={"timeout": self.settings.http_timeout}
            )
        except Exception as e:
            logger.error(f"Failed to create Binance REST client: {e}")
            raise UpstreamRequestError(f"REST client connection failed: {e}") from e

        env = "testnet" if self.settings.use_testnet else "mainnet"
        logger.info(f"Binance REST client connected ({env})")

    async def disconnect(self) -> None:
        """Close the HTTP session. Safe to call multiple times."""
        if self.client:
            await self.client.close_connection()
            self.client = None
            logger.info("Binance REST client disconnected")

    async def fetch_ticker(self, symbol: str, market_type: str) -> Dict[str, Any]:
        """24 hour ticker statistics for a symbol."""
        client = self._require_client()
        call = client.get_ticker if self._market(market_type) == "spot" else client.futures_ticker
        return await self._request(f"{market_type} ticker", call, symbol=symbol.upper())

    async def fetch_open_interest(self, symbol: str) -> Dict[str, Any]:
        client = self._require_client()
        return await self._request(
            "open interest", client.futures_open_interest, symbol=symbol.upper()
        )

    async def fetch_funding_rate(self, symbol: str) -> Dict[str, Any]:
        """Premium index: mark price, index price and last funding rate."""
        client = self._require_client()
        return await self._request(
            "funding rate", client.futures_mark_price, symbol=symbol.upper()
        )

    async def fetch_liquidations(self, symbol: str, limit: int = 100) -> Any:
        """Liquidation orders from the last 24 hours."""
        client = self._require_client()
        start_time = int(time.time() * 1000) - LIQUIDATION_WINDOW_MS
        return await self._request(
            "liquidations", client.futures_liquidation_orders,
            symbol=symbol.upper(), startTime=start_time, limit=limit
        )

    async def fetch_klines(
        self,
        symbol: str,
        market_type: str,
        interval: str,
        limit: int = 500
    ) -> Any:
        client = self._require_client()
        call = client.get_klines if self._market(market_type) == "spot" else client.futures_klines
        return await self._request(
            f"{market_type} klines", call,
            symbol=symbol.upper(), interval=interval, limit=limit
        )

    async def fetch_exchange_info(self, market_type: str) -> Dict[str, Any]:
        client = self._require_client()
        call = client.get_exchange_info if self._market(market_type) == "spot" else client.futures_exchange_info
        return await self._request(f"{market_type} exchange info", call)

    async def fetch_market_snapshot(self, symbol: str, market_type: str) -> Dict[str, Any]:
        """
        Combined market view for a symbol.

        Spot returns the 24 hour ticker. Futures fetches ticker, open
        interest, premium index and recent liquidations concurrently and
        merges them into one dict.

        Raises:
            UpstreamRequestError: If any of the underlying requests fail
        """
        if self._market(market_type) == "spot":
            return await self.fetch_ticker(symbol, "spot")

        ticker, open_interest, funding, liquidations = await asyncio.gather(
            self.fetch_ticker(symbol, "futures"),
            self.fetch_open_interest(symbol),
            self.fetch_funding_rate(symbol),
            self.fetch_liquidations(symbol),
        )

        snapshot = dict(ticker)
        snapshot.update({
            'openInterest': open_interest.get('openInterest'),
            'fundingRate': funding.get('lastFundingRate'),
            'markPrice': funding.get('markPrice'),
            'nextFundingTime': funding.get('nextFundingTime'),
            'liquidations24h': len(liquidations),
            'liquidationVolume24h': sum(
                float(order.get('executedQty', 0)) for order in liquidations
            ),
        })
        return snapshot

    def _require_client(self) -> AsyncClient:
        if self.client is None:
            raise RuntimeError(
                "REST client is not connected. Call connect() before fetching data"
            )
        return self.client

    @staticmethod
    def _market(market_type: str) -> str:
        if market_type not in MARKET_TYPES:
            raise ValueError(f"market_type must be 'spot' or 'futures', got {market_type!r}")
        return market_type

    async def _request(
        self,
        description: str,
        call: Callable[..., Awaitable[Any]],
        **params
    ) -> Any:
        symbol = params.get("symbol", "*")
        logger.info(f"Fetching {description} for {symbol}")
        try:
            return await call(**params)
        except (BinanceAPIException, BinanceRequestException) as e:
            logger.error(f"Binance rejected {description} request for {symbol}: {e}")
            raise UpstreamRequestError(f"Failed to fetch {description}: {e}") from e
        except Exception as e:
            logger.error(f"Error fetching {description} for {symbol}: {e}")
            raise UpstreamRequestError(f"Failed to fetch {description}: {e}") from e

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, _exc_type, _exc_val, _exc_tb):
        await self.disconnect()
        return False
