"""
TradingDesk - Market Data Fetcher

Resolves candle history and supplementary signals for one instrument.

Candle source cascade:
    1. Binance USD-M futures
    2. Binance spot
    3. Binance.US        (only after a restricted-location error)
    4. Synthetic series  (never fails)

Every REST call goes direct first and retries once through the CORS relay.
"""

from __future__ import annotations

import asyncio
import time
import zlib
from typing import Any, Callable

import httpx
import numpy as np

from tradingdesk.config import BinanceConfig, ProxyConfig, settings
from tradingdesk.exceptions import FetchCancelledError, MalformedResponseError, SourcesExhaustedError
from tradingdesk.ingestion.cascade import (
    CancellationToken,
    JsonFetcher,
    SourceStrategy,
    after_restriction,
    error_for_payload,
    first_success,
)
from tradingdesk.ingestion.etherscan_client import EtherscanClient
from tradingdesk.logging import get_logger
from tradingdesk.models import Candle, FundingRate, OrderBook, SupplementalMarketSignals

logger = get_logger(__name__, component="market_data")


# Rough price anchors so a synthetic ETH chart does not show BTC prices
BASE_PRICES: list[tuple[str, float]] = [
    ("ETH", 3300.0),
    ("SOL", 180.0),
    ("BNB", 600.0),
    ("XRP", 2.5),
    ("DOGE", 0.3),
    ("ADA", 0.8),
    ("DOT", 7.0),
]
DEFAULT_BASE_PRICE = 95000.0

_INTERVAL_UNITS_MS = {
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
    "w": 604_800_000,
}


def normalize_symbol(instrument: str) -> str:
    """'btc/usdt' -> 'BTCUSDT'."""
    return instrument.replace("/", "").strip().upper()


def interval_to_ms(interval: str) -> int:
    """Convert a Binance interval code ('1m', '4h', '1d') to milliseconds."""
    try:
        return int(interval[:-1]) * _INTERVAL_UNITS_MS[interval[-1]]
    except (KeyError, ValueError) as e:
        raise ValueError(f"Unsupported interval: {interval!r}") from e


def base_price_for(symbol: str) -> float:
    """Seed price for the synthetic generator, looked up by instrument prefix."""
    s = normalize_symbol(symbol)
    for prefix, price in BASE_PRICES:
        if s.startswith(prefix):
            return price
    return DEFAULT_BASE_PRICE


def generate_synthetic_candles(
    symbol: str,
    limit: int = 100,
    interval: str = "1h",
    now_ms: int | None = None,
    rng: np.random.Generator | None = None,
) -> list[Candle]:
    """
    Deterministic random-walk series used when every live source is down.

    - open of every bar equals the previous close
    - body moves at most 1% of price either way
    - wicks extend at most 1% of price beyond the body
    - bars are spaced by `interval`, the last one being the current period
    """
    step = interval_to_ms(interval)
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if rng is None:
        rng = np.random.default_rng(zlib.crc32(normalize_symbol(symbol).encode()))

    price = base_price_for(symbol)
    start = (now_ms // step) * step - (limit - 1) * step

    candles: list[Candle] = []
    for i in range(limit):
        move = (rng.random() - 0.5) * price * 0.02
        open_ = price
        close = price + move
        high = max(open_, close) + rng.random() * price * 0.01
        low = min(open_, close) - rng.random() * price * 0.01
        volume = rng.random() * 1000 + 100

        candles.append(Candle(
            time=start + i * step,
            open=open_,
            high=high,
            low=max(low, 0.0),
            close=close,
            volume=volume,
        ))
        price = close

    return candles


def _parse_klines(data: Any, source: str) -> list[Candle]:
    if not isinstance(data, list):
        raise error_for_payload(data, source)
    if not data:
        raise MalformedResponseError(f"{source} returned no klines")
    try:
        return [Candle.from_kline_row(row) for row in data]
    except (IndexError, TypeError, ValueError) as e:
        raise MalformedResponseError(f"Unexpected kline row from {source}: {e}") from e


def _parse_order_book(data: Any, source: str) -> OrderBook:
    if not isinstance(data, dict) or not (data.get("bids") or data.get("asks")):
        raise error_for_payload(data, source)
    return OrderBook.model_validate(data)


def _parse_funding_rate(data: Any, source: str) -> FundingRate:
    if not isinstance(data, dict) or not data.get("symbol"):
        raise error_for_payload(data, source)
    return FundingRate.model_validate(data)


class MarketDataFetcher:
    """
    Candle history and supplementary signal fetcher.

    Usable as an async context manager, in which case it owns its HTTP
    client. Pass an existing client to share a connection pool.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        binance: BinanceConfig | None = None,
        proxy: ProxyConfig | None = None,
        etherscan_key: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.binance = binance or settings.binance
        self.proxy = proxy or settings.proxy
        self._clock = clock
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=self.binance.request_timeout,
            headers={"Accept": "application/json"},
        )
        self._fetcher = JsonFetcher(
            self._client,
            proxy_url=self.proxy.url if self.proxy.enabled else None,
            clock=clock,
        )
        self.etherscan = EtherscanClient(self._fetcher, api_key=etherscan_key)

    async def __aenter__(self) -> "MarketDataFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Candles
    # ------------------------------------------------------------------

    async def fetch_candles(
        self,
        instrument: str,
        token: CancellationToken | None = None,
    ) -> list[Candle]:
        """
        Fetch the recent candle window for an instrument.

        Always returns a non-empty list; synthetic data replaces live data
        when every source fails.

        Raises:
            FetchCancelledError: the selection was abandoned mid-fetch
        """
        symbol = normalize_symbol(instrument)
        params = {
            "symbol": symbol,
            "interval": self.binance.interval,
            "limit": self.binance.kline_limit,
        }

        def klines_from(base_url: str, path: str, source: str, use_proxy: bool = True):
            async def fetch() -> list[Candle]:
                data = await self._fetcher.get_json(
                    f"{base_url}{path}", params=params, token=token, use_proxy=use_proxy
                )
                return _parse_klines(data, source)
            return fetch

        strategies = [
            SourceStrategy("futures", klines_from(self.binance.futures_rest_url, "/fapi/v1/klines", "Futures")),
            SourceStrategy("spot", klines_from(self.binance.spot_rest_url, "/api/v3/klines", "Spot")),
            SourceStrategy(
                "binance_us",
                klines_from(self.binance.us_rest_url, "/api/v3/klines", "Binance.US", use_proxy=False),
                applies=after_restriction,
            ),
        ]

        try:
            candles = await first_success(strategies, token=token)
            logger.info("candles_fetched", symbol=symbol, count=len(candles))
            return candles
        except SourcesExhaustedError as e:
            logger.error(
                "candles_unavailable_using_synthetic",
                symbol=symbol,
                error=str(e.last_error),
            )
            return generate_synthetic_candles(
                symbol,
                limit=self.binance.kline_limit,
                interval=self.binance.interval,
                now_ms=int(self._clock() * 1000),
            )

    # ------------------------------------------------------------------
    # Supplementary signals
    # ------------------------------------------------------------------

    async def fetch_order_book(
        self,
        instrument: str,
        depth: int | None = None,
        token: CancellationToken | None = None,
    ) -> OrderBook | None:
        """Top-of-book depth, futures first. None when every source fails."""
        symbol = normalize_symbol(instrument)
        params = {"symbol": symbol, "limit": depth or self.binance.depth_limit}

        def depth_from(base_url: str, path: str, source: str, use_proxy: bool = True):
            async def fetch() -> OrderBook:
                data = await self._fetcher.get_json(
                    f"{base_url}{path}", params=params, token=token, use_proxy=use_proxy
                )
                return _parse_order_book(data, source)
            return fetch

        strategies = [
            SourceStrategy("futures", depth_from(self.binance.futures_rest_url, "/fapi/v1/depth", "Futures")),
            SourceStrategy("spot", depth_from(self.binance.spot_rest_url, "/api/v3/depth", "Spot")),
            SourceStrategy(
                "binance_us",
                depth_from(self.binance.us_rest_url, "/api/v3/depth", "Binance.US", use_proxy=False),
                applies=after_restriction,
            ),
        ]

        try:
            return await first_success(strategies, token=token)
        except SourcesExhaustedError as e:
            logger.error("order_book_unavailable", symbol=symbol, error=str(e.last_error))
            return None

    async def fetch_funding_rate(
        self,
        instrument: str,
        token: CancellationToken | None = None,
    ) -> FundingRate | None:
        """Current and next funding from the futures premium index."""
        symbol = normalize_symbol(instrument)

        async def from_premium_index() -> FundingRate:
            data = await self._fetcher.get_json(
                f"{self.binance.futures_rest_url}/fapi/v1/premiumIndex",
                params={"symbol": symbol},
                token=token,
            )
            return _parse_funding_rate(data, "Futures")

        try:
            return await first_success(
                [SourceStrategy("futures", from_premium_index)],
                token=token,
            )
        except SourcesExhaustedError as e:
            # Frequently blocked and low value, so not worth a warning
            logger.debug("funding_rate_unavailable", symbol=symbol, error=str(e.last_error))
            return None

    async def fetch_gas_oracle(self, token: CancellationToken | None = None):
        return await self.etherscan.fetch_gas_oracle(token=token)

    async def fetch_supplemental_signals(
        self,
        instrument: str,
        token: CancellationToken | None = None,
    ) -> SupplementalMarketSignals:
        """Fetch order book, funding and gas concurrently. Missing parts stay None."""
        results = await asyncio.gather(
            self.fetch_order_book(instrument, token=token),
            self.fetch_funding_rate(instrument, token=token),
            self.fetch_gas_oracle(token=token),
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, FetchCancelledError):
                raise result

        order_book, funding_rate, gas_oracle = (
            None if isinstance(r, BaseException) else r for r in results
        )
        for r in results:
            if isinstance(r, BaseException):
                logger.warning("supplemental_signal_failed", error=str(r), error_type=type(r).__name__)

        signals = SupplementalMarketSignals(
            order_book=order_book,
            funding_rate=funding_rate,
            gas_oracle=gas_oracle,
        )
        logger.info(
            "supplemental_signals_fetched",
            symbol=normalize_symbol(instrument),
            order_book=order_book is not None,
            funding_rate=funding_rate is not None,
            gas_oracle=gas_oracle is not None,
        )
        return signals
