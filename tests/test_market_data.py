"""Tests for the market data fetcher and synthetic fallback."""

import httpx
import numpy as np
import pytest

from tradingdesk.config import BinanceConfig, ProxyConfig
from tradingdesk.exceptions import FetchCancelledError
from tradingdesk.ingestion.cascade import CancellationToken
from tradingdesk.ingestion.market_data import (
    DEFAULT_BASE_PRICE,
    MarketDataFetcher,
    base_price_for,
    generate_synthetic_candles,
    interval_to_ms,
    normalize_symbol,
)

HOUR = 3_600_000
NOW = 1_700_000_000.0  # seconds

FUTURES = "fapi.binance.com"
SPOT = "api.binance.com"
US = "api.binance.us"
RESTRICTED = {"code": 0, "msg": "Service unavailable from a restricted location according to 'b. Eligibility'."}


def _kline_rows(n: int = 3, start: int = 1_699_999_200_000) -> list[list]:
    return [
        [start + i * HOUR, "100.0", "101.0", "99.0", str(100.5 + i), "10.0", start + (i + 1) * HOUR - 1]
        for i in range(n)
    ]


def _fetcher(handler, proxy_enabled: bool = False, etherscan_key: str | None = None) -> MarketDataFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MarketDataFetcher(
        client=client,
        binance=BinanceConfig(),
        proxy=ProxyConfig(enabled=proxy_enabled, url="https://relay.test/raw"),
        etherscan_key=etherscan_key,
        clock=lambda: NOW,
    )


class TestHelpers:
    def test_normalize_symbol(self):
        assert normalize_symbol("btc/usdt") == "BTCUSDT"
        assert normalize_symbol(" ethusdt ") == "ETHUSDT"

    def test_interval_to_ms(self):
        assert interval_to_ms("1m") == 60_000
        assert interval_to_ms("4h") == 4 * HOUR
        with pytest.raises(ValueError):
            interval_to_ms("1y")

    def test_base_price_for(self):
        assert base_price_for("ETHUSDT") == 3300.0
        assert base_price_for("dogeusdt") == 0.3
        assert base_price_for("BTCUSDT") == DEFAULT_BASE_PRICE


class TestSyntheticCandles:
    """Random-walk fallback series."""

    def test_shape_and_spacing(self):
        now_ms = int(NOW * 1000)
        candles = generate_synthetic_candles("BTCUSDT", limit=100, interval="1h", now_ms=now_ms)
        assert len(candles) == 100
        diffs = {b.time - a.time for a, b in zip(candles, candles[1:])}
        assert diffs == {HOUR}
        assert candles[-1].time == (now_ms // HOUR) * HOUR

    def test_walk_invariants(self):
        candles = generate_synthetic_candles("SOLUSDT", limit=200, now_ms=0, rng=np.random.default_rng(7))
        assert candles[0].open == 180.0
        for prev, cur in zip(candles, candles[1:]):
            assert cur.open == prev.close
        for c in candles:
            assert abs(c.close - c.open) <= c.open * 0.01 + 1e-9
            assert c.high >= max(c.open, c.close)
            assert c.low <= min(c.open, c.close)
            assert c.high - max(c.open, c.close) <= c.open * 0.01 + 1e-9
            assert c.volume >= 100

    def test_deterministic_per_symbol(self):
        a = generate_synthetic_candles("ETHUSDT", limit=10, now_ms=0)
        b = generate_synthetic_candles("ETHUSDT", limit=10, now_ms=0)
        assert a == b


class TestFetchCandles:
    """Futures → spot → Binance.US → synthetic."""

    @pytest.mark.asyncio
    async def test_futures_first(self):
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            return httpx.Response(200, json=_kline_rows(3))

        candles = await _fetcher(handler).fetch_candles("btcusdt")
        assert len(candles) == 3
        assert hosts == [FUTURES]
        assert candles[-1].close == 102.5

    @pytest.mark.asyncio
    async def test_spot_after_futures_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == FUTURES:
                return httpx.Response(500)
            return httpx.Response(200, json=_kline_rows(2))

        candles = await _fetcher(handler).fetch_candles("BTCUSDT")
        assert len(candles) == 2

    @pytest.mark.asyncio
    async def test_regional_source_after_restriction(self):
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if request.url.host == US:
                return httpx.Response(200, json=_kline_rows(4))
            return httpx.Response(451, json=RESTRICTED)

        candles = await _fetcher(handler).fetch_candles("BTCUSDT")
        assert len(candles) == 4
        assert hosts == [FUTURES, SPOT, US]

    @pytest.mark.asyncio
    async def test_regional_source_not_tried_without_restriction(self):
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            return httpx.Response(503)

        candles = await _fetcher(handler).fetch_candles("ETHUSDT")
        assert US not in hosts
        # Synthetic fallback
        assert len(candles) == 100
        assert candles[0].open == 3300.0

    @pytest.mark.asyncio
    async def test_empty_kline_list_falls_through(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == FUTURES:
                return httpx.Response(200, json=[])
            return httpx.Response(200, json=_kline_rows(1))

        assert len(await _fetcher(handler).fetch_candles("BTCUSDT")) == 1

    @pytest.mark.asyncio
    async def test_proxy_used_when_enabled(self):
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if request.url.host == "relay.test":
                return httpx.Response(200, json=_kline_rows(2))
            return httpx.Response(500)

        candles = await _fetcher(handler, proxy_enabled=True).fetch_candles("BTCUSDT")
        assert len(candles) == 2
        assert hosts == [FUTURES, "relay.test"]

    @pytest.mark.asyncio
    async def test_cancelled_selection_raises(self):
        token = CancellationToken("BTCUSDT")

        def handler(request: httpx.Request) -> httpx.Response:
            token.cancel()
            return httpx.Response(200, json=_kline_rows(2))

        with pytest.raises(FetchCancelledError):
            await _fetcher(handler).fetch_candles("BTCUSDT", token=token)


class TestSupplementalSignals:
    """Order book, funding and gas are each best effort."""

    @staticmethod
    def _handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/depth"):
            return httpx.Response(200, json={
                "lastUpdateId": 7,
                "bids": [["100.0", "2.0"]],
                "asks": [["101.0", "3.0"]],
            })
        if path.endswith("/premiumIndex"):
            return httpx.Response(200, json={
                "symbol": "ETHUSDT",
                "markPrice": "3300.0",
                "lastFundingRate": "0.00010000",
                "nextFundingTime": 1_700_006_400_000,
            })
        if request.url.host == "api.etherscan.io":
            return httpx.Response(200, json={
                "status": "1",
                "message": "OK",
                "result": {"SafeGasPrice": "10", "ProposeGasPrice": "11", "FastGasPrice": "12"},
            })
        return httpx.Response(404)

    @pytest.mark.asyncio
    async def test_all_signals(self):
        signals = await _fetcher(self._handler, etherscan_key="k").fetch_supplemental_signals("ETHUSDT")
        assert signals.order_book.last_update_id == 7
        assert signals.funding_rate.last_funding_rate == "0.00010000"
        assert signals.gas_oracle.fast_gas_price == "12"

    @pytest.mark.asyncio
    async def test_gas_skipped_without_key(self):
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            return self._handler(request)

        signals = await _fetcher(handler, etherscan_key="").fetch_supplemental_signals("ETHUSDT")
        assert signals.gas_oracle is None
        assert "api.etherscan.io" not in hosts

    @pytest.mark.asyncio
    async def test_failures_leave_fields_empty(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        signals = await _fetcher(handler, etherscan_key="k").fetch_supplemental_signals("ETHUSDT")
        assert signals.order_book is None
        assert signals.funding_rate is None
        assert signals.gas_oracle is None

    @pytest.mark.asyncio
    async def test_etherscan_error_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "api.etherscan.io":
                return httpx.Response(200, json={"status": "0", "message": "NOTOK", "result": "Invalid API Key"})
            return self._handler(request)

        signals = await _fetcher(handler, etherscan_key="bad").fetch_supplemental_signals("ETHUSDT")
        assert signals.gas_oracle is None
        assert signals.order_book is not None
