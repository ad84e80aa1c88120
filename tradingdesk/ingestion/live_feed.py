"""
TradingDesk - Live Feed

Binance futures kline stream for the selected instrument. Each tick is
handed to an `on_update` callback, normally a CandleBuffer's `apply`.

Reconnection is left to the caller: a dropped connection ends the
subscription.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from tradingdesk.config import BinanceConfig, settings
from tradingdesk.ingestion.market_data import normalize_symbol
from tradingdesk.logging import get_logger
from tradingdesk.models import Candle

logger = get_logger(__name__, component="live_feed")

PING_INTERVAL = 180  # 3 minutes
PING_TIMEOUT = 10


def parse_kline_message(message: str | bytes) -> Candle | None:
    """Return the candle carried by a kline event, or None for anything else."""
    try:
        data = json.loads(message)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("invalid_json", error=str(e))
        return None

    # Combined stream format: {"stream": "...", "data": {...}}
    if isinstance(data, dict) and "data" in data:
        data = data["data"]

    if not isinstance(data, dict) or data.get("e") != "kline":
        return None

    try:
        return Candle.from_stream_kline(data["k"])
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("kline_parse_error", error=str(e))
        return None


class Subscription:
    """
    Handle for one live stream.

    The liveness flag is set when the subscription is created and cleared
    by `unsubscribe`; ticks are only delivered while it is set, including
    ticks that were already being processed when the flag was cleared.
    """

    def __init__(self, symbol: str, on_update: Callable[[Candle], Any]):
        self.symbol = symbol
        self._on_update = on_update
        self._active = True
        self._websocket: Any = None
        self._task: asyncio.Task | None = None
        self.ticks_delivered = 0

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, candle: Candle) -> bool:
        if not self._active:
            return False
        self._on_update(candle)
        self.ticks_delivered += 1
        return True

    async def unsubscribe(self) -> None:
        """Stop delivering ticks and close the connection if it is still up."""
        if not self._active:
            return
        self._active = False

        ws = self._websocket
        self._websocket = None
        if ws is not None and ws.state in (State.OPEN, State.CONNECTING):
            await ws.close()

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        logger.info("live_feed_unsubscribed", symbol=self.symbol, ticks=self.ticks_delivered)


class LiveFeed:
    """Factory for kline stream subscriptions."""

    def __init__(
        self,
        config: BinanceConfig | None = None,
        connect: Callable[..., Any] = websockets.connect,
    ):
        self.config = config or settings.binance
        self._connect = connect

    def stream_url(self, instrument: str) -> str:
        symbol = normalize_symbol(instrument).lower()
        return f"{self.config.futures_websocket_url}/{symbol}@kline_{self.config.interval}"

    def subscribe(self, instrument: str, on_update: Callable[[Candle], Any]) -> Subscription:
        """Open the stream in a background task and return its handle."""
        subscription = Subscription(normalize_symbol(instrument), on_update)
        subscription._task = asyncio.create_task(
            self._run(subscription, self.stream_url(instrument))
        )
        return subscription

    async def _run(self, subscription: Subscription, url: str) -> None:
        try:
            ws = await self._connect(
                url,
                ping_interval=PING_INTERVAL,
                ping_timeout=PING_TIMEOUT,
                close_timeout=10,
            )
        except (WebSocketException, OSError) as e:
            logger.error("live_feed_connect_failed", url=url, error=str(e))
            return

        if not subscription.active:
            await ws.close()
            return

        subscription._websocket = ws
        logger.info("live_feed_connected", symbol=subscription.symbol)

        try:
            async for message in ws:
                if not subscription.active:
                    break
                candle = parse_kline_message(message)
                if candle is not None:
                    subscription.deliver(candle)
        except ConnectionClosed as e:
            logger.warning("live_feed_closed", symbol=subscription.symbol, reason=str(e))
        except WebSocketException as e:
            logger.error("live_feed_error", symbol=subscription.symbol, error=str(e))
