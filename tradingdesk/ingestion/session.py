"""
TradingDesk - Instrument Session

Owns the resident candle buffer for the selected instrument. Selecting a
new instrument invalidates the previous selection's in-flight fetch and
live subscription before anything else happens.
"""

from __future__ import annotations

from tradingdesk.config import settings
from tradingdesk.exceptions import FetchCancelledError
from tradingdesk.ingestion.cascade import CancellationToken
from tradingdesk.ingestion.candle_buffer import CandleBuffer
from tradingdesk.ingestion.live_feed import LiveFeed, Subscription
from tradingdesk.ingestion.market_data import MarketDataFetcher, normalize_symbol
from tradingdesk.logging import get_ingestion_logger
from tradingdesk.models import Candle

logger = get_ingestion_logger()


class InstrumentSession:
    """History fetch + live reconciliation for one instrument at a time."""

    def __init__(
        self,
        fetcher: MarketDataFetcher,
        live_feed: LiveFeed | None = None,
        capacity: int | None = None,
    ):
        self.fetcher = fetcher
        self.live_feed = live_feed
        self.buffer = CandleBuffer(capacity or settings.pipeline.buffer_capacity)
        self.symbol: str | None = None
        self._token: CancellationToken | None = None
        self._subscription: Subscription | None = None

    @property
    def token(self) -> CancellationToken | None:
        return self._token

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    def snapshot(self) -> list[Candle]:
        return self.buffer.snapshot()

    async def select(self, instrument: str) -> bool:
        """
        Make `instrument` the active selection.

        Returns False if another selection superseded this one before the
        history arrived; the buffer is then left to the newer selection.
        """
        symbol = normalize_symbol(instrument)
        token = CancellationToken(symbol)

        # Swapped in before any await so a concurrent select cancels it
        previous = self._detach()
        self._token = token
        self.symbol = symbol
        self.buffer.clear()
        if previous is not None:
            await previous.unsubscribe()
            if not self._is_current(token):
                logger.info("selection_superseded", symbol=symbol)
                return False

        try:
            candles = await self.fetcher.fetch_candles(symbol, token=token)
        except FetchCancelledError:
            logger.info("selection_superseded", symbol=symbol)
            return False

        if not self._is_current(token):
            logger.info("selection_superseded", symbol=symbol)
            return False

        self.buffer.merge(candles)
        logger.info("selection_loaded", symbol=symbol, candles=len(self.buffer))

        if self.live_feed is not None:
            self._subscription = self.live_feed.subscribe(symbol, self._on_tick(token))
        return True

    async def refresh(self) -> int:
        """Re-fetch history and merge it through the buffer rule."""
        if self.symbol is None or self._token is None:
            return 0
        token = self._token
        try:
            candles = await self.fetcher.fetch_candles(self.symbol, token=token)
        except FetchCancelledError:
            return 0
        if not self._is_current(token):
            return 0
        return self.buffer.merge(candles)

    async def close(self) -> None:
        previous = self._detach()
        self.buffer.clear()
        self.symbol = None
        if previous is not None:
            await previous.unsubscribe()

    def _is_current(self, token: CancellationToken) -> bool:
        return token is self._token and token.active

    def _on_tick(self, token: CancellationToken):
        def apply(candle: Candle) -> None:
            if self._is_current(token):
                self.buffer.apply(candle)
        return apply

    def _detach(self) -> Subscription | None:
        """Cancel the current selection and hand back its subscription."""
        if self._token is not None:
            self._token.cancel()
            self._token = None
        subscription, self._subscription = self._subscription, None
        return subscription
