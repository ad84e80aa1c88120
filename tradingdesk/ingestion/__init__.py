"""
TradingDesk - Ingestion Module

Market data history, supplementary signals and the live candle feed.
"""

from tradingdesk.ingestion.candle_buffer import ApplyResult, CandleBuffer
from tradingdesk.ingestion.cascade import (
    CancellationToken,
    JsonFetcher,
    SourceStrategy,
    first_success,
)
from tradingdesk.ingestion.etherscan_client import EtherscanClient
from tradingdesk.ingestion.live_feed import LiveFeed, Subscription
from tradingdesk.ingestion.market_data import (
    MarketDataFetcher,
    generate_synthetic_candles,
    normalize_symbol,
)
from tradingdesk.ingestion.session import InstrumentSession

__all__ = [
    # Buffer
    "ApplyResult",
    "CandleBuffer",
    # Cascade
    "CancellationToken",
    "JsonFetcher",
    "SourceStrategy",
    "first_success",
    # Sources
    "EtherscanClient",
    "MarketDataFetcher",
    "generate_synthetic_candles",
    "normalize_symbol",
    # Live
    "LiveFeed",
    "Subscription",
    "InstrumentSession",
]
