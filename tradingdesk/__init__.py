"""
TradingDesk - Core Package

Nine-agent crypto trading desk: market data ingestion, configuration,
logging and shared models.
"""

__version__ = "0.1.0"
__author__ = "TradingDesk Team"

from tradingdesk.config import settings, get_settings

__all__ = ["settings", "get_settings", "__version__"]
