"""TradingDesk command-line entry points."""
