"""TradingDesk test suite."""
