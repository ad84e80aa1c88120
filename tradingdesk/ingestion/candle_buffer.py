"""
TradingDesk - Candle Buffer

Fixed-capacity sliding window of candles. Both the history fetch and the
live feed write through `apply`, so they can never disagree on the rule:

    time == last.time  -> replace last (same-period update)
    time >  last.time  -> append, evicting the oldest when full
    anything else      -> discard (stale or duplicate)
"""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Iterable, Iterator

from tradingdesk.models import Candle


class ApplyResult(str, Enum):
    """What `CandleBuffer.apply` did with a candle."""

    REPLACED = "replaced"
    APPENDED = "appended"
    DISCARDED = "discarded"


class CandleBuffer:
    """Ordered window of at most `capacity` candles with strictly increasing times."""

    def __init__(self, capacity: int = 100, candles: Iterable[Candle] | None = None):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._candles: deque[Candle] = deque(maxlen=capacity)
        if candles:
            self.merge(candles)

    def __len__(self) -> int:
        return len(self._candles)

    def __iter__(self) -> Iterator[Candle]:
        return iter(self._candles)

    def __bool__(self) -> bool:
        return bool(self._candles)

    @property
    def last(self) -> Candle | None:
        return self._candles[-1] if self._candles else None

    def apply(self, candle: Candle) -> ApplyResult:
        """Apply one candle according to the window rule."""
        last = self.last
        if last is None or candle.time > last.time:
            # deque(maxlen) drops the oldest entry on overflow
            self._candles.append(candle)
            return ApplyResult.APPENDED
        if candle.time == last.time:
            self._candles[-1] = candle
            return ApplyResult.REPLACED
        return ApplyResult.DISCARDED

    def merge(self, candles: Iterable[Candle]) -> int:
        """Apply candles in order; returns how many were not discarded."""
        return sum(
            1 for c in candles if self.apply(c) is not ApplyResult.DISCARDED
        )

    def clear(self) -> None:
        self._candles.clear()

    def snapshot(self) -> list[Candle]:
        """Copy of the current window, oldest first."""
        return list(self._candles)
