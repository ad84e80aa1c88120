"""
TradingDesk - Technical Indicators

Rolling indicators over close prices. Every function returns a list aligned
with its input, holding None where the window is not yet filled.
"""

from __future__ import annotations

import math


def compute_sma(values: list[float], period: int) -> list[float | None]:
    """Simple moving average."""
    out: list[float | None] = []
    window_sum = 0.0
    for i, v in enumerate(values):
        window_sum += v
        if i >= period:
            window_sum -= values[i - period]
        out.append(window_sum / period if i >= period - 1 else None)
    return out


def compute_stddev(values: list[float], period: int) -> list[float | None]:
    """Population standard deviation over a rolling window."""
    sma = compute_sma(values, period)
    out: list[float | None] = []
    for i, mean in enumerate(sma):
        if mean is None:
            out.append(None)
            continue
        window = values[i - period + 1 : i + 1]
        out.append(math.sqrt(sum((v - mean) ** 2 for v in window) / period))
    return out


def compute_bollinger_bands(
    values: list[float],
    period: int = 20,
    width: float = 2.0,
) -> tuple[list[float | None], list[float | None], list[float | None]]:
    """Return (lower, middle, upper) Bollinger bands."""
    middle = compute_sma(values, period)
    std = compute_stddev(values, period)
    lower: list[float | None] = []
    upper: list[float | None] = []
    for m, s in zip(middle, std):
        if m is None or s is None:
            lower.append(None)
            upper.append(None)
        else:
            lower.append(m - width * s)
            upper.append(m + width * s)
    return lower, middle, upper


def compute_rsi(values: list[float], period: int = 14) -> list[float | None]:
    """Wilder's RSI. Undefined for the first `period` points."""
    out: list[float | None] = [None] * len(values)
    if len(values) <= period:
        return out

    gains = losses = 0.0
    for i in range(1, period + 1):
        change = values[i] - values[i - 1]
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period
    out[period] = _rsi(avg_gain, avg_loss)

    for i in range(period + 1, len(values)):
        change = values[i] - values[i - 1]
        avg_gain = (avg_gain * (period - 1) + max(change, 0.0)) / period
        avg_loss = (avg_loss * (period - 1) + max(-change, 0.0)) / period
        out[i] = _rsi(avg_gain, avg_loss)

    return out


def _rsi(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else 50.0
    return 100 - 100 / (1 + avg_gain / avg_loss)
