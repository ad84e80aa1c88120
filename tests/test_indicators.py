"""Tests for tradingdesk.indicators."""

import pytest

from tradingdesk.indicators import compute_bollinger_bands, compute_rsi, compute_sma, compute_stddev


class TestSMA:
    def test_undefined_until_window_fills(self):
        out = compute_sma([1.0, 2.0, 3.0, 4.0], period=3)
        assert out[:2] == [None, None]
        assert out[2] == pytest.approx(2.0)
        assert out[3] == pytest.approx(3.0)

    def test_output_aligned_with_input(self):
        assert len(compute_sma([1.0] * 7, period=20)) == 7


class TestBollingerBands:
    """Test Bollinger Bands computation."""

    def test_constant_prices(self):
        """Bands collapse onto the mean for constant prices."""
        lower, middle, upper = compute_bollinger_bands([100.0] * 20, period=20)
        assert lower[-1] == middle[-1] == upper[-1] == pytest.approx(100.0)

    def test_band_ordering(self):
        prices = [100 + (i % 5) for i in range(25)]
        lower, middle, upper = compute_bollinger_bands(prices, period=20)
        for lo, mid, up in zip(lower[19:], middle[19:], upper[19:]):
            assert lo <= mid <= up

    def test_width_is_two_stddev(self):
        prices = [float(i) for i in range(30)]
        lower, middle, upper = compute_bollinger_bands(prices, period=20, width=2.0)
        std = compute_stddev(prices, 20)
        assert upper[-1] - middle[-1] == pytest.approx(2 * std[-1])


class TestRSI:
    """Test RSI computation."""

    def test_undefined_with_insufficient_data(self):
        assert compute_rsi([100.0, 101.0], period=14) == [None, None]

    def test_all_gains(self):
        rsi = compute_rsi([100.0 + i for i in range(20)], period=14)
        assert rsi[13] is None
        assert rsi[-1] == 100.0

    def test_all_losses(self):
        rsi = compute_rsi([100.0 - i for i in range(20)], period=14)
        assert rsi[-1] == pytest.approx(0.0)

    def test_flat_prices_are_neutral(self):
        assert compute_rsi([100.0] * 20, period=14)[-1] == 50.0

    def test_bounded(self):
        prices = [100 + ((-1) ** i) * i for i in range(40)]
        for value in compute_rsi([float(p) for p in prices], period=14)[14:]:
            assert 0.0 <= value <= 100.0
