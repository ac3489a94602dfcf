"""Unit tests for realized volatility helpers."""

import math
from datetime import date, timedelta

import pytest

from earnings_spread.alpaca.models import DailyBar
from earnings_spread.filters.volatility import (
    average_volume,
    bars_between,
    close_to_close_volatility,
    earnings_move,
    earnings_window_volatility,
    historical_volatility,
    log_returns,
)

START = date(2024, 1, 1)


def make_bars(closes, volume=1_000_000, start=START):
    return [
        DailyBar(day=start + timedelta(days=i), open=c, high=c, low=c, close=c, volume=volume)
        for i, c in enumerate(closes)
    ]


class TestCloseToClose:
    """Test suite for close-to-close volatility."""

    def test_constant_prices_have_zero_volatility(self):
        assert close_to_close_volatility([100.0] * 10) == 0.0

    def test_known_value(self):
        """Test alternating +/- returns against the closed form."""
        closes = [100.0, 110.0, 100.0, 110.0, 100.0]
        r = math.log(1.1)
        # returns are r, -r, r, -r with mean 0; sample variance = 4r^2 / 3
        expected = math.sqrt(4 * r * r / 3) * math.sqrt(252)

        assert close_to_close_volatility(closes) == pytest.approx(expected)

    def test_population_variance(self):
        closes = [100.0, 110.0, 100.0]
        r = math.log(1.1)

        assert close_to_close_volatility(closes, annualize=False, ddof=0) == pytest.approx(r)

    def test_insufficient_data(self):
        assert close_to_close_volatility([100.0]) is None
        assert close_to_close_volatility([100.0, 101.0]) is None

    def test_non_positive_prices_skipped(self):
        assert log_returns([100.0, 0.0, 100.0]) == []


class TestBarHelpers:
    def test_historical_volatility_uses_recent_window(self):
        bars = make_bars([100.0, 150.0, 90.0] + [100.0] * 20)

        assert historical_volatility(bars, 20) == 0.0
        assert historical_volatility(bars, 23) > 0

    def test_average_volume(self):
        assert average_volume(make_bars([1.0, 1.0], volume=300)) == 300
        assert average_volume([]) == 0.0

    def test_bars_between_inclusive(self):
        bars = make_bars([1.0] * 5)

        assert [b.day for b in bars_between(bars, START + timedelta(days=1), START + timedelta(days=3))] == [
            START + timedelta(days=1),
            START + timedelta(days=2),
            START + timedelta(days=3),
        ]


class TestEarningsHelpers:
    def test_earnings_move(self):
        bars = make_bars([100.0, 100.0, 108.0, 107.0])

        assert earnings_move(bars, START + timedelta(days=2)) == pytest.approx(0.08)

    def test_earnings_move_without_prior_session(self):
        assert earnings_move(make_bars([100.0, 105.0]), START) is None

    def test_earnings_window_volatility(self):
        """Test a quiet post-earnings week shows as a crush."""
        pre = [100.0, 104.0, 99.0, 105.0, 98.0, 103.0, 97.0]
        post = [100.0, 100.5, 100.0, 100.5, 100.0, 100.5, 100.0]
        bars = make_bars(pre + [100.0] + post)
        earnings = START + timedelta(days=7)

        pre_vol, post_vol = earnings_window_volatility(bars, earnings)

        assert post_vol / pre_vol < 0.8

    def test_earnings_window_missing_side(self):
        bars = make_bars([100.0] * 7)

        assert earnings_window_volatility(bars, START + timedelta(days=7)) is None
