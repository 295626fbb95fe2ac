"""Tests for autotrade.strategy.indicators — pure indicator math."""

import pytest

from autotrade.data.models import PricePoint
from autotrade.strategy.indicators import (
    bollinger_bands,
    compute_indicators,
    ema,
    ema_series,
    macd,
    pct_change,
    rsi,
    sma,
    support_resistance,
    volume_average,
)


def _points(closes, volume=1000.0) -> list[PricePoint]:
    return [
        PricePoint(
            timestamp=f"2025-01-01T{i:02d}:00:00+00:00" if i < 24 else f"t{i}",
            open=c,
            high=c + 1,
            low=c - 1,
            close=c,
            volume=volume,
        )
        for i, c in enumerate(closes)
    ]


class TestSma:
    def test_mean_of_last_n(self):
        assert sma([1, 2, 3, 4, 5], 3) == pytest.approx(4.0)

    def test_insufficient(self):
        assert sma([1, 2], 3) is None


class TestEma:
    def test_seeded_with_sma(self):
        assert ema([2, 4, 6], 3) == pytest.approx(4.0)

    def test_recurrence(self):
        # k = 0.5 for period 3: seed 4, then 8 × 0.5 + 4 × 0.5 = 6
        assert ema([2, 4, 6, 8], 3) == pytest.approx(6.0)

    def test_series_length(self):
        assert len(ema_series(list(range(10)), 4)) == 7

    def test_insufficient(self):
        assert ema([1, 2], 3) is None
        assert ema_series([1, 2], 3) == []


class TestRsi:
    def test_flat_series_is_neutral(self):
        assert rsi([100.0] * 20) == 50.0

    def test_only_gains(self):
        assert rsi([float(i) for i in range(1, 20)]) == 100.0

    def test_only_losses(self):
        assert rsi([float(i) for i in range(20, 1, -1)]) == 0.0

    def test_mixed(self):
        closes = [10.0, 11.0] * 8  # +1, -1 alternating over the window
        assert rsi(closes) == pytest.approx(50.0)

    def test_needs_period_plus_one(self):
        assert rsi([1.0] * 14) is None
        assert rsi([1.0] * 15) == 50.0

    def test_bounded(self):
        closes = [100 + (i % 7) * 3 - (i % 3) * 5 for i in range(60)]
        value = rsi(closes)
        assert 0 <= value <= 100


class TestMacd:
    def test_unavailable_below_slow_period(self):
        assert macd([1.0] * 25) is None

    def test_line_without_signal(self):
        result = macd([float(i) for i in range(30)])
        assert result is not None
        assert result.signal is None
        assert result.histogram is None

    def test_signal_is_ema_of_line(self):
        closes = [100 + i * 0.5 + (i % 4) for i in range(60)]
        result = macd(closes)
        assert result.signal is not None
        assert result.histogram == pytest.approx(result.line - result.signal)

    def test_flat_series_zero(self):
        result = macd([50.0] * 40)
        assert result.line == pytest.approx(0.0)
        assert result.signal == pytest.approx(0.0)


class TestBollinger:
    def test_flat_series_collapses(self):
        bands = bollinger_bands([100.0] * 20)
        assert bands.upper == bands.middle == bands.lower == 100.0

    def test_population_stddev(self):
        closes = [1.0, 3.0] * 10  # mean 2, σ 1
        bands = bollinger_bands(closes)
        assert bands.middle == pytest.approx(2.0)
        assert bands.upper == pytest.approx(4.0)
        assert bands.lower == pytest.approx(0.0)

    def test_insufficient(self):
        assert bollinger_bands([1.0] * 19) is None


class TestSupportResistance:
    def test_extremes_over_lookback(self):
        points = _points([10.0] * 5 + [float(i) for i in range(20, 40)])
        sr = support_resistance(points)
        assert sr.support == 19.0
        assert sr.resistance == 40.0

    def test_insufficient(self):
        assert support_resistance(_points([1.0] * 5)) is None


class TestComputeIndicators:
    def test_scenario_flat_prices(self):
        """20 identical closes at $100 → SMA20 = 100 and neutral RSI."""
        result = compute_indicators(_points([100.0] * 20))
        assert result.sma20 == 100.0
        assert result.rsi == 50.0
        assert result.sma50 is None
        assert result.macd is None
        assert result.price_change_pct == 0.0

    def test_full_series(self):
        closes = [100 + i for i in range(60)]
        result = compute_indicators(_points(closes))
        assert result.sma50 == pytest.approx(sum(closes[-50:]) / 50)
        assert result.ema12 > result.ema26
        assert result.macd.signal is not None
        assert result.volume_avg == pytest.approx(1000.0)
        assert result.volume_change_pct == 0.0

    def test_empty_series(self):
        result = compute_indicators([])
        assert result.sma20 is None
        assert result.rsi is None
        assert result.price_change_pct is None


def test_pct_change():
    assert pct_change([100.0, 110.0]) == pytest.approx(10.0)
    assert pct_change([0.0, 1.0]) is None
    assert pct_change([5.0]) is None


def test_volume_average():
    points = _points([1.0] * 20, volume=250.0)
    assert volume_average(points) == 250.0
