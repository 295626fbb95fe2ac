"""Technical indicators — SMA, EMA, RSI, MACD, Bollinger Bands, S/R. Pure functions, no I/O.

All series are ordered oldest-first.  Functions that need *n* points
return ``None`` ("unavailable") when given fewer.
"""

import math
from typing import Optional, Sequence

from autotrade.data.models import PricePoint
from autotrade.strategy.models import (
    BollingerBands,
    Indicators,
    MacdValues,
    SupportResistance,
)


def sma(values: Sequence[float], period: int) -> Optional[float]:
    """Arithmetic mean of the last *period* values."""
    if period <= 0 or len(values) < period:
        return None
    window = values[-period:]
    return sum(window) / period


def ema_series(values: Sequence[float], period: int) -> list[float]:
    """Exponential Moving Average series.

    ``EMA_t = value_t × k + EMA_{t-1} × (1 - k)`` with ``k = 2 / (period + 1)``,
    seeded with the SMA of the first *period* values.  The returned list
    starts at the seed, so it has ``len(values) - period + 1`` entries
    (empty when there are fewer than *period* values).
    """
    if period <= 0 or len(values) < period:
        return []
    k = 2.0 / (period + 1)
    seed = sum(values[:period]) / period
    result = [seed]
    for v in values[period:]:
        result.append(v * k + result[-1] * (1 - k))
    return result


def ema(values: Sequence[float], period: int) -> Optional[float]:
    """Latest EMA value, or ``None`` below *period* points."""
    series = ema_series(values, period)
    return series[-1] if series else None


# ── RSI ──────────────────────────────────────────────────────────────────


def rsi(values: Sequence[float], period: int = 14) -> Optional[float]:
    """Relative Strength Index over the trailing *period* moves.

    Uses the simple average of gains and losses (no Wilder smoothing):
        RSI = 100 - 100 / (1 + avg_gain / avg_loss)

    ``100`` when there were gains but no losses, ``0`` for losses only and
    ``50`` for a flat window.  Needs ``period + 1`` values.
    """
    if period <= 0 or len(values) < period + 1:
        return None
    window = values[-(period + 1):]
    deltas = [window[i] - window[i - 1] for i in range(1, len(window))]
    avg_gain = sum(d for d in deltas if d > 0) / period
    avg_loss = sum(-d for d in deltas if d < 0) / period

    if avg_loss == 0:
        return 50.0 if avg_gain == 0 else 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


# ── MACD ─────────────────────────────────────────────────────────────────


def macd(
    values: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal_period: int = 9,
) -> Optional[MacdValues]:
    """MACD line (EMA fast − EMA slow) with a true EMA signal line.

    The line needs *slow* points; the signal line needs
    ``slow + signal_period - 1``.  Below that, ``signal`` and
    ``histogram`` are ``None`` rather than a copy of the line.
    """
    slow_series = ema_series(values, slow)
    if not slow_series:
        return None
    fast_series = ema_series(values, fast)
    # Align: slow_series[0] and fast_series[slow - fast] both sit at index slow-1.
    offset = slow - fast
    line_series = [f - s for f, s in zip(fast_series[offset:], slow_series)]
    line = line_series[-1]

    signal_series = ema_series(line_series, signal_period)
    if not signal_series:
        return MacdValues(line=line)
    signal = signal_series[-1]
    return MacdValues(line=line, signal=signal, histogram=line - signal)


# ── Bollinger Bands ──────────────────────────────────────────────────────


def bollinger_bands(
    values: Sequence[float],
    period: int = 20,
    std_dev: float = 2.0,
) -> Optional[BollingerBands]:
    """Middle = SMA(*period*); upper/lower = middle ± *std_dev* × σ (population)."""
    middle = sma(values, period)
    if middle is None:
        return None
    window = values[-period:]
    sigma = math.sqrt(sum((x - middle) ** 2 for x in window) / period)
    return BollingerBands(
        upper=middle + std_dev * sigma,
        middle=middle,
        lower=middle - std_dev * sigma,
    )


# ── Support / resistance, volume ─────────────────────────────────────────


def support_resistance(
    points: Sequence[PricePoint],
    lookback: int = 20,
) -> Optional[SupportResistance]:
    """Lowest low and highest high over the last *lookback* bars."""
    if lookback <= 0 or len(points) < lookback:
        return None
    window = points[-lookback:]
    return SupportResistance(
        support=min(p.low for p in window),
        resistance=max(p.high for p in window),
    )


def volume_average(points: Sequence[PricePoint], period: int = 20) -> Optional[float]:
    return sma([p.volume for p in points], period)


def pct_change(values: Sequence[float]) -> Optional[float]:
    """Percent change of the last value against the one before it."""
    if len(values) < 2 or values[-2] == 0:
        return None
    return (values[-1] - values[-2]) / values[-2] * 100.0


def compute_indicators(points: Sequence[PricePoint]) -> Indicators:
    """Derive the full indicator bundle from an OHLCV series."""
    closes = [p.close for p in points]
    volumes = [p.volume for p in points]
    return Indicators(
        sma20=sma(closes, 20),
        sma50=sma(closes, 50),
        ema12=ema(closes, 12),
        ema26=ema(closes, 26),
        rsi=rsi(closes, 14),
        macd=macd(closes),
        bollinger=bollinger_bands(closes),
        support_resistance=support_resistance(points),
        volume_avg=volume_average(points),
        price_change_pct=pct_change(closes),
        volume_change_pct=pct_change(volumes),
    )
