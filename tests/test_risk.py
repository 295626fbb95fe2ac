"""Tests for the risk module.

Covers the six sub-scores, the weighted composite, approval gating,
position sizing, and drawdown tracking.
"""

import pytest

from autotrade.data.models import MarketSnapshot
from autotrade.models.bot import Bot, BotStatus, RiskSettings
from autotrade.models.trade import TradeRecord, TradeStatus
from autotrade.risk.drawdown import DrawdownTracker
from autotrade.risk.risk_engine import (
    WEIGHTS,
    RiskEngine,
    RiskRecommendation,
    concentration_risk,
    drawdown_risk,
    liquidity_risk,
    portfolio_risk,
    threshold_for,
    volatility_risk,
)
from autotrade.strategy.models import Action, SignalSource, TradeSignal

FLAT = [100.0] * 30
CHOPPY = [100.0, 106.0] * 10
WILD = [100.0, 110.0] * 10
VERY_WILD = [100.0, 125.0] * 10


# ── Helpers ──────────────────────────────────────────────────────────────


def _bot(balance=1000.0, risk_level=3, fraction=0.05) -> Bot:
    return Bot(
        id="bot-1",
        owner_id="owner",
        symbol="BTCUSDT",
        initial_balance=1000.0,
        current_balance=balance,
        status=BotStatus.RUNNING,
        risk_settings=RiskSettings(risk_level=risk_level, max_trade_fraction=fraction),
    )


def _snapshot(price=100.0, volume=1e8) -> MarketSnapshot:
    return MarketSnapshot(
        symbol="BTCUSDT",
        price=price,
        change_24h=0.0,
        change_percent_24h=0.0,
        volume_24h=volume,
        high_24h=price,
        low_24h=price,
        timestamp="2025-01-01T00:00:00+00:00",
    )


def _signal(quantity=50.0, confidence=70.0, action=Action.BUY) -> TradeSignal:
    return TradeSignal(
        symbol="BTCUSDT",
        action=action,
        quantity=quantity,
        confidence=confidence,
        reasoning="test",
        source=SignalSource.FALLBACK,
    )


def _trade(pnl: float, trade_id: int = 1) -> TradeRecord:
    return TradeRecord(
        id=trade_id,
        bot_id="bot-1",
        symbol="BTCUSDT",
        action="sell",
        quantity=50.0,
        price=100.0,
        status=TradeStatus.EXECUTED,
        pnl=pnl,
    )


# ── Sub-scores ───────────────────────────────────────────────────────────


class TestPortfolioRisk:
    def test_no_drawdown(self):
        assert portfolio_risk(1000, 1000) == 0.0
        assert portfolio_risk(1200, 1000) == 0.0

    def test_linear_drawdown(self):
        assert portfolio_risk(800, 1000) == pytest.approx(40.0)

    def test_capped(self):
        assert portfolio_risk(400, 1000) == 100.0

    def test_wiped_out(self):
        assert portfolio_risk(0, 1000) == 100.0


class TestConcentrationRisk:
    def test_small_trade(self):
        assert concentration_risk(20, 1000) == 0.0

    def test_interpolates(self):
        assert concentration_risk(60, 1000) == pytest.approx(50.0)

    def test_saturates(self):
        assert concentration_risk(100, 1000) == 100.0
        assert concentration_risk(200, 1000) == 100.0

    def test_no_equity(self):
        assert concentration_risk(10, 0) == 100.0


class TestVolatilityRisk:
    def test_not_enough_closes(self):
        assert volatility_risk([100.0]) == 50.0
        assert volatility_risk([]) == 50.0

    def test_flat(self):
        assert volatility_risk(FLAT) == 0.0

    def test_capped(self):
        assert volatility_risk(VERY_WILD) == 100.0


class TestLiquidityRisk:
    @pytest.mark.parametrize(
        "volume, price, expected",
        [
            (1e8, 100.0, 0.0),
            (2e6, 100.0, 20.0),
            (2e5, 100.0, 50.0),
            (1e3, 100.0, 80.0),
        ],
    )
    def test_buckets(self, volume, price, expected):
        assert liquidity_risk(volume, price) == expected


class TestDrawdownRisk:
    def test_no_history(self):
        assert drawdown_risk([]) == 20.0

    def test_streak_and_rate(self):
        # Newest first: three losses, then seven wins.
        trades = [_trade(-5)] * 3 + [_trade(5)] * 7
        assert drawdown_risk(trades) == pytest.approx(30 + 45)

    def test_capped(self):
        assert drawdown_risk([_trade(-1)] * 10) == 100.0

    def test_only_last_ten_counted(self):
        trades = [_trade(5)] * 10 + [_trade(-5)] * 10
        assert drawdown_risk(trades) == 0.0


# ── Engine ───────────────────────────────────────────────────────────────


class TestRiskEngine:
    def test_weights_sum_to_one(self):
        assert sum(WEIGHTS.values()) == pytest.approx(1.0)

    def test_thresholds(self):
        assert [threshold_for(n) for n in range(1, 6)] == [20, 35, 50, 70, 85]
        assert threshold_for(9) == 50

    def test_approves_safe_trade(self):
        result = RiskEngine().assess(_bot(), _signal(50, 60), _snapshot(), FLAT)
        assert result.approved
        assert result.recommendation is RiskRecommendation.APPROVE
        assert result.recommended_quantity == pytest.approx(50.0)
        assert result.max_quantity == pytest.approx(50.0)

    def test_confidence_59_always_rejected(self):
        result = RiskEngine().assess(_bot(), _signal(10, 59), _snapshot(), FLAT)
        assert not result.approved
        assert "Confidence" in result.reason
        assert result.recommended_quantity == 0.0

    def test_confidence_threshold_configurable(self):
        engine = RiskEngine(confidence_threshold=80)
        assert not engine.assess(_bot(), _signal(10, 75), _snapshot(), FLAT).approved

    def test_oversized_trade_in_volatile_illiquid_market_rejected(self):
        """$1,000 balance, 5 % fraction, $200 proposal → concentration 100 → rejected."""
        result = RiskEngine().assess(
            _bot(), _signal(200, 90), _snapshot(volume=1000), VERY_WILD,
        )
        assert result.metrics.concentration == 100.0
        assert result.overall_risk_score > 50
        assert not result.approved
        assert result.recommendation is RiskRecommendation.REJECT
        assert "exceeds threshold 50" in result.reason

    def test_concentration_monotonic(self):
        engine = RiskEngine()
        scores = [
            engine.assess(_bot(), _signal(q, 90), _snapshot(), CHOPPY).overall_risk_score
            for q in range(0, 300, 5)
        ]
        assert all(b >= a for a, b in zip(scores, scores[1:]))

    def test_conservative_level_rejects_more(self):
        result = RiskEngine().assess(_bot(risk_level=1), _signal(50, 90), _snapshot(), CHOPPY)
        assert not result.approved
        relaxed = RiskEngine().assess(_bot(risk_level=5), _signal(50, 90), _snapshot(), CHOPPY)
        assert relaxed.approved

    def test_volatility_reduces_size(self):
        result = RiskEngine().assess(_bot(), _signal(50, 90), _snapshot(), CHOPPY)
        assert result.metrics.volatility > 50
        assert result.approved
        assert result.recommendation is RiskRecommendation.REDUCE
        assert 10 < result.recommended_quantity < 50

    def test_too_small_after_sizing(self):
        result = RiskEngine().assess(_bot(), _signal(50, 90), _snapshot(), WILD)
        assert not result.approved
        assert "too small" in result.reason

    def test_never_exceeds_proposal(self):
        result = RiskEngine().assess(_bot(balance=100_000), _signal(30, 90), _snapshot(), FLAT)
        assert result.recommended_quantity == pytest.approx(30.0)

    def test_warnings(self):
        result = RiskEngine().assess(
            _bot(), _signal(200, 90), _snapshot(volume=1000), VERY_WILD,
        )
        assert any("volatility" in w for w in result.warnings)
        assert any("concentration" in w for w in result.warnings)
        assert any("liquidity" in w for w in result.warnings)

    def test_losing_streak_feeds_drawdown(self):
        result = RiskEngine().assess(
            _bot(), _signal(50, 90), _snapshot(), FLAT, [_trade(-3)] * 10,
        )
        assert result.metrics.drawdown == 100.0
        assert "Recent losing streak detected" in result.warnings

    def test_equity_includes_open_position(self):
        bot = _bot(balance=500.0)
        bot.position_units = 5.0
        bot.position_avg_price = 100.0
        result = RiskEngine().assess(bot, _signal(50, 90), _snapshot(price=100.0), FLAT)
        assert result.metrics.portfolio == 0.0
        assert result.max_quantity == pytest.approx(50.0)


# ── Drawdown tracker ─────────────────────────────────────────────────────


class TestDrawdownTracker:
    def test_initial_state(self):
        dt = DrawdownTracker(1000.0)
        assert dt.peak_equity == 1000.0
        assert dt.drawdown_pct == 0.0
        assert dt.max_drawdown_pct == 0.0

    def test_peak_rises(self):
        dt = DrawdownTracker(1000.0)
        dt.update(1100.0)
        assert dt.peak_equity == 1100.0

    def test_drawdown_and_max(self):
        dt = DrawdownTracker(1000.0)
        assert dt.update(900.0) == pytest.approx(10.0)
        dt.update(950.0)
        assert dt.drawdown_pct == pytest.approx(5.0)
        assert dt.max_drawdown_pct == pytest.approx(10.0)

    def test_restores_previous_max(self):
        dt = DrawdownTracker(1000.0, max_drawdown_pct=25.0)
        dt.update(990.0)
        assert dt.max_drawdown_pct == 25.0

    def test_rejects_non_positive_peak(self):
        with pytest.raises(ValueError):
            DrawdownTracker(0.0)
