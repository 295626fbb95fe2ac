"""Multi-factor risk engine — pure math, no I/O.

Scores a proposed trade on six factors (0 = safe, 100 = dangerous),
combines them into a weighted composite, gates the trade against the
bot's risk level and the confidence threshold, and sizes it down when
individual factors run hot.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from autotrade.data.models import MarketSnapshot
from autotrade.models.bot import RISK_LEVEL_THRESHOLDS, Bot
from autotrade.models.trade import TradeRecord
from autotrade.strategy.models import TradeSignal

DEFAULT_THRESHOLD = 50.0

WEIGHTS: dict[str, float] = {
    "portfolio": 0.25,
    "concentration": 0.20,
    "volatility": 0.20,
    "liquidity": 0.15,
    "drawdown": 0.15,
    "correlation": 0.05,
}

# Sub-score above which a warning is attached.
WARNING_LEVELS: dict[str, tuple[float, str]] = {
    "portfolio": (80.0, "High portfolio risk - significant losses detected"),
    "concentration": (60.0, "High concentration risk - position too large"),
    "volatility": (70.0, "High volatility detected - consider smaller position"),
    "liquidity": (60.0, "Low liquidity - may face slippage"),
    "drawdown": (70.0, "Recent losing streak detected"),
}


class RiskRecommendation(str, Enum):
    APPROVE = "approve"
    REDUCE = "reduce"
    REJECT = "reject"


@dataclass(frozen=True)
class RiskMetrics:
    portfolio: float
    concentration: float
    volatility: float
    liquidity: float
    drawdown: float
    correlation: float

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in WEIGHTS}


@dataclass(frozen=True)
class RiskAssessment:
    """Outcome of one ``RiskEngine.assess`` call.

    ``recommended_quantity`` is what may be executed (quote notional);
    ``max_quantity`` is the unadjusted per-trade budget.
    """

    approved: bool
    overall_risk_score: float
    recommended_quantity: float
    max_quantity: float
    recommendation: RiskRecommendation
    reason: str
    metrics: RiskMetrics
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "approved": self.approved,
            "overall_risk_score": round(self.overall_risk_score, 2),
            "recommended_quantity": round(self.recommended_quantity, 2),
            "max_quantity": round(self.max_quantity, 2),
            "recommendation": self.recommendation.value,
            "reason": self.reason,
            "warnings": list(self.warnings),
            "metrics": self.metrics.as_dict(),
        }


# ── Sub-scores ───────────────────────────────────────────────────────────


def portfolio_risk(equity: float, initial_balance: float) -> float:
    """Drawdown from the initial balance: 50 % down or worse scores 100."""
    if equity <= 0:
        return 100.0
    if initial_balance <= 0:
        return 0.0
    drawdown = (initial_balance - equity) / initial_balance
    if drawdown <= 0:
        return 0.0
    return min(100.0, drawdown * 200.0)


def concentration_risk(notional: float, equity: float) -> float:
    """Trade size as a share of equity: 2 % scores 0, 10 % scores 100."""
    if equity <= 0:
        return 100.0
    share = notional / equity
    if share <= 0.02:
        return 0.0
    if share >= 0.10:
        return 100.0
    return (share - 0.02) * 1250.0


def volatility_risk(closes: Sequence[float]) -> float:
    """Population stddev of simple returns × 1000, capped at 100.

    Returns 50 when there are fewer than two closes to compare.
    """
    returns = [
        (closes[i] - closes[i - 1]) / closes[i - 1]
        for i in range(1, len(closes))
        if closes[i - 1] != 0
    ]
    if not returns:
        return 50.0
    mean = sum(returns) / len(returns)
    variance = sum((r - mean) ** 2 for r in returns) / len(returns)
    return min(100.0, math.sqrt(variance) * 1000.0)


def liquidity_risk(volume: float, price: float) -> float:
    """Bucketed on 24h quote volume (base volume × price)."""
    quote_volume = volume * price
    if quote_volume > 1e9:
        return 0.0
    if quote_volume > 1e8:
        return 20.0
    if quote_volume > 1e7:
        return 50.0
    return 80.0


def drawdown_risk(recent_trades: Sequence[TradeRecord]) -> float:
    """Loss rate and losing streak over the last 10 trades (newest first)."""
    if not recent_trades:
        return 20.0
    window = list(recent_trades)[:10]
    losses = sum(1 for t in window if t.pnl < 0)
    loss_rate = losses / len(window)

    consecutive = 0
    for trade in window:
        if trade.pnl < 0:
            consecutive += 1
        else:
            break

    return min(100.0, loss_rate * 100.0 + min(50.0, consecutive * 15.0))


def correlation_risk() -> float:
    # Single-asset bots; no cross-position data to correlate.
    return 30.0


def composite_score(metrics: RiskMetrics) -> float:
    scores = metrics.as_dict()
    return sum(scores[name] * weight for name, weight in WEIGHTS.items())


def threshold_for(risk_level: int) -> float:
    return RISK_LEVEL_THRESHOLDS.get(risk_level, DEFAULT_THRESHOLD)


def size_adjustment(metrics: RiskMetrics, overall: float) -> float:
    """Multiplier (≤ 1 in practice) applied to the base trade budget."""
    adjustment = 1.0
    if overall > 60:
        adjustment *= (100.0 - overall) / 40.0
    if metrics.volatility > 50:
        adjustment *= (100.0 - metrics.volatility) / 50.0
    if metrics.concentration > 40:
        adjustment *= (100.0 - metrics.concentration) / 60.0
    return adjustment


# ── Engine ───────────────────────────────────────────────────────────────


class RiskEngine:
    """Evaluates proposed trades against a bot's state.

    Args:
        confidence_threshold: Signals below this confidence are rejected.
        min_trade_size: Smallest executable notional after sizing.
    """

    def __init__(
        self,
        confidence_threshold: float = 60.0,
        min_trade_size: float = 10.0,
    ) -> None:
        self._confidence_threshold = confidence_threshold
        self._min_trade_size = min_trade_size

    def assess(
        self,
        bot: Bot,
        signal: TradeSignal,
        snapshot: MarketSnapshot,
        closes: Sequence[float] = (),
        recent_trades: Sequence[TradeRecord] = (),
    ) -> RiskAssessment:
        equity = bot.equity(snapshot.price)
        metrics = RiskMetrics(
            portfolio=portfolio_risk(equity, bot.initial_balance),
            concentration=concentration_risk(signal.quantity, equity),
            volatility=volatility_risk(closes),
            liquidity=liquidity_risk(snapshot.volume_24h, snapshot.price),
            drawdown=drawdown_risk(recent_trades),
            correlation=correlation_risk(),
        )
        overall = composite_score(metrics)
        threshold = threshold_for(bot.risk_settings.risk_level)

        warnings = [
            message
            for name, (level, message) in WARNING_LEVELS.items()
            if getattr(metrics, name) > level
        ]

        base = max(0.0, equity * bot.risk_settings.max_trade_fraction)
        recommended = max(0.0, min(signal.quantity, base * size_adjustment(metrics, overall)))

        reason: Optional[str] = None
        if overall > threshold:
            reason = f"Risk score {overall:.1f} exceeds threshold {threshold:.0f}"
        elif signal.confidence < self._confidence_threshold:
            reason = (
                f"Confidence {signal.confidence:.0f} below threshold "
                f"{self._confidence_threshold:.0f}"
            )
        elif recommended < self._min_trade_size:
            reason = (
                f"Recommended quantity {recommended:.2f} too small "
                f"(minimum {self._min_trade_size:.2f})"
            )

        if reason is not None:
            return RiskAssessment(
                approved=False,
                overall_risk_score=overall,
                recommended_quantity=0.0,
                max_quantity=base,
                recommendation=RiskRecommendation.REJECT,
                reason=reason,
                metrics=metrics,
                warnings=warnings,
            )

        reduced = recommended < signal.quantity
        return RiskAssessment(
            approved=True,
            overall_risk_score=overall,
            recommended_quantity=recommended,
            max_quantity=base,
            recommendation=RiskRecommendation.REDUCE if reduced else RiskRecommendation.APPROVE,
            reason=(
                f"Approved with size reduced to {recommended:.2f}"
                if reduced
                else "Approved"
            ),
            metrics=metrics,
            warnings=warnings,
        )
