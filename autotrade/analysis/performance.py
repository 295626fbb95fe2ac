"""Performance statistics — pure functions over realised trade P&L."""

from typing import Optional, Sequence

from autotrade.models.trade import TradeRecord


def calculate_stats(trades: Sequence[TradeRecord]) -> dict:
    """Summarise the closing (sell) trades of one bot.

    Buys only move cash into a position and carry no P&L, so they are not
    counted.

    Returns:
        Dict matching the ``performance_metrics`` columns:
        ``total_trades``, ``winning_trades``, ``losing_trades``,
        ``win_rate``, ``profit_factor``, ``max_drawdown``, ``net_pnl``.
    """
    pnls = [t.pnl for t in trades if t.action == "sell"]
    if not pnls:
        return {
            "total_trades": 0,
            "winning_trades": 0,
            "losing_trades": 0,
            "win_rate": 0.0,
            "profit_factor": None,
            "max_drawdown": 0.0,
            "net_pnl": 0.0,
        }

    total = len(pnls)
    winners = [p for p in pnls if p > 0]
    losers = [p for p in pnls if p <= 0]

    gross_profit = sum(winners)
    gross_loss = abs(sum(losers))
    profit_factor: Optional[float] = (
        gross_profit / gross_loss if gross_loss > 0 else None
    )

    return {
        "total_trades": total,
        "winning_trades": len(winners),
        "losing_trades": len(losers),
        "win_rate": round(len(winners) / total, 4),
        "profit_factor": round(profit_factor, 4) if profit_factor is not None else None,
        "max_drawdown": round(_max_drawdown(pnls), 4),
        "net_pnl": round(sum(pnls), 2),
    }


def _max_drawdown(pnls: list[float]) -> float:
    """Largest peak-to-trough decline of the cumulative P&L curve (positive)."""
    cumulative = 0.0
    peak = 0.0
    max_dd = 0.0
    for p in pnls:
        cumulative += p
        peak = max(peak, cumulative)
        max_dd = max(max_dd, peak - cumulative)
    return max_dd
