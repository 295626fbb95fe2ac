"""Performance repository — daily per-bot snapshots in performance_metrics."""

from typing import Optional

from autotrade.repos.db import get_connection


class PerformanceRepo:
    """Data access layer for daily performance snapshots.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def upsert_daily(self, bot_id: str, day: str, stats: dict, ending_equity: float) -> None:
        """Store (or replace) the snapshot for *bot_id* on *day*.

        *stats* is the dict returned by ``calculate_stats``.
        """
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                INSERT INTO performance_metrics
                    (bot_id, day, total_trades, winning_trades, losing_trades,
                     win_rate, profit_factor, net_pnl, max_drawdown, ending_equity)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (bot_id, day) DO UPDATE SET
                    total_trades = excluded.total_trades,
                    winning_trades = excluded.winning_trades,
                    losing_trades = excluded.losing_trades,
                    win_rate = excluded.win_rate,
                    profit_factor = excluded.profit_factor,
                    net_pnl = excluded.net_pnl,
                    max_drawdown = excluded.max_drawdown,
                    ending_equity = excluded.ending_equity
                """,
                (
                    bot_id, day,
                    stats["total_trades"], stats["winning_trades"],
                    stats["losing_trades"], stats["win_rate"],
                    stats["profit_factor"], stats["net_pnl"],
                    stats["max_drawdown"], ending_equity,
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_metrics(self, bot_id: Optional[str] = None, limit: int = 30) -> list[dict]:
        """Return the newest snapshots first."""
        conn = get_connection(self._db_path)
        try:
            if bot_id:
                rows = conn.execute(
                    "SELECT * FROM performance_metrics WHERE bot_id = ? "
                    "ORDER BY day DESC LIMIT ?",
                    (bot_id, limit),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM performance_metrics ORDER BY day DESC, bot_id LIMIT ?",
                    (limit,),
                ).fetchall()
            return [dict(row) for row in rows]
        finally:
            conn.close()
