"""Trade repository — SQLite CRUD for the trades table."""

from datetime import datetime, timezone
from typing import Optional

from autotrade.models.trade import TradeRecord, TradeStatus
from autotrade.repos.db import get_connection


class TradeRepo:
    """Data access layer for trade records.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    # ── Write ────────────────────────────────────────────────────────────

    def insert_pending(
        self,
        bot_id: str,
        owner_id: str,
        symbol: str,
        action: str,
        quantity: float,
        price: float,
        confidence: Optional[float] = None,
        notes: str = "",
        trading_day: str = "",
    ) -> int:
        """Insert a trade in ``pending`` state and return its ``id``.

        *trading_day* (``YYYY-MM-DD``) is the bot's trading day the trade
        counts towards in daily statistics.
        """
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO trades
                    (bot_id, owner_id, symbol, action, quantity, price,
                     total_value, confidence, status, notes, trading_day)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?, ?)
                """,
                (
                    bot_id, owner_id, symbol, action, quantity, price,
                    quantity, confidence, notes, trading_day,
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    def mark_executed(
        self,
        trade_id: int,
        price: float,
        quantity: float,
        pnl: float = 0.0,
        exchange_order_id: Optional[str] = None,
    ) -> None:
        """Record a fill: executed price, filled notional and realised P&L."""
        executed_at = datetime.now(timezone.utc).isoformat()
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                UPDATE trades
                SET status = 'executed', price = ?, quantity = ?,
                    total_value = ?, pnl = ?, exchange_order_id = ?,
                    executed_at = ?
                WHERE id = ?
                """,
                (price, quantity, quantity, pnl, exchange_order_id, executed_at, trade_id),
            )
            conn.commit()
        finally:
            conn.close()

    def mark_failed(self, trade_id: int, notes: str) -> None:
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                "UPDATE trades SET status = 'failed', notes = ? WHERE id = ?",
                (notes, trade_id),
            )
            conn.commit()
        finally:
            conn.close()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_recent_executed(
        self,
        bot_id: str,
        limit: int = 10,
        action: Optional[str] = None,
    ) -> list[TradeRecord]:
        """Return the bot's last *limit* executed trades, newest first.

        Pass ``action="sell"`` for closed trades only.
        """
        conn = get_connection(self._db_path)
        try:
            condition, params = "", [bot_id, TradeStatus.EXECUTED.value]
            if action:
                condition = "AND action = ?"
                params.append(action)
            rows = conn.execute(
                f"""
                SELECT * FROM trades
                WHERE bot_id = ? AND status = ? {condition}
                ORDER BY id DESC LIMIT ?
                """,
                (*params, limit),
            ).fetchall()
            return [TradeRecord.from_row(dict(row)) for row in rows]
        finally:
            conn.close()

    def get_executed_for_day(self, bot_id: str, day: str) -> list[TradeRecord]:
        """Return the bot's executed trades booked on trading day *day* (``YYYY-MM-DD``)."""
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                """
                SELECT * FROM trades
                WHERE bot_id = ? AND status = ? AND trading_day = ?
                ORDER BY id ASC
                """,
                (bot_id, TradeStatus.EXECUTED.value, day),
            ).fetchall()
            return [TradeRecord.from_row(dict(row)) for row in rows]
        finally:
            conn.close()

    def get_trades(
        self,
        limit: int = 20,
        status_filter: Optional[str] = None,
        bot_id: Optional[str] = None,
    ) -> dict:
        """Return recent trades for the API.

        Returns:
            ``{"trades": [...], "total": int}``
        """
        conn = get_connection(self._db_path)
        try:
            conditions: list[str] = []
            params: list = []

            if status_filter:
                conditions.append("status = ?")
                params.append(status_filter)
            if bot_id:
                conditions.append("bot_id = ?")
                params.append(bot_id)

            where_clause = ""
            if conditions:
                where_clause = "WHERE " + " AND ".join(conditions)

            rows = conn.execute(
                f"SELECT * FROM trades {where_clause} ORDER BY id DESC LIMIT ?",
                (*params, limit),
            ).fetchall()
            total = conn.execute(
                f"SELECT COUNT(*) FROM trades {where_clause}",
                params,
            ).fetchone()[0]

            return {"trades": [dict(row) for row in rows], "total": total}
        finally:
            conn.close()
