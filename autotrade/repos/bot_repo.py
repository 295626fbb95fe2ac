"""Bot repository — persists bot configuration and running state."""

import json
from dataclasses import asdict
from typing import Optional

from autotrade.models.bot import Bot, BotStatus, RiskSettings
from autotrade.repos.db import get_connection

_STATE_COLUMNS = (
    "owner_id", "name", "symbol", "status", "initial_balance",
    "current_balance", "risk_settings", "daily_trade_count", "total_trades",
    "winning_trades", "win_rate", "max_drawdown", "daily_pnl", "total_pnl",
    "position_units", "position_avg_price", "peak_equity", "trading_day",
)


def _row_to_bot(row: dict) -> Bot:
    data = dict(row)
    data.pop("updated_at", None)
    data["risk_settings"] = RiskSettings.from_dict(json.loads(data["risk_settings"] or "{}"))
    return Bot(**data)


class BotRepo:
    """Data access layer for bots.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def save(self, bot: Bot) -> None:
        """Insert or update the bot's full state."""
        values = bot.to_dict()
        values["risk_settings"] = json.dumps(asdict(bot.risk_settings))
        columns = ", ".join(("id",) + _STATE_COLUMNS)
        placeholders = ", ".join("?" for _ in range(len(_STATE_COLUMNS) + 1))
        updates = ", ".join(f"{c} = excluded.{c}" for c in _STATE_COLUMNS)
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                f"""
                INSERT INTO bots ({columns}) VALUES ({placeholders})
                ON CONFLICT (id) DO UPDATE SET {updates},
                    updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
                """,
                (bot.id, *(values[c] for c in _STATE_COLUMNS)),
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, bot_id: str) -> Optional[Bot]:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute("SELECT * FROM bots WHERE id = ?", (bot_id,)).fetchone()
            return _row_to_bot(row) if row else None
        finally:
            conn.close()

    def list_bots(self, owner_id: Optional[str] = None) -> list[Bot]:
        conn = get_connection(self._db_path)
        try:
            if owner_id:
                rows = conn.execute(
                    "SELECT * FROM bots WHERE owner_id = ? ORDER BY id", (owner_id,)
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM bots ORDER BY id").fetchall()
            return [_row_to_bot(row) for row in rows]
        finally:
            conn.close()

    def update_status(self, bot_id: str, status: BotStatus) -> None:
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                "UPDATE bots SET status = ? WHERE id = ?",
                (BotStatus(status).value, bot_id),
            )
            conn.commit()
        finally:
            conn.close()
