"""Persistence sink used by the engine.

Wraps the repositories so that a storage failure is logged and never
rolls back or aborts a trading decision.
"""

import logging
import sqlite3
from typing import Optional

from autotrade.models.activity import ActivityRecord
from autotrade.models.bot import Bot
from autotrade.models.trade import TradeRecord
from autotrade.repos.activity_repo import ActivityRepo
from autotrade.repos.bot_repo import BotRepo
from autotrade.repos.db import init_db
from autotrade.repos.performance_repo import PerformanceRepo
from autotrade.repos.trade_repo import TradeRepo

logger = logging.getLogger("autotrade.persistence")


class PersistenceSink:
    """Fire-and-forget writes (and best-effort reads) over one SQLite file.

    Args:
        db_path: Path to the SQLite database file.
        initialize: Run the schema migration first.
    """

    def __init__(self, db_path: str, initialize: bool = True) -> None:
        if initialize:
            init_db(db_path)
        self.bots = BotRepo(db_path)
        self.trades = TradeRepo(db_path)
        self.activities = ActivityRepo(db_path)
        self.performance = PerformanceRepo(db_path)

    def record_activity(self, record: ActivityRecord) -> None:
        try:
            self.activities.insert(record)
        except sqlite3.Error as exc:
            logger.error("Failed to store activity '%s' for %s: %s", record.title, record.bot_id, exc)

    def save_bot(self, bot: Bot) -> None:
        try:
            self.bots.save(bot)
        except sqlite3.Error as exc:
            logger.error("Failed to store state of bot %s: %s", bot.id, exc)

    def insert_pending_trade(
        self,
        bot: Bot,
        action: str,
        quantity: float,
        price: float,
        confidence: Optional[float],
        notes: str = "",
    ) -> Optional[int]:
        try:
            return self.trades.insert_pending(
                bot.id, bot.owner_id, bot.symbol, action, quantity, price,
                confidence=confidence, notes=notes, trading_day=bot.trading_day,
            )
        except sqlite3.Error as exc:
            logger.error("Failed to store pending %s trade for %s: %s", action, bot.id, exc)
            return None

    def mark_trade_executed(
        self,
        trade_id: Optional[int],
        price: float,
        quantity: float,
        pnl: float,
        exchange_order_id: Optional[str],
    ) -> None:
        if trade_id is None:
            return
        try:
            self.trades.mark_executed(trade_id, price, quantity, pnl, exchange_order_id)
        except sqlite3.Error as exc:
            logger.error("Failed to mark trade %s executed: %s", trade_id, exc)

    def mark_trade_failed(self, trade_id: Optional[int], notes: str) -> None:
        if trade_id is None:
            return
        try:
            self.trades.mark_failed(trade_id, notes)
        except sqlite3.Error as exc:
            logger.error("Failed to mark trade %s failed: %s", trade_id, exc)

    def recent_trades(
        self,
        bot_id: str,
        limit: int = 10,
        action: Optional[str] = None,
    ) -> list[TradeRecord]:
        try:
            return self.trades.get_recent_executed(bot_id, limit, action)
        except sqlite3.Error as exc:
            logger.warning("Could not read recent trades for %s: %s", bot_id, exc)
            return []

    def trades_for_day(self, bot_id: str, day: str) -> list[TradeRecord]:
        try:
            return self.trades.get_executed_for_day(bot_id, day)
        except sqlite3.Error as exc:
            logger.warning("Could not read trades of %s for %s: %s", bot_id, day, exc)
            return []

    def store_performance(self, bot_id: str, day: str, stats: dict, ending_equity: float) -> None:
        try:
            self.performance.upsert_daily(bot_id, day, stats, ending_equity)
        except sqlite3.Error as exc:
            logger.error("Failed to store performance of %s for %s: %s", bot_id, day, exc)
