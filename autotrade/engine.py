"""AutoTrade — Trading engine (one owner, one tick at a time).

Each tick refreshes market data and sentiment through the cache, then
runs every running bot through indicators → decision → risk → execution.
Bots are processed concurrently and isolated from each other: a failure,
rejection or timeout in one bot never affects the rest of the tick.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from autotrade.analysis.performance import calculate_stats
from autotrade.broker.models import OrderResponse, OrderSide
from autotrade.config import Config
from autotrade.data.cache import CachedFeed, SourceKind
from autotrade.data.models import MarketSnapshot, PricePoint, SentimentReport
from autotrade.errors import ConfigurationError, DataInsufficientError, ProviderError
from autotrade.models.activity import (
    SYSTEM_BOT_ID,
    ActivityKind,
    ActivityRecord,
    ActivityStatus,
)
from autotrade.models.bot import Bot, BotStatus
from autotrade.repos.sink import PersistenceSink
from autotrade.retry import ExponentialBackoff
from autotrade.risk.drawdown import DrawdownTracker
from autotrade.risk.risk_engine import RiskEngine
from autotrade.strategy.decision import DecisionStep
from autotrade.strategy.indicators import compute_indicators
from autotrade.strategy.models import Action, Indicators, TradeSignal

logger = logging.getLogger("autotrade.engine")

# Minimum closes before a bot is analysed (RSI needs 15, SMA20 needs 20).
MIN_HISTORY_POINTS = 20

_RECENT_ACTIVITY_LIMIT = 200


class BotPhase(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    ANALYZING = "analyzing"
    RISK_CHECKING = "risk_checking"
    EXECUTING = "executing"
    REJECTED = "rejected"
    END_OF_DAY_CLOSING = "end_of_day_closing"


@dataclass
class TickReport:
    """Summary of one tick, keyed by bot id."""

    owner_id: str
    started_at: str
    finished_at: str = ""
    end_of_day: bool = False
    outcomes: dict[str, dict] = field(default_factory=dict)
    timed_out: list[str] = field(default_factory=list)
    data_errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "owner_id": self.owner_id,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "end_of_day": self.end_of_day,
            "outcomes": dict(self.outcomes),
            "timed_out": list(self.timed_out),
            "data_errors": list(self.data_errors),
        }


class TradingEngine:
    """Runs the decision-and-execution cycle for one owner's bots.

    Args:
        config: Application configuration.
        owner_id: Owner whose bots this engine drives.
        bots: The owner's bots.  The engine mutates their state in place.
        market: Market-data client (``BinanceMarketClient`` or duck-type).
        broker: Execution sink with ``submit_order``.
        feed: Cache-backed read-through fetcher shared across engines.
        sink: Persistence sink for activities, trades and bot state.
        decision: Decision step (LLM with technical fallback).
        risk: Risk engine.
        sentiment: Optional ``SentimentClient``; skipped when ``None``.
        news: Optional ``NewsClient`` feeding headlines to sentiment.
    """

    def __init__(
        self,
        config: Config,
        owner_id: str,
        bots: list[Bot],
        market,
        broker,
        feed: CachedFeed,
        sink: PersistenceSink,
        decision: Optional[DecisionStep] = None,
        risk: Optional[RiskEngine] = None,
        sentiment=None,
        news=None,
    ) -> None:
        self._config = config
        self.owner_id = owner_id
        self._bots: dict[str, Bot] = {b.id: b for b in bots}
        self._market = market
        self._broker = broker
        self._feed = feed
        self._sink = sink
        self._decision = decision or DecisionStep(
            default_quantity=config.default_trade_quantity,
            max_attempts=config.retry_attempts,
            backoff=ExponentialBackoff(base=config.retry_base_delay),
        )
        self._risk = risk or RiskEngine(
            confidence_threshold=config.confidence_threshold,
            min_trade_size=config.min_trade_size,
        )
        self._sentiment = sentiment
        self._news = news

        self._semaphore = asyncio.Semaphore(config.max_concurrent_calls)
        self._tick_lock = asyncio.Lock()
        self._bot_locks: dict[str, asyncio.Lock] = {}
        self._phases: dict[str, BotPhase] = {b.id: BotPhase.IDLE for b in bots}
        self._closed_day: Optional[str] = None
        self._tick_count: int = 0
        self._last_tick: Optional[TickReport] = None
        self.recent_activities: deque[ActivityRecord] = deque(maxlen=_RECENT_ACTIVITY_LIMIT)

        for bot in bots:
            self._sink.save_bot(bot)

    # ── Bots ─────────────────────────────────────────────────────────────

    @property
    def bots(self) -> list[Bot]:
        return list(self._bots.values())

    def get_bot(self, bot_id: str) -> Optional[Bot]:
        return self._bots.get(bot_id)

    def _lock_for(self, bot_id: str) -> asyncio.Lock:
        if bot_id not in self._bot_locks:
            self._bot_locks[bot_id] = asyncio.Lock()
        return self._bot_locks[bot_id]

    def set_bot_status(self, bot_id: str, status: BotStatus) -> Bot:
        """Apply an external start / pause / stop transition.

        Raises ``KeyError`` for an unknown bot and ``ValueError`` for an
        unknown status.
        """
        bot = self._bots[bot_id]
        new_status = BotStatus(status)
        old_status = bot.status
        bot.status = new_status
        self._sink.save_bot(bot)
        self._record(
            bot.id,
            ActivityKind.STATUS_CHANGE,
            f"Bot {new_status.value}",
            f"Status changed from {old_status.value} to {new_status.value}",
            data={"from": old_status.value, "to": new_status.value},
        )
        return bot

    def status(self) -> dict:
        return {
            "owner_id": self.owner_id,
            "tick_count": self._tick_count,
            "closed_day": self._closed_day,
            "last_tick": self._last_tick.to_dict() if self._last_tick else None,
            "bots": [
                {**bot.to_dict(), "phase": self._phases.get(bot.id, BotPhase.IDLE).value}
                for bot in self._bots.values()
            ],
        }

    # ── Activities ───────────────────────────────────────────────────────

    def _record(
        self,
        bot_id: str,
        kind: ActivityKind,
        title: str,
        description: str,
        status: ActivityStatus = ActivityStatus.INFO,
        data: Optional[dict] = None,
    ) -> ActivityRecord:
        record = ActivityRecord(
            bot_id=bot_id,
            kind=kind,
            title=title,
            description=description,
            status=status,
            data=data or {},
            owner_id=self.owner_id,
        )
        self.recent_activities.append(record)
        self._sink.record_activity(record)
        return record

    # ── Tick ─────────────────────────────────────────────────────────────

    async def run_tick(self, now: Optional[datetime] = None) -> TickReport:
        """Run one full cycle for this owner.

        Args:
            now: Current UTC datetime.  Defaults to ``datetime.now(UTC)``.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        async with self._tick_lock:
            self._tick_count += 1
            report = TickReport(owner_id=self.owner_id, started_at=now.isoformat())
            today = now.date().isoformat()

            evicted = self._feed.cache.sweep()
            if evicted:
                logger.debug("Swept %d expired cache entries", evicted)

            self._roll_trading_day(today)

            tickers = await self._refresh_market_data(report)
            sentiment = await self._refresh_sentiment(report)

            if now.time() >= self._config.cutoff_time:
                # No new positions until the next trading day.
                report.end_of_day = True
                if self._closed_day != today:
                    await self._close_day(today, tickers, report)
                    self._closed_day = today
                else:
                    logger.info(
                        "Owner '%s': day %s already closed, trading resumes tomorrow",
                        self.owner_id, today,
                    )
            else:
                await self._process_bots(tickers, sentiment, report)

            report.finished_at = datetime.now(timezone.utc).isoformat()
            self._last_tick = report
            logger.info(
                "Owner '%s' tick %d done: %d bot outcome(s)%s",
                self.owner_id, self._tick_count, len(report.outcomes),
                " (end of day)" if report.end_of_day else "",
            )
            return report

    def _roll_trading_day(self, today: str) -> None:
        for bot in self._bots.values():
            if bot.trading_day != today:
                if bot.trading_day:
                    logger.info(
                        "Bot %s: new trading day %s, resetting daily counters",
                        bot.id, today,
                    )
                bot.trading_day = today
                bot.daily_trade_count = 0
                bot.daily_pnl = 0.0
                self._sink.save_bot(bot)

    def _running_bots(self) -> list[Bot]:
        return [b for b in self._bots.values() if b.is_running]

    # ── Data refresh ─────────────────────────────────────────────────────

    async def _refresh_market_data(self, report: TickReport) -> dict[str, MarketSnapshot]:
        """Fetch 24h tickers for the watchlist plus every bot symbol.

        On failure, per-symbol snapshots still in the cache are used.
        """
        symbols = sorted(
            set(self._config.watchlist) | {b.symbol for b in self._bots.values()}
        )
        if not symbols:
            return {}
        try:
            async with self._semaphore:
                tickers = await self._feed.fetch(
                    SourceKind.MARKET_DATA,
                    {"symbols": symbols},
                    lambda: self._market.fetch_tickers(symbols),
                )
        except ProviderError as exc:
            report.data_errors.append(f"market data: {exc}")
            self._record(
                SYSTEM_BOT_ID,
                ActivityKind.SYSTEM,
                "Market data refresh failed",
                f"Could not refresh tickers, using cached data where available: {exc}",
                status=ActivityStatus.ERROR,
            )
            cached = {}
            for symbol in symbols:
                snapshot = self._feed.cache.get(SourceKind.MARKET_DATA, {"symbol": symbol})
                if snapshot is not None:
                    cached[symbol] = snapshot
            return cached

        for symbol, snapshot in tickers.items():
            self._feed.cache.set(SourceKind.MARKET_DATA, {"symbol": symbol}, snapshot)
        return tickers

    async def _refresh_sentiment(self, report: TickReport) -> Optional[SentimentReport]:
        if self._sentiment is None:
            return None
        symbols = sorted({b.symbol for b in self._running_bots()})
        if not symbols:
            return None

        headlines = []
        if self._news is not None:
            try:
                async with self._semaphore:
                    headlines = await self._feed.fetch(
                        SourceKind.NEWS,
                        {"symbols": symbols},
                        lambda: self._news.fetch_headlines(symbols),
                    )
            except ProviderError as exc:
                logger.warning("News unavailable, sentiment without headlines: %s", exc)

        try:
            async with self._semaphore:
                return await self._feed.fetch(
                    SourceKind.SENTIMENT,
                    {"symbols": symbols},
                    lambda: self._sentiment.fetch_sentiment(symbols, headlines),
                )
        except ConfigurationError as exc:
            logger.info("Sentiment disabled: %s", exc)
            return None
        except ProviderError as exc:
            report.data_errors.append(f"sentiment: {exc}")
            self._record(
                SYSTEM_BOT_ID,
                ActivityKind.SYSTEM,
                "Sentiment refresh failed",
                f"Continuing with technical analysis only: {exc}",
                status=ActivityStatus.WARNING,
            )
            return None

    async def _price_history(self, symbol: str) -> list[PricePoint]:
        interval, limit = self._config.kline_interval, self._config.kline_limit
        async with self._semaphore:
            return await self._feed.fetch(
                SourceKind.PRICE_HISTORY,
                {"symbol": symbol, "interval": interval, "limit": limit},
                lambda: self._market.fetch_klines(symbol, interval, limit),
            )

    def _indicators_for(self, symbol: str, history: list[PricePoint]) -> Indicators:
        # Keyed by the newest bar so a new candle forces a recompute.
        params = {"symbol": symbol, "last": history[-1].timestamp, "points": len(history)}
        cached = self._feed.cache.get(SourceKind.TECHNICAL_INDICATORS, params)
        if cached is not None:
            return cached
        indicators = compute_indicators(history)
        self._feed.cache.set(SourceKind.TECHNICAL_INDICATORS, params, indicators)
        return indicators

    # ── Per-bot processing ───────────────────────────────────────────────

    async def _process_bots(
        self,
        tickers: dict[str, MarketSnapshot],
        sentiment: Optional[SentimentReport],
        report: TickReport,
    ) -> None:
        bots = self._running_bots()
        if not bots:
            logger.info("Owner '%s': no running bots", self.owner_id)
            return
        await self._run_isolated(
            {bot.id: self._run_bot(bot, tickers, sentiment) for bot in bots},
            report,
        )

    async def _run_isolated(self, coros: dict, report: TickReport) -> None:
        """Run per-bot coroutines concurrently under the tick timeout.

        Bots still pending at the deadline are cancelled, except bots
        already executing an order: those run to completion so the fill is
        applied to the bot and its trade record.  Finished bots keep their
        results.
        """
        tasks = {bot_id: asyncio.create_task(coro) for bot_id, coro in coros.items()}
        done, pending = await asyncio.wait(
            tasks.values(), timeout=self._config.tick_timeout_seconds,
        )

        in_flight = {
            task for bot_id, task in tasks.items()
            if task in pending and self._phases.get(bot_id) is BotPhase.EXECUTING
        }
        for task in pending - in_flight:
            task.cancel()
        if in_flight:
            logger.warning(
                "Tick timeout reached with %d order(s) in flight, waiting for them",
                len(in_flight),
            )
            await asyncio.wait(in_flight)
            done |= in_flight
        if pending - in_flight:
            await asyncio.gather(*(pending - in_flight), return_exceptions=True)

        for bot_id, task in tasks.items():
            if task in done:
                report.outcomes[bot_id] = task.result()
                continue
            report.timed_out.append(bot_id)
            report.outcomes[bot_id] = {"action": "timeout", "reason": "tick timeout"}
            self._phases[bot_id] = BotPhase.IDLE
            logger.error("Bot %s: abandoned after %.0fs tick timeout", bot_id, self._config.tick_timeout_seconds)
            self._record(
                bot_id,
                ActivityKind.ERROR,
                "Tick timed out",
                f"Processing exceeded {self._config.tick_timeout_seconds:.0f}s and was cancelled",
                status=ActivityStatus.ERROR,
            )

    async def _run_bot(
        self,
        bot: Bot,
        tickers: dict[str, MarketSnapshot],
        sentiment: Optional[SentimentReport],
    ) -> dict:
        """Process one bot; every exception ends here as an activity."""
        try:
            async with self._lock_for(bot.id):
                return await self._process_bot(bot, tickers, sentiment)
        except DataInsufficientError as exc:
            self._record(
                bot.id,
                ActivityKind.ANALYSIS,
                "Analysis skipped",
                str(exc),
                data={"symbol": bot.symbol},
            )
            return {"action": "skipped", "reason": str(exc)}
        except ProviderError as exc:
            logger.error("Bot %s: provider failure: %s", bot.id, exc)
            self._record(
                bot.id,
                ActivityKind.ERROR,
                "Data provider failed",
                str(exc),
                status=ActivityStatus.ERROR,
                data={"provider": exc.provider},
            )
            return {"action": "error", "reason": str(exc)}
        except Exception as exc:
            logger.exception("Bot %s: unexpected error", bot.id)
            self._record(
                bot.id,
                ActivityKind.ERROR,
                "Bot cycle failed",
                f"{type(exc).__name__}: {exc}",
                status=ActivityStatus.ERROR,
            )
            return {"action": "error", "reason": str(exc)}
        finally:
            self._phases[bot.id] = BotPhase.IDLE

    async def _process_bot(
        self,
        bot: Bot,
        tickers: dict[str, MarketSnapshot],
        sentiment: Optional[SentimentReport],
    ) -> dict:
        self._phases[bot.id] = BotPhase.FETCHING
        snapshot = tickers.get(bot.symbol)
        if snapshot is None:
            raise DataInsufficientError(f"No market snapshot for {bot.symbol}")
        history = await self._price_history(bot.symbol)
        if len(history) < MIN_HISTORY_POINTS:
            raise DataInsufficientError(
                f"Only {len(history)} price points for {bot.symbol} "
                f"(need {MIN_HISTORY_POINTS})"
            )

        self._phases[bot.id] = BotPhase.ANALYZING
        indicators = self._indicators_for(bot.symbol, history)
        reading = sentiment.for_symbol(bot.symbol) if sentiment else None
        async with self._semaphore:
            signal = await self._decision.decide(
                bot.symbol, snapshot, indicators, reading, bot.risk_settings,
            )
        signal_data = {
            "symbol": bot.symbol,
            "decision": signal.action.value,
            "confidence": signal.confidence,
            "suggested_quantity": signal.quantity,
            "source": signal.source.value,
            "question": signal.question,
            "price": snapshot.price,
            "rsi": indicators.rsi,
            "sentiment": reading.score if reading else None,
        }

        if signal.action is Action.HOLD:
            self._record(
                bot.id,
                ActivityKind.ANALYSIS,
                f"Analysis: HOLD {bot.symbol}",
                signal.reasoning,
                data=signal_data,
            )
            return {"action": "hold", "reason": signal.reasoning}

        self._record(
            bot.id,
            ActivityKind.TRADE_SIGNAL,
            f"Signal: {signal.action.value.upper()} {bot.symbol}",
            signal.reasoning,
            data=signal_data,
        )

        self._phases[bot.id] = BotPhase.RISK_CHECKING
        cap = self._config.daily_trade_cap
        if bot.daily_trade_count >= cap:
            return self._reject(
                bot, signal, f"Daily trade limit reached ({bot.daily_trade_count}/{cap})",
            )
        if signal.action is Action.SELL and not bot.has_position:
            return self._reject(bot, signal, "No open position to sell")

        assessment = self._risk.assess(
            bot,
            signal,
            snapshot,
            closes=[p.close for p in history],
            recent_trades=self._sink.recent_trades(bot.id, action="sell"),
        )
        if not assessment.approved:
            return self._reject(bot, signal, assessment.reason, assessment.to_dict())

        quantity = assessment.recommended_quantity
        if signal.action is Action.SELL:
            quantity = min(quantity, bot.position_units * snapshot.price)

        return await self._execute(
            bot, signal.action, quantity, snapshot.price, signal.confidence,
            assessment.to_dict(),
        )

    def _reject(
        self,
        bot: Bot,
        signal: TradeSignal,
        reason: str,
        assessment: Optional[dict] = None,
    ) -> dict:
        self._phases[bot.id] = BotPhase.REJECTED
        logger.info("Bot %s: %s %s rejected: %s", bot.id, signal.action.value, bot.symbol, reason)
        self._record(
            bot.id,
            ActivityKind.RISK_REJECTED,
            f"Trade rejected: {signal.action.value.upper()} {bot.symbol}",
            reason,
            status=ActivityStatus.WARNING,
            data={"confidence": signal.confidence, "assessment": assessment or {}},
        )
        return {"action": "rejected", "reason": reason}

    # ── Execution ────────────────────────────────────────────────────────

    async def _execute(
        self,
        bot: Bot,
        action: Action,
        quantity: float,
        price: float,
        confidence: Optional[float],
        assessment: Optional[dict] = None,
        notes: str = "",
    ) -> dict:
        """Submit one order and apply the fill to the bot (lock already held)."""
        self._phases[bot.id] = BotPhase.EXECUTING
        side = OrderSide(action.value)
        trade_id = self._sink.insert_pending_trade(
            bot, side.value, quantity, price, confidence, notes,
        )
        self._record(
            bot.id,
            ActivityKind.ORDER_PLACED,
            f"Order placed: {side.value.upper()} {bot.symbol}",
            f"{side.value.upper()} {quantity:.2f} of {bot.symbol} at ~{price:.6f}",
            data={"trade_id": trade_id, "quantity": quantity, "price": price,
                  "assessment": assessment or {}},
        )

        try:
            async with self._semaphore:
                order = await self._broker.submit_order(bot.symbol, side, quantity, price)
        except ProviderError as exc:
            logger.error("Bot %s: order failed: %s", bot.id, exc)
            self._sink.mark_trade_failed(trade_id, str(exc))
            self._record(
                bot.id,
                ActivityKind.ORDER_FAILED,
                f"Order failed: {side.value.upper()} {bot.symbol}",
                str(exc),
                status=ActivityStatus.ERROR,
                data={"trade_id": trade_id},
            )
            return {"action": "failed", "reason": str(exc)}

        pnl = self._apply_fill(bot, order)
        self._sink.mark_trade_executed(
            trade_id, order.price, order.quote_quantity, pnl, order.order_id,
        )
        self._sink.save_bot(bot)
        self._record(
            bot.id,
            ActivityKind.ORDER_FILLED,
            f"Order filled: {side.value.upper()} {bot.symbol}",
            f"Filled {order.quote_quantity:.2f} at {order.price:.6f}"
            + (f", P&L {pnl:+.2f}" if side is OrderSide.SELL else ""),
            status=ActivityStatus.SUCCESS,
            data={
                "trade_id": trade_id,
                "order_id": order.order_id,
                "price": order.price,
                "quantity": order.quote_quantity,
                "units": order.base_quantity,
                "pnl": pnl,
                "balance": bot.current_balance,
            },
        )
        logger.info(
            "Bot %s: %s %s %.2f @ %.6f filled (pnl %.2f)",
            bot.id, side.value, bot.symbol, order.quote_quantity, order.price, pnl,
        )
        return {
            "action": "executed",
            "side": side.value,
            "quantity": order.quote_quantity,
            "price": order.price,
            "pnl": pnl,
        }

    def _apply_fill(self, bot: Bot, order: OrderResponse) -> float:
        """Update cash, position and counters from a fill; return realised P&L."""
        pnl = 0.0
        if order.side is OrderSide.BUY:
            units = bot.position_units + order.base_quantity
            cost_basis = bot.position_units * bot.position_avg_price + order.quote_quantity
            bot.current_balance -= order.quote_quantity
            bot.position_units = units
            bot.position_avg_price = cost_basis / units if units > 0 else 0.0
        else:
            sold = min(order.base_quantity, bot.position_units)
            proceeds = order.quote_quantity * (sold / order.base_quantity) if order.base_quantity else 0.0
            pnl = proceeds - sold * bot.position_avg_price
            bot.current_balance += proceeds
            bot.position_units -= sold
            if bot.position_units <= 1e-12:
                bot.position_units = 0.0
                bot.position_avg_price = 0.0
            if pnl > 0:
                bot.winning_trades += 1

        bot.daily_trade_count += 1
        bot.total_trades += 1
        bot.win_rate = bot.winning_trades / bot.total_trades * 100.0
        bot.daily_pnl += pnl
        bot.total_pnl += pnl

        tracker = DrawdownTracker(bot.peak_equity, bot.max_drawdown)
        tracker.update(bot.equity(order.price))
        bot.peak_equity = tracker.peak_equity
        bot.max_drawdown = tracker.max_drawdown_pct
        return pnl

    # ── End of day ───────────────────────────────────────────────────────

    async def _close_day(
        self,
        today: str,
        tickers: dict[str, MarketSnapshot],
        report: TickReport,
    ) -> None:
        bots = self._running_bots()
        logger.info("Owner '%s': end-of-day close for %d bot(s)", self.owner_id, len(bots))
        await self._run_isolated(
            {bot.id: self._close_bot(bot, today, tickers.get(bot.symbol)) for bot in bots},
            report,
        )

    async def _close_bot(self, bot: Bot, today: str, snapshot: Optional[MarketSnapshot]) -> dict:
        try:
            async with self._lock_for(bot.id):
                self._phases[bot.id] = BotPhase.END_OF_DAY_CLOSING
                outcome: dict = {"action": "end_of_day", "closed": False}
                if bot.has_position:
                    if snapshot is None:
                        raise DataInsufficientError(
                            f"No market price to close {bot.symbol} position"
                        )
                    notional = bot.position_units * snapshot.price
                    result = await self._execute(
                        bot, Action.SELL, notional, snapshot.price, None,
                        notes="end-of-day close",
                    )
                    outcome = {"action": "end_of_day", "closed": result["action"] == "executed",
                               "result": result}

                stats = calculate_stats(self._sink.trades_for_day(bot.id, today))
                price = snapshot.price if snapshot else None
                equity = bot.equity(price)
                self._sink.store_performance(bot.id, today, stats, equity)

                summary = f"day P&L {bot.daily_pnl:+.2f}, {bot.daily_trade_count} trade(s)"
                if bot.has_position:
                    reason = outcome.get("result", {}).get("reason", "unknown error")
                    title = "End-of-day close failed"
                    description = (
                        f"Failed to close position in {bot.symbol}, "
                        f"position left open: {reason}; {summary}"
                    )
                    status = ActivityStatus.ERROR
                elif outcome["closed"]:
                    title = "End-of-day close"
                    description = f"Closed position in {bot.symbol}; {summary}"
                    status = ActivityStatus.SUCCESS
                else:
                    title = "End-of-day close"
                    description = f"No open position to close; {summary}"
                    status = ActivityStatus.SUCCESS
                self._record(
                    bot.id,
                    ActivityKind.END_OF_DAY,
                    title,
                    description,
                    status=status,
                    data={"day": today, "stats": stats, "equity": equity,
                          "position_open": bot.has_position},
                )
                return outcome
        except DataInsufficientError as exc:
            self._record(
                bot.id, ActivityKind.ERROR, "End-of-day close failed", str(exc),
                status=ActivityStatus.ERROR,
            )
            return {"action": "error", "reason": str(exc)}
        except Exception as exc:
            logger.exception("Bot %s: end-of-day close failed", bot.id)
            self._record(
                bot.id, ActivityKind.ERROR, "End-of-day close failed",
                f"{type(exc).__name__}: {exc}", status=ActivityStatus.ERROR,
            )
            return {"action": "error", "reason": str(exc)}
        finally:
            self._phases[bot.id] = BotPhase.IDLE
