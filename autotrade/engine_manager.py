"""EngineManager — one scheduler per owner, running ticks on an interval.

Each owner's bots get their own ``TradingEngine`` wrapped in a
``SchedulerHandle``.  Handles are started, stopped and ticked manually
independently of one another, so several owners' schedulers coexist in
one process.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from autotrade.config import Config
from autotrade.engine import TickReport, TradingEngine
from autotrade.models.bot import Bot

logger = logging.getLogger("autotrade.engine_manager")


class SchedulerHandle:
    """Owns one engine and the asyncio task that ticks it.

    Args:
        engine: The owner's ``TradingEngine``.
        interval_seconds: Pause between the end of one tick and the next.
    """

    def __init__(self, engine: TradingEngine, interval_seconds: float) -> None:
        self.engine = engine
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._started_at: Optional[str] = None
        self._last_error: Optional[str] = None

    @property
    def owner_id(self) -> str:
        return self.engine.owner_id

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Start the interval loop.  Returns ``False`` if already running."""
        if self.running:
            return False
        self._stop_event.clear()
        self._started_at = datetime.now(timezone.utc).isoformat()
        self._task = asyncio.create_task(self._loop(), name=f"scheduler-{self.owner_id}")
        logger.info("Scheduler for owner '%s' started (every %.0fs)", self.owner_id, self._interval)
        return True

    async def stop(self) -> bool:
        """Stop the loop and wait for it to exit.  Returns ``False`` if idle.

        A tick in progress is cancelled.
        """
        if not self.running:
            return False
        self._stop_event.set()
        task = self._task
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Scheduler for owner '%s' stopped", self.owner_id)
        return True

    async def run_cycle(self, now: Optional[datetime] = None) -> TickReport:
        """Run one tick immediately, independent of the loop."""
        return await self.engine.run_tick(now)

    def status(self) -> dict:
        return {
            "owner_id": self.owner_id,
            "running": self.running,
            "interval_seconds": self._interval,
            "started_at": self._started_at,
            "last_error": self._last_error,
            "engine": self.engine.status(),
        }

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.engine.run_tick()
                self._last_error = None
            except Exception as exc:
                # Per-bot errors never reach here; this is a defect in the tick itself.
                logger.exception("Owner '%s': tick failed", self.owner_id)
                self._last_error = f"{type(exc).__name__}: {exc}"
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass


class EngineManager:
    """Lifecycle manager for one-or-many owners' schedulers.

    Args:
        config: Global ``Config`` loaded from ``.env``.
        engine_factory: Builds a ``TradingEngine`` for ``(owner_id, bots)``.
    """

    def __init__(
        self,
        config: Config,
        engine_factory: Callable[[str, list[Bot]], TradingEngine],
    ) -> None:
        self._config = config
        self._engine_factory = engine_factory
        self._handles: dict[str, SchedulerHandle] = {}

    # ── Public API ───────────────────────────────────────────────────────

    @property
    def handles(self) -> dict[str, SchedulerHandle]:
        """Map of owner id → ``SchedulerHandle``."""
        return dict(self._handles)

    @property
    def owner_ids(self) -> list[str]:
        return list(self._handles.keys())

    def build_handles(self, bots: list[Bot]) -> None:
        """Group *bots* by owner and create one handle per owner."""
        by_owner: dict[str, list[Bot]] = {}
        for bot in bots:
            by_owner.setdefault(bot.owner_id, []).append(bot)
        for owner_id, owner_bots in by_owner.items():
            engine = self._engine_factory(owner_id, owner_bots)
            self._handles[owner_id] = SchedulerHandle(
                engine, self._config.tick_interval_seconds,
            )
            logger.info(
                "Registered owner '%s' with %d bot(s): %s",
                owner_id, len(owner_bots), ", ".join(b.id for b in owner_bots),
            )

    def get_handle(self, owner_id: str) -> Optional[SchedulerHandle]:
        return self._handles.get(owner_id)

    def find_bot(self, bot_id: str) -> Optional[tuple[SchedulerHandle, Bot]]:
        for handle in self._handles.values():
            bot = handle.engine.get_bot(bot_id)
            if bot is not None:
                return handle, bot
        return None

    def all_bots(self) -> list[Bot]:
        return [bot for h in self._handles.values() for bot in h.engine.bots]

    def start_all(self) -> None:
        for handle in self._handles.values():
            handle.start()

    async def stop_all(self) -> None:
        """Stop every running scheduler."""
        for handle in self._handles.values():
            await handle.stop()

    def get_status(self, owner_id: Optional[str] = None) -> dict:
        """Return aggregated or per-owner status.

        Args:
            owner_id: If given, return status for that owner only.
        """
        if owner_id is not None:
            handle = self._handles.get(owner_id)
            if handle is None:
                return {"error": f"Unknown owner: {owner_id}"}
            return handle.status()
        return {"owners": {o: h.status() for o, h in self._handles.items()}}
