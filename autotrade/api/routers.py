"""Internal API routers — /status, /scheduler, /bots, /activities, /trades, /cache, /performance.

No business logic, no direct DB access. Delegates to repos, the engine
manager and the shared cache.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query

from autotrade.models.bot import BotStatus

logger = logging.getLogger("autotrade.api")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_engine_manager = None   # Set via configure_routers()
_sink = None             # Set via configure_routers()
_cache = None            # Set via configure_routers()
_mode: str = "paper"


def configure_routers(
    engine_manager=None,
    sink=None,
    cache=None,
    mode: str = "paper",
) -> None:
    """Inject dependencies from the application startup.

    Args:
        engine_manager: An ``EngineManager`` instance for status and control.
        sink: A ``PersistenceSink`` (or duck-type for tests).
        cache: The shared ``ExpiringCache``.
        mode: ``"paper"`` or ``"live"``, reported by ``/status``.
    """
    global _engine_manager, _sink, _cache, _mode  # noqa: PLW0603
    _engine_manager = engine_manager
    _sink = sink
    _cache = cache
    _mode = mode


def get_cache():
    return _cache


# ── Status ───────────────────────────────────────────────────────────────


@router.get("/status")
async def get_status():
    """Return scheduler and bot status for every owner."""
    if _engine_manager is None:
        return {"mode": _mode, "owners": {}}
    return {"mode": _mode, **_engine_manager.get_status()}


# ── Scheduler control ────────────────────────────────────────────────────


@router.post("/scheduler/{owner_id}/start")
async def start_scheduler(owner_id: str):
    handle = _engine_manager.get_handle(owner_id) if _engine_manager else None
    if handle is None:
        return {"error": f"Unknown owner: {owner_id}"}
    if handle.start():
        return {"status": "started", "owner_id": owner_id}
    return {"status": "already_running", "owner_id": owner_id}


@router.post("/scheduler/{owner_id}/stop")
async def stop_scheduler(owner_id: str):
    handle = _engine_manager.get_handle(owner_id) if _engine_manager else None
    if handle is None:
        return {"error": f"Unknown owner: {owner_id}"}
    if await handle.stop():
        return {"status": "stopped", "owner_id": owner_id}
    return {"status": "not_running", "owner_id": owner_id}


@router.post("/scheduler/{owner_id}/run-cycle")
async def run_cycle(owner_id: str):
    """Run one tick now and return its report."""
    handle = _engine_manager.get_handle(owner_id) if _engine_manager else None
    if handle is None:
        return {"error": f"Unknown owner: {owner_id}"}
    report = await handle.run_cycle()
    return {"status": "ok", "report": report.to_dict()}


# ── Bots ─────────────────────────────────────────────────────────────────


@router.get("/bots")
async def get_bots(owner_id: Optional[str] = Query(default=None)):
    if _engine_manager is None:
        return {"bots": []}
    bots = [
        b.to_dict() for b in _engine_manager.all_bots()
        if owner_id is None or b.owner_id == owner_id
    ]
    return {"bots": bots}


@router.post("/bots/{bot_id}/status")
async def set_bot_status(bot_id: str, body: dict):
    """Start, pause or stop one bot: ``{"status": "running"|"paused"|"stopped"}``."""
    found = _engine_manager.find_bot(bot_id) if _engine_manager else None
    if found is None:
        return {"error": f"Unknown bot: {bot_id}"}
    try:
        status = BotStatus(body.get("status"))
    except ValueError:
        valid = ", ".join(s.value for s in BotStatus)
        return {"status": "error", "errors": [f"status must be one of: {valid}"]}
    handle, _ = found
    bot = handle.engine.set_bot_status(bot_id, status)
    logger.info("Bot %s set to %s via API", bot_id, status.value)
    return {"status": "ok", "bot": bot.to_dict()}


# ── Audit trail ──────────────────────────────────────────────────────────


@router.get("/activities")
async def get_activities(
    limit: int = Query(default=50, ge=1, le=500),
    bot_id: Optional[str] = Query(default=None),
    owner_id: Optional[str] = Query(default=None),
    kind: Optional[str] = Query(default=None),
):
    """Return the newest activity records."""
    if _sink is None:
        return {"activities": [], "total": 0}
    return _sink.activities.get_activities(
        limit=limit, bot_id=bot_id, owner_id=owner_id, kind=kind,
    )


@router.get("/trades")
async def get_trades(
    limit: int = Query(default=20, ge=1, le=100),
    status: Optional[str] = Query(default=None),
    bot_id: Optional[str] = Query(default=None),
):
    """Return recent trade records."""
    if _sink is None:
        return {"trades": [], "total": 0}
    return _sink.trades.get_trades(limit=limit, status_filter=status, bot_id=bot_id)


@router.get("/performance")
async def get_performance(
    bot_id: Optional[str] = Query(default=None),
    limit: int = Query(default=30, ge=1, le=365),
):
    """Return daily performance snapshots, newest first."""
    if _sink is None:
        return {"metrics": []}
    return {"metrics": _sink.performance.get_metrics(bot_id=bot_id, limit=limit)}


# ── Cache ────────────────────────────────────────────────────────────────


@router.get("/cache/stats")
async def get_cache_stats():
    if _cache is None:
        return {"cache": None, "monitor": None, "health": None}
    return {
        "cache": _cache.stats(),
        "monitor": _cache.monitor.stats(),
        "health": _cache.monitor.health().value,
    }
