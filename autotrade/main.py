"""AutoTrade — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
paper and live modes.
"""

import logging

from fastapi import FastAPI

from autotrade.api.routers import get_cache, router

app = FastAPI(title="AutoTrade Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("autotrade")


@app.get("/health")
async def health():
    """Liveness plus the cache traffic light (green / yellow / red)."""
    cache = get_cache()
    return {
        "status": "ok",
        "cache": cache.monitor.health().value if cache is not None else None,
    }


def warn_if_live(mode: str) -> bool:
    """Log a prominent warning when running in live mode.

    Returns ``True`` if *mode* is ``"live"``.
    """
    if mode == "live":
        logger.warning(
            "LIVE TRADING MODE — Real money at risk! Starting in 5 seconds..."
        )
        return True
    return False


def build_engine_manager(config, bots, sink, cache):
    """Wire clients, decision step and risk engine into an ``EngineManager``."""
    from autotrade.analysis.gemini_client import GeminiClient
    from autotrade.analysis.sentiment import SentimentClient
    from autotrade.broker.binance_client import BinanceBroker
    from autotrade.broker.paper_broker import PaperBroker
    from autotrade.data.cache import CachedFeed
    from autotrade.data.market_client import BinanceMarketClient
    from autotrade.data.news_client import NewsClient
    from autotrade.engine import TradingEngine
    from autotrade.engine_manager import EngineManager
    from autotrade.retry import ExponentialBackoff
    from autotrade.risk.risk_engine import RiskEngine
    from autotrade.strategy.decision import DecisionStep, GeminiReasoningClient

    backoff = ExponentialBackoff(base=config.retry_base_delay)
    feed = CachedFeed(cache, max_attempts=config.retry_attempts, backoff=backoff)
    market = BinanceMarketClient(config)
    broker = BinanceBroker(config) if config.trading_mode == "live" else PaperBroker()

    llm = GeminiClient(config)
    if llm.configured:
        decision = DecisionStep(
            GeminiReasoningClient(llm),
            default_quantity=config.default_trade_quantity,
            max_attempts=config.retry_attempts,
            backoff=backoff,
        )
        sentiment = SentimentClient(llm)
        news = NewsClient()
    else:
        logger.warning("GOOGLE_AI_API_KEY not set — technical fallback only, no sentiment")
        decision = DecisionStep(default_quantity=config.default_trade_quantity)
        sentiment = None
        news = None

    risk = RiskEngine(
        confidence_threshold=config.confidence_threshold,
        min_trade_size=config.min_trade_size,
    )

    def _factory(owner_id, owner_bots):
        return TradingEngine(
            config=config,
            owner_id=owner_id,
            bots=owner_bots,
            market=market,
            broker=broker,
            feed=feed,
            sink=sink,
            decision=decision,
            risk=risk,
            sentiment=sentiment,
            news=news,
        )

    manager = EngineManager(config, _factory)
    manager.build_handles(bots)
    return manager


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio
    import dataclasses
    import pathlib
    import time

    from autotrade.config import load_bots, load_config
    from autotrade.data.cache import ExpiringCache
    from autotrade.repos.sink import PersistenceSink

    parser = argparse.ArgumentParser(description="AutoTrade trading bot")
    parser.add_argument(
        "--mode",
        choices=["paper", "live"],
        default=None,
        help="Trading mode (default: TRADING_MODE from .env, else paper)",
    )
    parser.add_argument("--bots", help="Path to bots.json (default: ./bots.json)")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single tick for every owner and exit",
    )
    parser.add_argument(
        "--engine-only",
        action="store_true",
        help="Run the schedulers without the API server",
    )
    parser.add_argument("--port", type=int, default=None, help="API port")
    args = parser.parse_args()

    config = load_config()
    if args.mode and args.mode != config.trading_mode:
        config = dataclasses.replace(config, trading_mode=args.mode)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if config.trading_mode == "live" and not (
        config.exchange_api_key and config.exchange_api_secret
    ):
        parser.error("live mode requires EXCHANGE_API_KEY and EXCHANGE_API_SECRET")
    if warn_if_live(config.trading_mode):
        time.sleep(5)

    sink = PersistenceSink(config.db_path)
    cache = ExpiringCache(capacity=config.cache_capacity)
    bots = load_bots(pathlib.Path(args.bots) if args.bots else None)

    from autotrade.api.routers import configure_routers

    async def _main() -> None:
        manager = build_engine_manager(config, bots, sink, cache)
        configure_routers(
            engine_manager=manager, sink=sink, cache=cache, mode=config.trading_mode,
        )
        if args.once:
            await _run_once(manager)
        elif args.engine_only:
            await _run_engines_only(manager)
        else:
            await _run_engine_manager(manager, args.port or config.health_port)

    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        logger.info("Shutdown signal received — stopped.")


async def _run_once(manager) -> None:
    for owner_id, handle in manager.handles.items():
        report = await handle.run_cycle()
        logger.info("Owner '%s': %s", owner_id, report.to_dict())


async def _run_engine_manager(manager, port: int = 8080) -> None:
    """Start the API server and every owner's scheduler concurrently."""
    import uvicorn

    logger.info("Starting AutoTrade with %d owner(s).", len(manager.owner_ids))

    uvi_config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info",
    )
    server = uvicorn.Server(uvi_config)

    manager.start_all()
    logger.info("API available at http://localhost:%d", port)
    try:
        await server.serve()
    finally:
        await manager.stop_all()
    logger.info("AutoTrade stopped.")


async def _run_engines_only(manager) -> None:
    """Run the schedulers without starting the API server."""
    import asyncio

    logger.info(
        "Starting AutoTrade schedulers (no API) with %d owner(s).",
        len(manager.owner_ids),
    )
    manager.start_all()
    try:
        await asyncio.Event().wait()
    finally:
        await manager.stop_all()


if __name__ == "__main__":
    _run_cli()
