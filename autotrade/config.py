"""AutoTrade — application configuration.

Loads .env variables into a typed config object and the bot roster from
``bots.json``.  Validates required variables on startup.
"""

import json
import logging
import os
import pathlib
from dataclasses import dataclass
from datetime import time

from dotenv import load_dotenv

from autotrade.models.bot import Bot, BotStatus, RiskSettings

logger = logging.getLogger("autotrade")

_BOTS_JSON = pathlib.Path(__file__).resolve().parent.parent / "bots.json"

# Only needed when orders go to a real exchange.
_REQUIRED_LIVE_VARS = [
    "EXCHANGE_API_KEY",
    "EXCHANGE_API_SECRET",
]

_DEFAULT_WATCHLIST = "BTCUSDT,ETHUSDT,BNBUSDT,SOLUSDT,DOGEUSDT"


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    trading_mode: str = "paper"  # "paper" or "live"
    exchange_environment: str = "testnet"  # "testnet" or "live"
    exchange_api_key: str = ""
    exchange_api_secret: str = ""
    google_ai_api_key: str = ""
    google_ai_model: str = "gemini-1.5-flash"
    watchlist: tuple[str, ...] = tuple(_DEFAULT_WATCHLIST.split(","))
    tick_interval_minutes: float = 5.0
    end_of_day_cutoff: str = "23:55"  # HH:MM UTC
    confidence_threshold: float = 60.0
    daily_trade_cap: int = 10
    min_trade_size: float = 10.0
    default_trade_quantity: float = 50.0
    kline_interval: str = "1h"
    kline_limit: int = 100
    cache_capacity: int = 1000
    max_concurrent_calls: int = 4
    tick_timeout_seconds: float = 120.0
    retry_attempts: int = 3
    retry_base_delay: float = 1.0
    db_path: str = "data/autotrade.db"
    log_level: str = "INFO"
    health_port: int = 8080

    @property
    def exchange_base_url(self) -> str:
        """Return the exchange REST base URL for the configured environment."""
        if self.exchange_environment == "live":
            return "https://api.binance.com"
        return "https://testnet.binance.vision"

    @property
    def market_data_base_url(self) -> str:
        """Public market data always comes from the production endpoint."""
        return "https://api.binance.com"

    @property
    def cutoff_time(self) -> time:
        """Parse ``end_of_day_cutoff`` (``HH:MM``) into a ``time``."""
        hour, _, minute = self.end_of_day_cutoff.partition(":")
        return time(int(hour), int(minute or 0))

    @property
    def tick_interval_seconds(self) -> float:
        return self.tick_interval_minutes * 60.0


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    variable required for live trading is absent, or when a value is out
    of range.
    """
    load_dotenv(dotenv_path=env_path)

    mode = os.environ.get("TRADING_MODE", "paper")
    if mode not in ("paper", "live"):
        raise ValueError(f"TRADING_MODE must be 'paper' or 'live', got '{mode}'")
    if mode == "live":
        missing = [v for v in _REQUIRED_LIVE_VARS if not os.environ.get(v)]
        if missing:
            raise ValueError(
                f"Missing required environment variable(s): {', '.join(missing)}"
            )

    watchlist = tuple(
        s.strip().upper()
        for s in os.environ.get("WATCHLIST", _DEFAULT_WATCHLIST).split(",")
        if s.strip()
    )

    config = Config(
        trading_mode=mode,
        exchange_environment=os.environ.get("EXCHANGE_ENVIRONMENT", "testnet"),
        exchange_api_key=os.environ.get("EXCHANGE_API_KEY", ""),
        exchange_api_secret=os.environ.get("EXCHANGE_API_SECRET", ""),
        google_ai_api_key=os.environ.get("GOOGLE_AI_API_KEY", ""),
        google_ai_model=os.environ.get("GOOGLE_AI_MODEL", "gemini-1.5-flash"),
        watchlist=watchlist,
        tick_interval_minutes=float(os.environ.get("TICK_INTERVAL_MINUTES", "5")),
        end_of_day_cutoff=os.environ.get("END_OF_DAY_CUTOFF", "23:55"),
        confidence_threshold=float(os.environ.get("CONFIDENCE_THRESHOLD", "60")),
        daily_trade_cap=int(os.environ.get("DAILY_TRADE_CAP", "10")),
        min_trade_size=float(os.environ.get("MIN_TRADE_SIZE", "10")),
        default_trade_quantity=float(os.environ.get("DEFAULT_TRADE_QUANTITY", "50")),
        kline_interval=os.environ.get("KLINE_INTERVAL", "1h"),
        kline_limit=int(os.environ.get("KLINE_LIMIT", "100")),
        cache_capacity=int(os.environ.get("CACHE_CAPACITY", "1000")),
        max_concurrent_calls=int(os.environ.get("MAX_CONCURRENT_CALLS", "4")),
        tick_timeout_seconds=float(os.environ.get("TICK_TIMEOUT_SECONDS", "120")),
        retry_attempts=int(os.environ.get("RETRY_ATTEMPTS", "3")),
        retry_base_delay=float(os.environ.get("RETRY_BASE_DELAY", "1.0")),
        db_path=os.environ.get("DB_PATH", "data/autotrade.db"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        health_port=int(os.environ.get("HEALTH_PORT", "8080")),
    )
    # Raises ValueError on a malformed HH:MM.
    config.cutoff_time
    if config.tick_interval_minutes <= 0:
        raise ValueError("TICK_INTERVAL_MINUTES must be positive")
    return config


def _bot_from_dict(raw: dict) -> Bot:
    initial = float(raw.get("initial_balance", 1000.0))
    return Bot(
        id=str(raw["id"]),
        owner_id=str(raw.get("owner_id", "default")),
        name=raw.get("name", raw["id"]),
        symbol=raw["symbol"].upper(),
        status=BotStatus(raw.get("status", "stopped")),
        initial_balance=initial,
        current_balance=float(raw.get("current_balance", initial)),
        risk_settings=RiskSettings.from_dict(raw.get("risk_settings")),
    )


def load_bots(path: pathlib.Path | None = None) -> list[Bot]:
    """Load the bot roster from ``bots.json``.

    Falls back to a single bot built from ``TRADE_SYMBOL`` /
    ``INITIAL_BALANCE`` / ``RISK_LEVEL`` env vars when the file is absent
    or has no ``bots`` list.
    """
    bots_path = path or _BOTS_JSON
    if bots_path.exists():
        data = json.loads(bots_path.read_text(encoding="utf-8"))
        raw_bots = data.get("bots", [])
        if raw_bots:
            bots = [_bot_from_dict(b) for b in raw_bots]
            logger.info("Loaded %d bot(s) from %s", len(bots), bots_path)
            return bots

    symbol = os.environ.get("TRADE_SYMBOL", "BTCUSDT")
    initial = float(os.environ.get("INITIAL_BALANCE", "1000"))
    return [
        Bot(
            id="default",
            owner_id="default",
            name="default",
            symbol=symbol.upper(),
            status=BotStatus.RUNNING,
            initial_balance=initial,
            current_balance=initial,
            risk_settings=RiskSettings(
                risk_level=int(os.environ.get("RISK_LEVEL", "3")),
                max_trade_fraction=float(os.environ.get("MAX_TRADE_FRACTION", "0.05")),
            ),
        )
    ]
