"""Tests for autotrade.config — environment variable loading and validation."""

import json
from datetime import time

import pytest

from autotrade.config import Config, load_bots, load_config
from autotrade.models.bot import BotStatus

_ENV_VARS = [
    "TRADING_MODE",
    "EXCHANGE_ENVIRONMENT",
    "EXCHANGE_API_KEY",
    "EXCHANGE_API_SECRET",
    "GOOGLE_AI_API_KEY",
    "GOOGLE_AI_MODEL",
    "WATCHLIST",
    "TICK_INTERVAL_MINUTES",
    "END_OF_DAY_CUTOFF",
    "CONFIDENCE_THRESHOLD",
    "DAILY_TRADE_CAP",
    "MIN_TRADE_SIZE",
    "DEFAULT_TRADE_QUANTITY",
    "CACHE_CAPACITY",
    "MAX_CONCURRENT_CALLS",
    "TICK_TIMEOUT_SECONDS",
    "RETRY_ATTEMPTS",
    "RETRY_BASE_DELAY",
    "DB_PATH",
    "LOG_LEVEL",
    "HEALTH_PORT",
    "TRADE_SYMBOL",
    "INITIAL_BALANCE",
    "RISK_LEVEL",
    "MAX_TRADE_FRACTION",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure config env vars are cleared between tests."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def no_dotenv(tmp_path):
    # Non-existent path so load_dotenv doesn't pick up a developer .env
    return str(tmp_path / "missing.env")


class TestLoadConfig:
    def test_defaults(self, no_dotenv):
        cfg = load_config(no_dotenv)
        assert cfg.trading_mode == "paper"
        assert cfg.exchange_environment == "testnet"
        assert cfg.watchlist == ("BTCUSDT", "ETHUSDT", "BNBUSDT", "SOLUSDT", "DOGEUSDT")
        assert cfg.tick_interval_minutes == 5.0
        assert cfg.end_of_day_cutoff == "23:55"
        assert cfg.confidence_threshold == 60.0
        assert cfg.daily_trade_cap == 10
        assert cfg.min_trade_size == 10.0
        assert cfg.default_trade_quantity == 50.0
        assert cfg.cache_capacity == 1000
        assert cfg.db_path == "data/autotrade.db"
        assert cfg.log_level == "INFO"
        assert cfg.health_port == 8080

    def test_overrides(self, monkeypatch, no_dotenv):
        monkeypatch.setenv("WATCHLIST", " btcusdt, ethusdt ,")
        monkeypatch.setenv("TICK_INTERVAL_MINUTES", "1")
        monkeypatch.setenv("DAILY_TRADE_CAP", "3")
        monkeypatch.setenv("END_OF_DAY_CUTOFF", "22:30")
        cfg = load_config(no_dotenv)
        assert cfg.watchlist == ("BTCUSDT", "ETHUSDT")
        assert cfg.tick_interval_seconds == 60.0
        assert cfg.daily_trade_cap == 3
        assert cfg.cutoff_time == time(22, 30)

    def test_invalid_mode(self, monkeypatch, no_dotenv):
        monkeypatch.setenv("TRADING_MODE", "yolo")
        with pytest.raises(ValueError, match="TRADING_MODE"):
            load_config(no_dotenv)

    def test_live_mode_requires_keys(self, monkeypatch, no_dotenv):
        monkeypatch.setenv("TRADING_MODE", "live")
        monkeypatch.setenv("EXCHANGE_API_KEY", "key")
        with pytest.raises(ValueError, match="EXCHANGE_API_SECRET"):
            load_config(no_dotenv)

    def test_live_mode_with_keys(self, monkeypatch, no_dotenv):
        monkeypatch.setenv("TRADING_MODE", "live")
        monkeypatch.setenv("EXCHANGE_API_KEY", "key")
        monkeypatch.setenv("EXCHANGE_API_SECRET", "secret")
        cfg = load_config(no_dotenv)
        assert cfg.trading_mode == "live"

    def test_malformed_cutoff(self, monkeypatch, no_dotenv):
        monkeypatch.setenv("END_OF_DAY_CUTOFF", "late")
        with pytest.raises(ValueError):
            load_config(no_dotenv)

    def test_non_positive_interval(self, monkeypatch, no_dotenv):
        monkeypatch.setenv("TICK_INTERVAL_MINUTES", "0")
        with pytest.raises(ValueError, match="TICK_INTERVAL_MINUTES"):
            load_config(no_dotenv)


class TestBaseUrls:
    def test_testnet_url(self):
        assert Config(exchange_environment="testnet").exchange_base_url == (
            "https://testnet.binance.vision"
        )

    def test_live_url(self):
        assert Config(exchange_environment="live").exchange_base_url == (
            "https://api.binance.com"
        )

    def test_market_data_always_production(self):
        assert Config().market_data_base_url == "https://api.binance.com"


class TestLoadBots:
    def test_from_json(self, tmp_path):
        path = tmp_path / "bots.json"
        path.write_text(json.dumps({
            "bots": [
                {
                    "id": "b1",
                    "owner_id": "alice",
                    "symbol": "ethusdt",
                    "status": "running",
                    "initial_balance": 500,
                    "risk_settings": {"riskLevel": 2, "maxTradeAmount": 0.1},
                },
                {"id": "b2", "symbol": "BTCUSDT"},
            ]
        }))
        bots = load_bots(path)
        assert [b.id for b in bots] == ["b1", "b2"]
        assert bots[0].symbol == "ETHUSDT"
        assert bots[0].status is BotStatus.RUNNING
        assert bots[0].current_balance == 500.0
        assert bots[0].risk_settings.risk_level == 2
        assert bots[0].risk_settings.max_trade_fraction == 0.1
        assert bots[1].owner_id == "default"
        assert bots[1].status is BotStatus.STOPPED

    def test_fallback_to_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TRADE_SYMBOL", "solusdt")
        monkeypatch.setenv("INITIAL_BALANCE", "2500")
        bots = load_bots(tmp_path / "absent.json")
        assert len(bots) == 1
        assert bots[0].symbol == "SOLUSDT"
        assert bots[0].initial_balance == 2500.0
        assert bots[0].is_running

    def test_unknown_status_rejected(self, tmp_path):
        path = tmp_path / "bots.json"
        path.write_text(json.dumps({"bots": [{"id": "x", "symbol": "BTCUSDT", "status": "zombie"}]}))
        with pytest.raises(ValueError):
            load_bots(path)
