"""Tests for the internal API — status, scheduler control, audit trail."""

import pytest
from fastapi.testclient import TestClient

from autotrade.api.routers import configure_routers
from autotrade.config import Config
from autotrade.data.cache import ExpiringCache, SourceKind
from autotrade.engine import TickReport
from autotrade.engine_manager import EngineManager
from autotrade.main import app
from autotrade.models.activity import ActivityKind, ActivityRecord
from autotrade.models.bot import Bot, BotStatus
from autotrade.repos.sink import PersistenceSink

client = TestClient(app)


# ── Helpers ──────────────────────────────────────────────────────────────


class StatusEngine:
    """Duck-typed TradingEngine with status control."""

    def __init__(self, owner_id, bots):
        self.owner_id = owner_id
        self.bots = list(bots)
        self.ticks = 0

    def get_bot(self, bot_id):
        return next((b for b in self.bots if b.id == bot_id), None)

    async def run_tick(self, now=None):
        self.ticks += 1
        return TickReport(owner_id=self.owner_id, started_at="2024-01-02T12:00:00+00:00")

    def status(self):
        return {"owner_id": self.owner_id, "tick_count": self.ticks}

    def set_bot_status(self, bot_id, status):
        bot = self.get_bot(bot_id)
        bot.status = BotStatus(status)
        return bot


def _bot(bot_id, owner_id) -> Bot:
    return Bot(
        id=bot_id, owner_id=owner_id, symbol="BTCUSDT",
        initial_balance=100.0, current_balance=100.0, status=BotStatus.RUNNING,
    )


@pytest.fixture
def sink(tmp_path):
    return PersistenceSink(str(tmp_path / "api.db"))


@pytest.fixture
def manager():
    manager = EngineManager(Config(), lambda owner, bots: StatusEngine(owner, bots))
    manager.build_handles([_bot("a1", "alice"), _bot("b1", "bob")])
    return manager


@pytest.fixture(autouse=True)
def _reset_routers():
    yield
    configure_routers()


# ── Tests ────────────────────────────────────────────────────────────────


class TestHealth:
    def test_health_without_cache(self):
        configure_routers()
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "cache": None}

    def test_health_with_cache(self):
        configure_routers(cache=ExpiringCache())
        assert client.get("/health").json()["cache"] == "green"


class TestStatus:
    def test_no_manager(self):
        configure_routers(mode="live")
        assert client.get("/status").json() == {"mode": "live", "owners": {}}

    def test_owners_listed(self, manager):
        configure_routers(engine_manager=manager)
        data = client.get("/status").json()
        assert data["mode"] == "paper"
        assert set(data["owners"]) == {"alice", "bob"}


class TestScheduler:
    def test_unknown_owner(self, manager):
        configure_routers(engine_manager=manager)
        assert "error" in client.post("/scheduler/nobody/start").json()
        assert "error" in client.post("/scheduler/nobody/run-cycle").json()

    def test_run_cycle(self, manager):
        configure_routers(engine_manager=manager)
        data = client.post("/scheduler/alice/run-cycle").json()
        assert data["status"] == "ok"
        assert data["report"]["owner_id"] == "alice"
        assert manager.get_handle("alice").engine.ticks == 1

    def test_start_and_stop(self, manager):
        configure_routers(engine_manager=manager)
        with TestClient(app) as session:
            assert session.post("/scheduler/alice/start").json()["status"] == "started"
            assert session.post("/scheduler/alice/start").json()["status"] == "already_running"
            assert session.post("/scheduler/alice/stop").json()["status"] == "stopped"
            assert session.post("/scheduler/alice/stop").json()["status"] == "not_running"


class TestBots:
    def test_list_and_filter(self, manager):
        configure_routers(engine_manager=manager)
        assert len(client.get("/bots").json()["bots"]) == 2
        bots = client.get("/bots", params={"owner_id": "bob"}).json()["bots"]
        assert [b["id"] for b in bots] == ["b1"]

    def test_set_status(self, manager):
        configure_routers(engine_manager=manager)
        resp = client.post("/bots/a1/status", json={"status": "paused"})
        assert resp.json()["bot"]["status"] == "paused"
        assert manager.find_bot("a1")[1].status is BotStatus.PAUSED

    def test_set_invalid_status(self, manager):
        configure_routers(engine_manager=manager)
        data = client.post("/bots/a1/status", json={"status": "dancing"}).json()
        assert data["status"] == "error"
        assert "running" in data["errors"][0]

    def test_unknown_bot(self, manager):
        configure_routers(engine_manager=manager)
        assert "error" in client.post("/bots/zz/status", json={"status": "paused"}).json()


class TestAuditTrail:
    def test_empty_without_sink(self):
        configure_routers()
        assert client.get("/activities").json() == {"activities": [], "total": 0}
        assert client.get("/trades").json() == {"trades": [], "total": 0}
        assert client.get("/performance").json() == {"metrics": []}

    def test_activities(self, sink):
        sink.record_activity(ActivityRecord(
            "a1", ActivityKind.ANALYSIS, "Analysis: HOLD BTCUSDT", "flat", owner_id="alice",
        ))
        configure_routers(sink=sink)
        data = client.get("/activities", params={"owner_id": "alice"}).json()
        assert data["total"] == 1
        assert data["activities"][0]["kind"] == "analysis"

    def test_trades(self, sink):
        tid = sink.insert_pending_trade(_bot("a1", "alice"), "buy", 20.0, 100.0, 75.0)
        sink.mark_trade_executed(tid, 100.0, 20.0, 0.0, "paper-1")
        configure_routers(sink=sink)
        data = client.get("/trades", params={"status": "executed"}).json()
        assert data["total"] == 1
        assert data["trades"][0]["bot_id"] == "a1"

    def test_limit_validation(self, sink):
        configure_routers(sink=sink)
        assert client.get("/trades", params={"limit": 0}).status_code == 422


class TestCacheStats:
    def test_stats(self):
        cache = ExpiringCache()
        cache.set(SourceKind.MARKET_DATA, {"symbol": "BTCUSDT"}, {"price": 1})
        cache.get(SourceKind.MARKET_DATA, {"symbol": "BTCUSDT"})
        configure_routers(cache=cache)
        data = client.get("/cache/stats").json()
        assert data["health"] == "green"
        assert data["monitor"]["hits"] == 1
