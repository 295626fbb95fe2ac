"""Tests for autotrade.strategy.decision — self-question, fallback, LLM parsing."""

import pytest

from autotrade.data.models import MarketSnapshot, SentimentReading
from autotrade.errors import ProviderError, TransientProviderError
from autotrade.models.bot import RiskSettings
from autotrade.retry import ExponentialBackoff
from autotrade.strategy.decision import (
    DecisionStep,
    build_self_question,
    fallback_decision,
    parse_reasoning,
)
from autotrade.strategy.models import Action, Indicators, SignalSource


def _snapshot(change_pct=0.0, price=100.0) -> MarketSnapshot:
    return MarketSnapshot(
        symbol="BTCUSDT",
        price=price,
        change_24h=price * change_pct / 100,
        change_percent_24h=change_pct,
        volume_24h=1e6,
        high_24h=price,
        low_24h=price,
        timestamp="2025-01-01T00:00:00+00:00",
    )


class StubSource:
    """Duck-typed ReasoningSource returning a canned answer (or raising)."""

    def __init__(self, answer=None, error=None) -> None:
        self.answer = answer
        self.error = error
        self.questions: list[str] = []

    async def analyze(self, question, snapshot, indicators, sentiment, risk_settings):
        self.questions.append(question)
        if self.error is not None:
            raise self.error
        return self.answer


class FlakySource:
    """Raises a transient error *failures* times, then answers."""

    def __init__(self, failures, answer) -> None:
        self.failures = failures
        self.answer = answer
        self.calls = 0

    async def analyze(self, question, snapshot, indicators, sentiment, risk_settings):
        self.calls += 1
        if self.calls <= self.failures:
            raise TransientProviderError("gemini", "503")
        return self.answer


NO_WAIT = ExponentialBackoff(base=0)


# ── Self-question ────────────────────────────────────────────────────────


class TestSelfQuestion:
    def test_no_triggers(self):
        q = build_self_question("BTCUSDT", _snapshot(0.5), Indicators(rsi=50))
        assert q.startswith("Should we hold BTCUSDT based on current market conditions?")
        assert "RSI: 50.0" in q

    def test_triggers_joined(self):
        q = build_self_question(
            "BTCUSDT",
            _snapshot(-6.0),
            Indicators(rsi=25, sma20=90, sma50=100, volume_change_pct=35),
        )
        assert "Should we buy BTCUSDT" in q
        assert "strong downtrend" in q
        assert "oversold RSI" in q
        assert "bearish SMA crossover" in q
        assert "high volume spike" in q

    def test_sell_on_rally(self):
        q = build_self_question("ETHUSDT", _snapshot(3.0), Indicators(rsi=75))
        assert q.startswith("Should we sell ETHUSDT based on overbought RSI?")

    def test_sentiment_trigger(self):
        reading = SentimentReading(symbol="BTCUSDT", score=80)
        q = build_self_question("BTCUSDT", _snapshot(0), Indicators(), reading)
        assert "very bullish sentiment" in q
        assert "RSI: n/a" in q


# ── Fallback ─────────────────────────────────────────────────────────────


class TestFallback:
    def test_oversold_buy(self):
        sig = fallback_decision("BTCUSDT", _snapshot(-4.0), Indicators(rsi=25))
        assert sig.action is Action.BUY
        assert sig.confidence == 65
        assert sig.quantity == 50

    def test_overbought_sell(self):
        sig = fallback_decision("BTCUSDT", _snapshot(4.0), Indicators(rsi=75))
        assert sig.action is Action.SELL
        assert sig.confidence == 65

    def test_sma_momentum_buy(self):
        sig = fallback_decision("BTCUSDT", _snapshot(1.5), Indicators(rsi=55, sma20=105, sma50=100))
        assert sig.action is Action.BUY
        assert sig.confidence == 55

    def test_mixed_hold(self):
        sig = fallback_decision("BTCUSDT", _snapshot(0.2), Indicators(rsi=50, sma20=95, sma50=100))
        assert sig.action is Action.HOLD
        assert sig.confidence == 50
        assert sig.source is SignalSource.FALLBACK

    def test_unavailable_indicators_hold(self):
        sig = fallback_decision("BTCUSDT", _snapshot(-10.0), Indicators())
        assert sig.action is Action.HOLD


# ── Parsing ──────────────────────────────────────────────────────────────


class TestParseReasoning:
    def test_valid(self):
        sig = parse_reasoning(
            {"decision": "BUY", "confidence": 72, "reasoning": "trend", "suggestedQuantity": 80},
            "BTCUSDT", "q?",
        )
        assert sig.action is Action.BUY
        assert sig.quantity == 80
        assert sig.source is SignalSource.LLM

    def test_default_quantity(self):
        sig = parse_reasoning({"decision": "sell", "confidence": 70, "reasoning": "x"}, "BTCUSDT", "q")
        assert sig.quantity == 50

    @pytest.mark.parametrize(
        "data",
        [
            {"confidence": 70, "reasoning": "x"},
            {"decision": "moon", "confidence": 70, "reasoning": "x"},
            {"decision": "buy", "confidence": "high", "reasoning": "x"},
            {"decision": "buy", "confidence": 170, "reasoning": "x"},
            {"decision": "buy", "confidence": 70, "reasoning": "  "},
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(ValueError):
            parse_reasoning(data, "BTCUSDT", "q")


# ── Decision step ────────────────────────────────────────────────────────


class TestDecisionStep:
    @pytest.mark.asyncio
    async def test_uses_source(self):
        source = StubSource({"decision": "buy", "confidence": 80, "reasoning": "breakout"})
        step = DecisionStep(source)
        sig = await step.decide("BTCUSDT", _snapshot(), Indicators(rsi=50), None, RiskSettings())
        assert sig.action is Action.BUY
        assert sig.confidence == 80
        assert sig.source is SignalSource.LLM
        assert source.questions == [sig.question]

    @pytest.mark.asyncio
    async def test_falls_back_after_retries_exhausted(self):
        source = StubSource(error=TransientProviderError("gemini", "timeout"))
        step = DecisionStep(source, max_attempts=3, backoff=NO_WAIT)
        sig = await step.decide("BTCUSDT", _snapshot(-4.0), Indicators(rsi=20), None, RiskSettings())
        assert sig.source is SignalSource.FALLBACK
        assert sig.action is Action.BUY
        assert len(source.questions) == 3

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self):
        source = FlakySource(
            failures=1,
            answer={"decision": "sell", "confidence": 70, "reasoning": "fading rally"},
        )
        step = DecisionStep(source, backoff=NO_WAIT)
        sig = await step.decide("BTCUSDT", _snapshot(), Indicators(), None, RiskSettings())
        assert source.calls == 2
        assert sig.source is SignalSource.LLM
        assert sig.action is Action.SELL

    @pytest.mark.asyncio
    async def test_falls_back_on_malformed_output(self):
        step = DecisionStep(StubSource({"decision": "buy"}))
        sig = await step.decide("BTCUSDT", _snapshot(), Indicators(), None, RiskSettings())
        assert sig.source is SignalSource.FALLBACK
        assert sig.action is Action.HOLD

    @pytest.mark.asyncio
    async def test_falls_back_on_non_dict(self):
        step = DecisionStep(StubSource(answer="not json"))
        sig = await step.decide("BTCUSDT", _snapshot(), Indicators(), None, RiskSettings())
        assert sig.source is SignalSource.FALLBACK

    @pytest.mark.asyncio
    async def test_no_source_uses_fallback(self):
        step = DecisionStep(default_quantity=25)
        sig = await step.decide("BTCUSDT", _snapshot(4.0), Indicators(rsi=80), None, RiskSettings())
        assert sig.action is Action.SELL
        assert sig.quantity == 25

    @pytest.mark.asyncio
    async def test_permanent_error_is_not_retried(self):
        source = StubSource(error=ProviderError("gemini", "400"))
        step = DecisionStep(source, backoff=NO_WAIT)
        sig = await step.decide("BTCUSDT", _snapshot(), Indicators(), None, RiskSettings())
        assert sig.action is Action.HOLD
        assert len(source.questions) == 1
