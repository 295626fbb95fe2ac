"""Decision step — self-question, LLM reasoning and the technical fallback.

``DecisionStep.decide`` always returns a ``TradeSignal``.  The reasoning
source is asked first; any failure or malformed answer falls back to a
deterministic rule set over the indicators.
"""

import logging
from typing import Optional, Protocol

from autotrade.analysis.gemini_client import GeminiClient
from autotrade.analysis.llm_json import extract_json_object
from autotrade.data.models import MarketSnapshot, SentimentReading
from autotrade.errors import ProviderError
from autotrade.models.bot import RiskSettings
from autotrade.retry import ExponentialBackoff, with_retry
from autotrade.strategy.models import Action, Indicators, SignalSource, TradeSignal

logger = logging.getLogger("autotrade.decision")

DEFAULT_SUGGESTED_QUANTITY = 50.0


def _fmt(value: Optional[float], fmt: str = ".2f") -> str:
    return "n/a" if value is None else format(value, fmt)


def build_self_question(
    symbol: str,
    snapshot: MarketSnapshot,
    indicators: Indicators,
    sentiment: Optional[SentimentReading] = None,
) -> str:
    """Frame the market condition as a question for the reasoning source."""
    change = snapshot.change_percent_24h
    triggers = []

    if abs(change) > 5:
        triggers.append("strong uptrend" if change > 0 else "strong downtrend")

    rsi = indicators.rsi
    if rsi is not None:
        if rsi < 30:
            triggers.append("oversold RSI")
        elif rsi > 70:
            triggers.append("overbought RSI")

    if indicators.sma20 is not None and indicators.sma50 is not None:
        if indicators.sma20 > indicators.sma50:
            triggers.append("bullish SMA crossover")
        elif indicators.sma20 < indicators.sma50:
            triggers.append("bearish SMA crossover")

    if indicators.volume_change_pct is not None and indicators.volume_change_pct > 20:
        triggers.append("high volume spike")

    if sentiment is not None:
        if sentiment.score >= 70:
            triggers.append("very bullish sentiment")
        elif sentiment.score <= 30:
            triggers.append("very bearish sentiment")

    if change > 2:
        verb = "sell"
    elif change < -2:
        verb = "buy"
    else:
        verb = "hold"
    trigger_text = " and ".join(triggers) if triggers else "current market conditions"

    return (
        f"Should we {verb} {symbol} based on {trigger_text}? "
        f"Current price: ${snapshot.price:.4f}, 24h change: {change:.2f}%, "
        f"RSI: {_fmt(rsi, '.1f')}"
    )


def fallback_decision(
    symbol: str,
    snapshot: MarketSnapshot,
    indicators: Indicators,
    question: str = "",
    quantity: float = DEFAULT_SUGGESTED_QUANTITY,
) -> TradeSignal:
    """Deterministic rules used whenever the reasoning source is unusable.

    Unavailable indicators never satisfy a rule, so an empty bundle holds.
    """
    change = snapshot.change_percent_24h
    rsi = indicators.rsi
    sma20, sma50 = indicators.sma20, indicators.sma50

    action, confidence = Action.HOLD, 50.0
    reasoning = "Using technical fallback analysis. "

    if rsi is not None and rsi < 30 and change < -3:
        action, confidence = Action.BUY, 65.0
        reasoning += "Oversold condition with significant price drop suggests buying opportunity."
    elif rsi is not None and rsi > 70 and change > 3:
        action, confidence = Action.SELL, 65.0
        reasoning += "Overbought condition with strong price rise suggests taking profits."
    elif sma20 is not None and sma50 is not None and sma20 > sma50 and change > 1:
        action, confidence = Action.BUY, 55.0
        reasoning += "Bullish SMA crossover with positive momentum."
    else:
        reasoning += "Mixed signals, holding position is safest."

    return TradeSignal(
        symbol=symbol,
        action=action,
        quantity=quantity,
        confidence=confidence,
        reasoning=reasoning,
        question=question,
        source=SignalSource.FALLBACK,
    )


class ReasoningSource(Protocol):
    """Anything that can answer a trading question with a decision dict.

    The returned dict is expected to carry ``decision``, ``confidence``,
    ``reasoning`` and optionally ``suggestedQuantity``; it is validated by
    ``DecisionStep``.
    """

    async def analyze(
        self,
        question: str,
        snapshot: MarketSnapshot,
        indicators: Indicators,
        sentiment: Optional[SentimentReading],
        risk_settings: RiskSettings,
    ) -> dict: ...


_SYSTEM_PROMPT = """You are an expert cryptocurrency trading assistant. \
Analyze the market data and answer the trading question with a specific decision.

IMPORTANT: You must respond with a valid JSON object containing exactly these fields:
- decision: "buy", "sell", or "hold"
- confidence: number between 0-100
- reasoning: string explaining your decision
- suggestedQuantity: number (suggested trade amount in USD)

Consider price trends and momentum, technical indicators, volume patterns,
market sentiment and risk management. Be conservative with suggestions and
prioritize capital preservation."""


def build_reasoning_prompt(
    question: str,
    snapshot: MarketSnapshot,
    indicators: Indicators,
    sentiment: Optional[SentimentReading],
    risk_settings: RiskSettings,
) -> str:
    macd = indicators.macd
    sentiment_line = (
        f"{sentiment.score:.0f}/100 ({sentiment.label})" if sentiment else "n/a"
    )
    return f"""{_SYSTEM_PROMPT}

{question}

Market Data:
- Current Price: ${snapshot.price}
- 24h Change: {snapshot.change_percent_24h:.2f}%
- 24h Volume: {snapshot.volume_24h:,.2f}
- 24h High / Low: ${snapshot.high_24h} / ${snapshot.low_24h}

Technical Indicators:
- RSI: {_fmt(indicators.rsi, '.1f')}
- SMA20: {_fmt(indicators.sma20, '.4f')}
- SMA50: {_fmt(indicators.sma50, '.4f')}
- MACD line / signal: {_fmt(macd.line if macd else None, '.4f')} / {_fmt(macd.signal if macd else None, '.4f')}
- Last bar price change: {_fmt(indicators.price_change_pct)}%
- Last bar volume change: {_fmt(indicators.volume_change_pct)}%

Sentiment: {sentiment_line}

Risk Settings:
- Max Position: {risk_settings.max_trade_fraction * 100:.1f}% of balance
- Stop Loss: {risk_settings.stop_loss * 100:.1f}%
- Risk Level: {risk_settings.risk_level}

Provide your trading recommendation as a JSON response."""


class GeminiReasoningClient:
    """``ReasoningSource`` backed by the Gemini generateContent API."""

    def __init__(self, llm: GeminiClient) -> None:
        self._llm = llm

    async def analyze(
        self,
        question: str,
        snapshot: MarketSnapshot,
        indicators: Indicators,
        sentiment: Optional[SentimentReading],
        risk_settings: RiskSettings,
    ) -> dict:
        prompt = build_reasoning_prompt(
            question, snapshot, indicators, sentiment, risk_settings,
        )
        text = await self._llm.generate(prompt)
        data = extract_json_object(text)
        if data is None:
            raise ProviderError("gemini", "no JSON object in reasoning response")
        return data


def parse_reasoning(
    data: dict,
    symbol: str,
    question: str,
    default_quantity: float = DEFAULT_SUGGESTED_QUANTITY,
) -> TradeSignal:
    """Validate a reasoning dict into a ``TradeSignal``.

    Raises ``ValueError`` on a missing or out-of-range field.
    """
    try:
        action = Action(str(data["decision"]).strip().lower())
    except (KeyError, ValueError):
        raise ValueError(f"invalid decision: {data.get('decision')!r}")

    confidence = data.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise ValueError(f"confidence must be numeric, got {confidence!r}")
    if not 0 <= confidence <= 100:
        raise ValueError(f"confidence out of range: {confidence}")

    reasoning = data.get("reasoning")
    if not isinstance(reasoning, str) or not reasoning.strip():
        raise ValueError("reasoning is empty")

    quantity = data.get("suggestedQuantity")
    if isinstance(quantity, bool) or not isinstance(quantity, (int, float)) or quantity <= 0:
        quantity = default_quantity

    return TradeSignal(
        symbol=symbol,
        action=action,
        quantity=float(quantity),
        confidence=float(confidence),
        reasoning=reasoning.strip(),
        question=question,
        source=SignalSource.LLM,
    )


class DecisionStep:
    """Produces one ``TradeSignal`` per bot per cycle.

    Transient failures of the reasoning source are retried up to
    *max_attempts* times before the technical fallback takes over.
    """

    def __init__(
        self,
        source: Optional[ReasoningSource] = None,
        default_quantity: float = DEFAULT_SUGGESTED_QUANTITY,
        max_attempts: int = 3,
        backoff: Optional[ExponentialBackoff] = None,
    ) -> None:
        self._source = source
        self._default_quantity = default_quantity
        self._max_attempts = max_attempts
        self._backoff = backoff or ExponentialBackoff()

    async def decide(
        self,
        symbol: str,
        snapshot: MarketSnapshot,
        indicators: Indicators,
        sentiment: Optional[SentimentReading],
        risk_settings: RiskSettings,
    ) -> TradeSignal:
        question = build_self_question(symbol, snapshot, indicators, sentiment)
        logger.info("[%s] %s", symbol, question)

        if self._source is None:
            return fallback_decision(
                symbol, snapshot, indicators, question, self._default_quantity,
            )

        try:
            data = await with_retry(
                lambda: self._source.analyze(
                    question, snapshot, indicators, sentiment, risk_settings,
                ),
                max_attempts=self._max_attempts,
                backoff=self._backoff,
                label=f"reasoning for {symbol}",
            )
            return parse_reasoning(data, symbol, question, self._default_quantity)
        except Exception as exc:  # any reasoning failure degrades to the rules
            logger.warning("[%s] Reasoning unavailable, using fallback: %s", symbol, exc)
            return fallback_decision(
                symbol, snapshot, indicators, question, self._default_quantity,
            )
