"""LLM-derived market sentiment for the watchlist."""

import logging
from datetime import datetime, timezone
from typing import Optional

from autotrade.analysis.gemini_client import GeminiClient
from autotrade.analysis.llm_json import extract_json_object
from autotrade.data.models import NewsItem, SentimentReading, SentimentReport
from autotrade.errors import ProviderError

logger = logging.getLogger("autotrade.sentiment")

_PROVIDER = "sentiment"


def label_for_score(score: float) -> str:
    """Map a 0–100 score onto the five sentiment bands."""
    if score < 30:
        return "Very Bearish"
    if score < 45:
        return "Bearish"
    if score <= 55:
        return "Neutral"
    if score <= 70:
        return "Bullish"
    return "Very Bullish"


def _build_prompt(symbols: list[str], headlines: list[NewsItem]) -> str:
    news = "\n".join(f"- {h.title} ({h.source})" for h in headlines) or "- none available"
    return (
        "Analyze the current market sentiment for these cryptocurrencies: "
        f"{', '.join(symbols)}.\n\n"
        f"Recent headlines:\n{news}\n\n"
        "Provide a sentiment score from 0-100 for each symbol where 0-30 is "
        "very bearish, 30-45 bearish, 45-55 neutral, 55-70 bullish and "
        "70-100 very bullish.\n\n"
        "Respond with valid JSON only:\n"
        '{"overall_market_sentiment": "description", "symbols": '
        '[{"symbol": "BTCUSDT", "sentiment_score": 50, "key_factors": ["..."]}]}'
    )


def parse_sentiment(text: str) -> SentimentReport:
    """Decode the model's JSON answer into a ``SentimentReport``.

    Raises ``ProviderError`` when the answer has no usable symbol scores.
    """
    data = extract_json_object(text)
    if data is None:
        raise ProviderError(_PROVIDER, "no JSON object in response")

    readings: dict[str, SentimentReading] = {}
    for item in data.get("symbols") or []:
        try:
            symbol = str(item["symbol"]).upper()
            score = max(0.0, min(100.0, float(item["sentiment_score"])))
        except (KeyError, TypeError, ValueError):
            continue
        readings[symbol] = SentimentReading(
            symbol=symbol,
            score=score,
            label=label_for_score(score),
            key_factors=tuple(str(f) for f in item.get("key_factors") or ()),
        )
    if not readings:
        raise ProviderError(_PROVIDER, "response contained no symbol scores")
    return SentimentReport(
        overall=str(data.get("overall_market_sentiment", "unknown")),
        readings=readings,
        analysed_at=datetime.now(timezone.utc).isoformat(),
    )


class SentimentClient:
    """Asks the LLM for per-symbol sentiment, using headlines as context."""

    def __init__(self, llm: GeminiClient) -> None:
        self._llm = llm

    async def fetch_sentiment(
        self,
        symbols: list[str],
        headlines: Optional[list[NewsItem]] = None,
    ) -> SentimentReport:
        text = await self._llm.generate(_build_prompt(symbols, headlines or []))
        report = parse_sentiment(text)
        logger.info(
            "Sentiment for %d symbol(s): %s", len(report.readings), report.overall,
        )
        return report
